"""Turn client failures into short operator-facing descriptions."""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import httpx

from pax8_client.errors import Pax8Error, Pax8ErrorCategory
from pax8_client.utils.cancellation import CancellationError


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class ErrorDescriptor:
    headline: str
    detail: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    transient: bool = False
    suggestion: str | None = None


_HEADLINES: dict[Pax8ErrorCategory, str] = {
    Pax8ErrorCategory.VALIDATION: "The client configuration or request arguments are invalid.",
    Pax8ErrorCategory.AUTHENTICATION: "Pax8 rejected the client credentials.",
    Pax8ErrorCategory.TOKEN_REQUEST: "The Pax8 token service rejected the token request.",
    Pax8ErrorCategory.TOKEN_REFRESH: "Unable to obtain a Pax8 access token.",
    Pax8ErrorCategory.TIMEOUT: "The request to Pax8 timed out.",
    Pax8ErrorCategory.NETWORK: "Network issue contacting Pax8.",
    Pax8ErrorCategory.API: "The Pax8 API returned an error.",
}

_NETWORK_ERRNOS = frozenset(
    code
    for code in (
        getattr(socket, name, None)
        for name in (
            "EAI_AGAIN",
            "EAI_FAIL",
            "EAI_NONAME",
            "EHOSTUNREACH",
            "ENETDOWN",
            "ENETUNREACH",
            "ECONNREFUSED",
            "ECONNRESET",
            "ETIMEDOUT",
        )
    )
    if code is not None
)


def describe_exception(error: BaseException) -> ErrorDescriptor:
    """Summarise an SDK failure for display to an operator.

    Caller cancellation is informational. Otherwise the first :class:`Pax8Error` in
    the cause chain decides the description; failing that, the innermost transport
    error is classified, and anything else gets a generic description.
    """
    if isinstance(error, CancellationError):
        return ErrorDescriptor(
            headline="Operation was cancelled.",
            detail=error.reason or "Cancelled by caller",
            severity=ErrorSeverity.INFO,
        )

    pax8_error = next((e for e in _cause_chain(error) if isinstance(e, Pax8Error)), None)
    if pax8_error is not None:
        return _describe_pax8_error(pax8_error)

    root = _innermost(error)
    transport = _describe_transport_error(root)
    if transport is not None:
        return transport

    return ErrorDescriptor(
        headline="Operation failed.",
        detail=f"{type(error).__name__}: {error}",
    )


def _describe_pax8_error(error: Pax8Error) -> ErrorDescriptor:
    detail = f"HTTP {error.status_code}: {error}" if error.status_code is not None else str(error)
    return ErrorDescriptor(
        headline=_HEADLINES.get(error.category, "Pax8 request failed."),
        detail=detail,
        severity=ErrorSeverity.WARNING if error.is_retriable else ErrorSeverity.ERROR,
        transient=error.is_retriable,
        suggestion=error.recovery_suggestion,
    )


def _describe_transport_error(root: BaseException) -> ErrorDescriptor | None:
    if isinstance(root, httpx.TimeoutException):
        headline = "Temporary timeout contacting Pax8."
        detail = f"{type(root).__name__}: {root}"
        suggestion = "Check your network connection and retry shortly."
    elif isinstance(root, asyncio.TimeoutError):
        headline = "Operation timed out before Pax8 responded."
        detail = "asyncio.TimeoutError: Operation timed out"
        suggestion = "Retry the request after verifying connectivity."
    elif isinstance(root, socket.gaierror):
        headline = "DNS lookup failed while contacting Pax8."
        detail = f"socket.gaierror: {root}"
        suggestion = "Verify internet connectivity or DNS configuration."
    elif isinstance(root, OSError) and root.errno in _NETWORK_ERRNOS:
        headline = "Network connection issue encountered."
        detail = f"OSError[{root.errno}]: {root.strerror}"
        suggestion = "Retry once your connection is stable."
    else:
        return None
    return ErrorDescriptor(
        headline=headline,
        detail=detail,
        severity=ErrorSeverity.WARNING,
        transient=True,
        suggestion=suggestion,
    )


def _cause_chain(error: BaseException) -> Iterator[BaseException]:
    """Yield ``error`` and what it wraps, preferring ``inner_error`` then ``__cause__``."""

    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        inner = current.inner_error if isinstance(current, Pax8Error) else None
        current = inner or current.__cause__ or current.__context__


def _innermost(error: BaseException) -> BaseException:
    last = error
    for last in _cause_chain(error):
        pass
    return last


__all__ = [
    "ErrorDescriptor",
    "ErrorSeverity",
    "describe_exception",
]
