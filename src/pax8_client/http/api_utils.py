"""Helpers shared by resource endpoint modules."""

from __future__ import annotations

from typing import Any

import httpx

from pax8_client.errors import ApiError, ConfigurationError
from pax8_client.http.retry import parse_retry_after
from pax8_client.utils import sanitize_log_message


UNKNOWN_ERROR = "Unknown error"


def raise_for_error_response(response: httpx.Response) -> None:
    """Raise :class:`ApiError` for a non-2xx response, otherwise do nothing.

    The message comes from a JSON body's ``message`` field when present, falling
    back to the reason phrase.
    """
    if response.is_success:
        return

    fallback = response.reason_phrase or UNKNOWN_ERROR
    body: Any = None
    if "json" in response.headers.get("Content-Type", ""):
        try:
            body = response.json()
        except ValueError:
            body = None

    message = fallback
    error_type: str | None = None
    details: dict[str, Any] | None = None
    if isinstance(body, dict):
        raw_message = body.get("message")
        if isinstance(raw_message, str) and raw_message:
            message = sanitize_log_message(raw_message)
        code = body.get("code") or body.get("type")
        error_type = code if isinstance(code, str) else None
        raw_details = body.get("details")
        details = raw_details if isinstance(raw_details, dict) else None

    raise ApiError(
        message,
        status_code=response.status_code,
        error_type=error_type,
        instance=_request_path(response),
        details=details,
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
    )


def validate_page(page: int | None = None) -> int:
    """Return a zero-based page number, defaulting to 0."""

    if page is None:
        return 0
    if not _is_int(page) or page < 0:
        raise ConfigurationError("page must be a non-negative integer")
    return page


def validate_size(
    size: int | None,
    default_size: int,
    min_size: int,
    max_size: int,
) -> int:
    if size is None:
        return default_size
    if not _is_int(size):
        raise ConfigurationError("size must be an integer")
    if size < min_size or size > max_size:
        raise ConfigurationError(f"size must be between {min_size} and {max_size}")
    return size


def validate_non_empty_string(value: Any, param_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{param_name} is required and must be a non-empty string")
    return value


def _request_path(response: httpx.Response) -> str | None:
    try:
        return response.request.url.path
    except RuntimeError:
        return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


__all__ = [
    "raise_for_error_response",
    "validate_non_empty_string",
    "validate_page",
    "validate_size",
]
