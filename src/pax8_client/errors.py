from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Pax8ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    TOKEN_REQUEST = "token_request"
    TOKEN_REFRESH = "token_refresh"
    TIMEOUT = "timeout"
    NETWORK = "network"
    API = "api"
    UNKNOWN = "unknown"


@dataclass(slots=True, eq=False)
class Pax8Error(Exception):
    message: str
    category: Pax8ErrorCategory = Pax8ErrorCategory.UNKNOWN
    status_code: int | None = None
    error_type: str | None = None
    instance: str | None = None
    details: dict[str, Any] | None = None
    retry_after: float | None = None
    inner_error: BaseException | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.category is Pax8ErrorCategory.VALIDATION:
            return "Review the client configuration or request arguments."
        if self.category is Pax8ErrorCategory.AUTHENTICATION:
            return "Verify the client ID and secret issued by the Pax8 Integrations Hub."
        if self.category is Pax8ErrorCategory.TIMEOUT:
            return "The request timed out. Retry or raise the configured timeout."
        if self.category is Pax8ErrorCategory.NETWORK:
            return "Check your internet connection and try again."
        if self.category in {
            Pax8ErrorCategory.TOKEN_REQUEST,
            Pax8ErrorCategory.TOKEN_REFRESH,
        }:
            if self.retry_after:
                return f"The token service asked clients to wait {self.retry_after:.0f} seconds."
            return "The token service is unavailable. Try again shortly."
        return None

    @property
    def is_retriable(self) -> bool:
        if self.category in {Pax8ErrorCategory.NETWORK, Pax8ErrorCategory.TIMEOUT}:
            return True
        if self.status_code == 429:
            return True
        if self.status_code and 500 <= self.status_code <= 599:
            return True
        return False


class ConfigurationError(Pax8Error):
    """Malformed caller input; raised synchronously and never retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, category=Pax8ErrorCategory.VALIDATION)


class AuthenticationError(Pax8Error):
    """The token endpoint rejected the client credentials."""

    def __init__(
        self,
        message: str = "Authentication failed: Invalid client credentials",
        *,
        status_code: int = 401,
        instance: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=Pax8ErrorCategory.AUTHENTICATION,
            status_code=status_code,
            error_type="authentication_error",
            instance=instance,
            details=details,
        )


class TokenRequestError(Pax8Error):
    """Non-2xx answer from the token endpoint other than 401."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        instance: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=Pax8ErrorCategory.TOKEN_REQUEST,
            status_code=status_code,
            error_type="token_request_error",
            instance=instance,
            details=details,
            retry_after=retry_after,
        )


class TokenRefreshError(Pax8Error):
    """Token refresh gave up; wraps the last attempt's error."""

    attempts: int

    def __init__(self, attempts: int, cause: BaseException) -> None:
        super().__init__(
            message=f"Failed to refresh access token after {attempts} attempt(s): {cause}",
            category=Pax8ErrorCategory.TOKEN_REFRESH,
            status_code=getattr(cause, "status_code", None),
            error_type="token_refresh_error",
            retry_after=getattr(cause, "retry_after", None),
            inner_error=cause,
        )
        self.attempts = attempts


class RequestTimeoutError(Pax8Error):
    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message=message, category=Pax8ErrorCategory.TIMEOUT)


class NetworkError(Pax8Error):
    def __init__(self, message: str, *, inner_error: BaseException | None = None) -> None:
        super().__init__(
            message=message,
            category=Pax8ErrorCategory.NETWORK,
            inner_error=inner_error,
        )


class ApiError(Pax8Error):
    """Non-2xx answer from a resource endpoint."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_type: str | None = None,
        instance: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=Pax8ErrorCategory.API,
            status_code=status_code,
            error_type=error_type,
            instance=instance,
            details=details,
            retry_after=retry_after,
        )


__all__ = [
    "ApiError",
    "AuthenticationError",
    "ConfigurationError",
    "NetworkError",
    "Pax8Error",
    "Pax8ErrorCategory",
    "RequestTimeoutError",
    "TokenRefreshError",
    "TokenRequestError",
]
