"""Authentication utilities for the Pax8 client."""

from .token_manager import (
    EXPIRY_BUFFER_SECONDS,
    TokenManager,
    TokenState,
    classify_token,
    should_retry_token_request,
)
from .types import AccessToken, TokenErrorResponse, TokenRequest, TokenResponse

__all__ = [
    "AccessToken",
    "EXPIRY_BUFFER_SECONDS",
    "TokenErrorResponse",
    "TokenManager",
    "TokenRequest",
    "TokenResponse",
    "TokenState",
    "classify_token",
    "should_retry_token_request",
]
