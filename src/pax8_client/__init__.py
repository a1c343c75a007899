"""Async client for the Pax8 partner REST API."""

from .client import Pax8Client
from .auth import AccessToken, TokenManager, TokenState
from .config import ClientConfig, SettingsManager, resolve_config
from .errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    Pax8Error,
    Pax8ErrorCategory,
    RequestTimeoutError,
    TokenRefreshError,
    TokenRequestError,
)
from .utils import CancellationError, CancellationToken, CancellationTokenSource

__version__ = "0.1.0"

__all__ = [
    "Pax8Client",
    "AccessToken",
    "TokenManager",
    "TokenState",
    "ClientConfig",
    "SettingsManager",
    "resolve_config",
    "ApiError",
    "AuthenticationError",
    "ConfigurationError",
    "NetworkError",
    "Pax8Error",
    "Pax8ErrorCategory",
    "RequestTimeoutError",
    "TokenRefreshError",
    "TokenRequestError",
    "CancellationError",
    "CancellationToken",
    "CancellationTokenSource",
]
