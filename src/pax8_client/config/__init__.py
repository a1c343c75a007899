"""Configuration helpers for the Pax8 client."""

from .settings import (
    DEFAULT_AUDIENCE,
    DEFAULT_BASE_URL,
    DEFAULT_TOKEN_URL,
    ClientConfig,
    SettingsManager,
    resolve_config,
)

__all__ = [
    "DEFAULT_AUDIENCE",
    "DEFAULT_BASE_URL",
    "DEFAULT_TOKEN_URL",
    "ClientConfig",
    "SettingsManager",
    "resolve_config",
]
