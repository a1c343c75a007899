from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

from pax8_client.errors import ConfigurationError

APP_NAME = "Pax8Client"
ENV_PREFIX = "PAX8_"
ENV_FILE_NAME = "settings.env"

DEFAULT_BASE_URL = "https://api.pax8.com/v1"
DEFAULT_TOKEN_URL = "https://token-manager.pax8.com/oauth/token"
DEFAULT_AUDIENCE = "https://api.pax8.com"
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_AUTO_REFRESH = True

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Resolved, immutable client configuration.

    ``retry_delay`` and ``timeout`` are expressed in milliseconds.
    """

    client_id: str
    client_secret: str
    base_url: str = DEFAULT_BASE_URL
    token_url: str = DEFAULT_TOKEN_URL
    audience: str = DEFAULT_AUDIENCE
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    timeout: int = DEFAULT_TIMEOUT_MS
    auto_refresh: bool = DEFAULT_AUTO_REFRESH

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay / 1000

    def __repr__(self) -> str:
        return (
            f"ClientConfig(client_id={self.client_id!r}, client_secret='***', "
            f"base_url={self.base_url!r}, token_url={self.token_url!r}, "
            f"audience={self.audience!r}, retry_attempts={self.retry_attempts}, "
            f"retry_delay={self.retry_delay}, timeout={self.timeout}, "
            f"auto_refresh={self.auto_refresh})"
        )


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_string(name: str, value: Any, default: str) -> str:
    if value is None:
        return default
    if not _is_non_empty_string(value):
        raise ConfigurationError(f"{name} must be a non-empty string when provided")
    return value.strip()


def resolve_config(
    client_id: Any,
    client_secret: Any,
    *,
    base_url: Any = None,
    token_url: Any = None,
    audience: Any = None,
    retry_attempts: Any = None,
    retry_delay: Any = None,
    timeout: Any = None,
    auto_refresh: Any = None,
) -> ClientConfig:
    """Validate user input and merge it with defaults.

    Raises:
        ConfigurationError: If any field has the wrong type or is out of range.
    """
    if not _is_non_empty_string(client_id):
        raise ConfigurationError("client_id is required and must be a non-empty string")
    if not _is_non_empty_string(client_secret):
        raise ConfigurationError(
            "client_secret is required and must be a non-empty string"
        )

    if retry_attempts is not None and not (_is_int(retry_attempts) and retry_attempts >= 0):
        raise ConfigurationError(
            "retry_attempts must be a non-negative integer when provided"
        )
    if retry_delay is not None and not (_is_int(retry_delay) and retry_delay > 0):
        raise ConfigurationError("retry_delay must be a positive integer when provided")
    if timeout is not None and not (_is_int(timeout) and timeout > 0):
        raise ConfigurationError("timeout must be a positive integer when provided")
    if auto_refresh is not None and not isinstance(auto_refresh, bool):
        raise ConfigurationError("auto_refresh must be a boolean when provided")

    return ClientConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        base_url=_optional_string("base_url", base_url, DEFAULT_BASE_URL),
        token_url=_optional_string("token_url", token_url, DEFAULT_TOKEN_URL),
        audience=_optional_string("audience", audience, DEFAULT_AUDIENCE),
        retry_attempts=(
            DEFAULT_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        ),
        retry_delay=DEFAULT_RETRY_DELAY_MS if retry_delay is None else retry_delay,
        timeout=DEFAULT_TIMEOUT_MS if timeout is None else timeout,
        auto_refresh=DEFAULT_AUTO_REFRESH if auto_refresh is None else auto_refresh,
    )


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    return config_dir() / ENV_FILE_NAME


class SettingsManager:
    """Load client configuration from the environment with .env fallback."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> ClientConfig:
        """Load settings from environment, falling back to the managed env file."""
        load_dotenv(self._env_file, override=False)

        return resolve_config(
            self._get_env("CLIENT_ID"),
            self._get_env("CLIENT_SECRET"),
            base_url=self._get_env("BASE_URL"),
            token_url=self._get_env("TOKEN_URL"),
            audience=self._get_env("AUDIENCE"),
            retry_attempts=self._get_int("RETRY_ATTEMPTS"),
            retry_delay=self._get_int("RETRY_DELAY"),
            timeout=self._get_int("TIMEOUT"),
            auto_refresh=self._get_bool("AUTO_REFRESH"),
        )

    def save(self, config: ClientConfig) -> None:
        """Persist non-secret configuration fields to the managed env file."""
        self._env_file.parent.mkdir(parents=True, exist_ok=True)
        content = [
            f"{ENV_PREFIX}CLIENT_ID={config.client_id}",
            f"{ENV_PREFIX}BASE_URL={config.base_url}",
            f"{ENV_PREFIX}TOKEN_URL={config.token_url}",
            f"{ENV_PREFIX}AUDIENCE={config.audience}",
            f"{ENV_PREFIX}RETRY_ATTEMPTS={config.retry_attempts}",
            f"{ENV_PREFIX}RETRY_DELAY={config.retry_delay}",
            f"{ENV_PREFIX}TIMEOUT={config.timeout}",
            f"{ENV_PREFIX}AUTO_REFRESH={'true' if config.auto_refresh else 'false'}",
        ]
        self._env_file.write_text("\n".join(content) + "\n", encoding="utf-8")

    def _get_env(self, name: str) -> str | None:
        return os.getenv(f"{ENV_PREFIX}{name}") or None

    def _get_int(self, name: str) -> int | None:
        raw = self._get_env(name)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
            ) from exc

    def _get_bool(self, name: str) -> bool | None:
        raw = self._get_env(name)
        if raw is None:
            return None
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


__all__ = [
    "ClientConfig",
    "DEFAULT_AUDIENCE",
    "DEFAULT_BASE_URL",
    "DEFAULT_TOKEN_URL",
    "SettingsManager",
    "cache_dir",
    "config_dir",
    "log_dir",
    "resolve_config",
]
