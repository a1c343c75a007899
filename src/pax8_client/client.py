from __future__ import annotations

import time
from pathlib import Path
from types import TracebackType
from typing import Any, Mapping

import httpx

from pax8_client.auth.token_manager import TokenManager, TokenState
from pax8_client.auth.types import AccessToken
from pax8_client.config.settings import ClientConfig, SettingsManager, resolve_config
from pax8_client.errors import NetworkError, RequestTimeoutError
from pax8_client.http.api_utils import raise_for_error_response, validate_non_empty_string
from pax8_client.utils import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    await_with_cancellation,
    get_logger,
    redact_headers,
)


logger = get_logger(__name__)

USER_AGENT = "pax8-client-python"
REQUEST_TIMEOUT_REASON = "Request timed out"


class Pax8Client:
    """Authenticated client for the Pax8 REST API.

    ``request`` attaches a bearer token obtained from the token manager, bounds the
    transport call by ``config.timeout`` and links it to an optional caller
    cancellation token. Status codes are not interpreted; ``request_json`` does
    that for callers that want decoded payloads.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        base_url: str | None = None,
        token_url: str | None = None,
        audience: str | None = None,
        retry_attempts: int | None = None,
        retry_delay: int | None = None,
        timeout: int | None = None,
        auto_refresh: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        config = resolve_config(
            client_id,
            client_secret,
            base_url=base_url,
            token_url=token_url,
            audience=audience,
            retry_attempts=retry_attempts,
            retry_delay=retry_delay,
            timeout=timeout,
            auto_refresh=auto_refresh,
        )
        self._setup(config, http_client)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "Pax8Client":
        client = cls.__new__(cls)
        client._setup(config, http_client)
        return client

    @classmethod
    def from_env(
        cls,
        env_file: Path | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "Pax8Client":
        return cls.from_config(SettingsManager(env_file).load(), http_client=http_client)

    def _setup(self, config: ClientConfig, http_client: httpx.AsyncClient | None) -> None:
        self._config = config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(config.timeout_seconds),
        )
        self._tokens = TokenManager(config, self._http)

    @property
    def configuration(self) -> ClientConfig:
        """Resolved configuration snapshot with defaults applied."""

        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._tokens

    @property
    def token_state(self) -> TokenState:
        return self._tokens.state

    async def ensure_valid_token(self) -> AccessToken:
        return await self._tokens.ensure_valid_token()

    async def refresh_token(self) -> AccessToken:
        return await self._tokens.refresh_token()

    def is_token_valid(self) -> bool:
        return self._tokens.is_token_valid()

    def get_token_expires_at(self) -> float | None:
        return self._tokens.get_token_expires_at()

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> httpx.Response:
        """Issue an authenticated request and return the raw response.

        Raises:
            ConfigurationError: ``path`` is empty.
            CancellationError: ``cancellation_token`` fired; carries its reason.
            RequestTimeoutError: the transport call outlived ``config.timeout``.
            NetworkError: the transport failed without an HTTP response.

        ``CancellationError`` subclasses :class:`asyncio.CancelledError`, so
        ``except Exception`` does not catch it and ``asyncio.TaskGroup`` treats it as
        task cancellation rather than a failure. Catch ``CancellationError``
        explicitly around calls that pass a ``cancellation_token``.
        """
        validate_non_empty_string(path, "path")

        # Refresh latency is bounded by the token endpoint's own timeout and
        # retry budget, not by this request's timeout.
        token = await await_with_cancellation(
            self._tokens.ensure_valid_token, cancellation_token
        )

        merged_headers = dict(headers or {})
        if not any(key.lower() == "authorization" for key in merged_headers):
            merged_headers["Authorization"] = token.authorization

        url = self._absolute_url(path)
        source = CancellationTokenSource(linked_token=cancellation_token)
        source.cancel_after(self._config.timeout_seconds, reason=REQUEST_TIMEOUT_REASON)
        start = time.perf_counter()
        try:
            response = await await_with_cancellation(
                lambda: self._http.request(
                    method.upper(),
                    url,
                    params=params,
                    json=json_body,
                    content=content,
                    headers=merged_headers,
                ),
                source.token,
            )
        except CancellationError as exc:
            if cancellation_token is not None and cancellation_token.cancelled:
                logger.info("Request cancelled by caller", method=method, url=url)
                raise CancellationError(cancellation_token.reason) from exc
            logger.warning("Request timed out", method=method, url=url)
            raise RequestTimeoutError(REQUEST_TIMEOUT_REASON) from exc
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(REQUEST_TIMEOUT_REASON) from exc
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Network error communicating with Pax8: {exc}",
                inner_error=exc,
            ) from exc
        finally:
            source.dispose()

        logger.debug(
            "Pax8 request",
            method=method.upper(),
            url=url,
            headers=redact_headers(merged_headers),
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
        headers: Mapping[str, str] | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> Any:
        response = await self.request(
            path,
            method=method,
            params=params,
            json_body=json_body,
            headers=headers,
            cancellation_token=cancellation_token,
        )
        raise_for_error_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "Pax8Client":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _absolute_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"


__all__ = ["Pax8Client", "REQUEST_TIMEOUT_REASON"]
