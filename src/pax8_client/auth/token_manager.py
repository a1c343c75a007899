from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable

import httpx

from pax8_client.auth.types import (
    AccessToken,
    TokenErrorResponse,
    TokenRequest,
    TokenResponse,
)
from pax8_client.config.settings import ClientConfig
from pax8_client.errors import (
    AuthenticationError,
    NetworkError,
    RequestTimeoutError,
    TokenRefreshError,
    TokenRequestError,
)
from pax8_client.http.retry import RetryOptions, parse_retry_after, with_retry
from pax8_client.utils import (
    CancellationError,
    CancellationTokenSource,
    await_with_cancellation,
    get_logger,
    sanitize_log_message,
)


logger = get_logger(__name__)

EXPIRY_BUFFER_SECONDS = 5 * 60
MAX_RETRY_DELAY_SECONDS = 30.0
TOKEN_INSTANCE = "/oauth/token"


class TokenState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    REFRESHING = "refreshing"


def classify_token(
    token: AccessToken | None,
    *,
    now: float,
    auto_refresh: bool,
    buffer: float = EXPIRY_BUFFER_SECONDS,
) -> TokenState:
    """Place a cached token in the lifecycle, ignoring any refresh in flight."""

    if token is None:
        return TokenState.ABSENT
    if now >= token.expires_at:
        return TokenState.EXPIRED
    if auto_refresh and now >= token.expires_at - buffer:
        return TokenState.EXPIRING_SOON
    return TokenState.VALID


def should_retry_token_request(error: BaseException, _attempt: int = 0) -> bool:
    """Decide whether a failed token request is worth another attempt."""

    if isinstance(error, AuthenticationError):
        return False
    status = getattr(error, "status_code", None)
    if status in (400, 401):
        return False
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None and retry_after > 0:
        return True
    if isinstance(status, int):
        return status == 429 or 500 <= status <= 599
    # No status: network failure, timeout or something unclassified.
    return True


def _retry_after_hint(error: BaseException) -> float | None:
    return getattr(error, "retry_after", None)


class TokenManager:
    """Acquire, cache and refresh the client-credentials access token.

    Refreshes are single-flight: the first caller that needs a new token starts a
    refresh task and every concurrent caller awaits that same task, so the token
    endpoint sees one request no matter how many callers are waiting. The task
    handle is cleared only after it settles.
    """

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client
        self._token: AccessToken | None = None
        self._refresh_task: asyncio.Task[AccessToken] | None = None
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @staticmethod
    def _now() -> float:
        return time.time()

    @property
    def state(self) -> TokenState:
        if self._refresh_task is not None and not self._refresh_task.done():
            return TokenState.REFRESHING
        return classify_token(
            self._token,
            now=self._now(),
            auto_refresh=self._config.auto_refresh,
        )

    async def ensure_valid_token(self) -> AccessToken:
        """Return the cached token, refreshing it first when it is missing or stale."""

        state = self.state
        if state is TokenState.VALID and self._token is not None:
            return self._token
        logger.debug("Access token needs refresh", state=state.value)
        return await self._join_refresh()

    async def refresh_token(self) -> AccessToken:
        """Start (or join) a refresh regardless of the cached token's validity."""

        return await self._join_refresh()

    def is_token_valid(self) -> bool:
        token = self._token
        return token is not None and self._now() < token.expires_at

    def get_token_expires_at(self) -> float | None:
        return self._token.expires_at if self._token is not None else None

    # Internal --------------------------------------------------------

    async def _join_refresh(self) -> AccessToken:
        task = self._refresh_task
        # A settled task may linger until its done callback runs; never rejoin it.
        if task is None or task.done():
            task = asyncio.create_task(self._refresh(), name="pax8-token-refresh")
            task.add_done_callback(self._clear_refresh_task)
            self._refresh_task = task
        # Shielded so one caller's cancellation does not abort the shared refresh.
        return await asyncio.shield(task)

    def _clear_refresh_task(self, task: asyncio.Task[AccessToken]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Joiners that gave up never read the outcome; mark it retrieved.
            task.exception()

    async def _refresh(self) -> AccessToken:
        attempts = max(self._config.retry_attempts, 1)
        attempts_made = 0

        async def attempt_once(attempt: int) -> AccessToken:
            nonlocal attempts_made
            attempts_made = attempt + 1
            return await self._request_token(attempt)

        logger.info(
            "Refreshing access token",
            token_url=self._config.token_url,
            attempts=attempts,
        )
        try:
            token = await with_retry(
                attempt_once,
                RetryOptions(
                    attempts=attempts,
                    base_delay=self._config.retry_delay_seconds,
                    max_delay=MAX_RETRY_DELAY_SECONDS,
                    should_retry=should_retry_token_request,
                    retry_after=_retry_after_hint,
                    sleep=self._sleep,
                ),
            )
        except AuthenticationError:
            self._token = None
            logger.error("Token endpoint rejected client credentials")
            raise
        except Exception as exc:
            self._token = None
            logger.error(
                "Access token refresh failed",
                attempts=attempts_made,
                error=sanitize_log_message(str(exc)),
            )
            raise TokenRefreshError(attempts_made, exc) from exc

        self._token = token
        logger.info(
            "Access token refreshed",
            expires_in=round(token.expires_at - self._now()),
        )
        return token

    async def _request_token(self, attempt: int) -> AccessToken:
        body = TokenRequest(
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            audience=self._config.audience,
        )
        source = CancellationTokenSource()
        source.cancel_after(self._config.timeout_seconds, reason="Token request timed out")
        try:
            response = await await_with_cancellation(
                lambda: self._http.post(
                    self._config.token_url,
                    json=body.model_dump(),
                    headers={"content-type": "application/json"},
                ),
                source.token,
            )
        except CancellationError as exc:
            raise RequestTimeoutError("Token request timed out") from exc
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError("Token request timed out") from exc
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Network error requesting access token: {exc}",
                inner_error=exc,
            ) from exc
        finally:
            source.dispose()

        received_at = self._now()
        logger.debug(
            "Token endpoint responded",
            attempt=attempt,
            status_code=response.status_code,
        )
        if response.is_success:
            return self._to_access_token(response, received_at)
        raise self._map_error_response(response, received_at)

    def _to_access_token(self, response: httpx.Response, received_at: float) -> AccessToken:
        try:
            payload = TokenResponse.model_validate(response.json())
        except ValueError as exc:
            raise TokenRequestError(
                "Token response was malformed",
                status_code=response.status_code,
                instance=TOKEN_INSTANCE,
            ) from exc
        return AccessToken(
            value=payload.access_token,
            token_type=payload.token_type,
            expires_at=received_at + payload.expires_in,
        )

    def _map_error_response(
        self, response: httpx.Response, received_at: float
    ) -> AuthenticationError | TokenRequestError:
        status = response.status_code
        retry_after = parse_retry_after(
            response.headers.get("Retry-After"), now=received_at
        )
        error_body: TokenErrorResponse | None = None
        if "json" in response.headers.get("Content-Type", ""):
            try:
                error_body = TokenErrorResponse.model_validate(response.json())
            except ValueError:
                error_body = None
        details = error_body.as_details() if error_body is not None else None

        if status == 401:
            description = error_body.error_description if error_body else None
            message = (
                f"Authentication failed: {description}"
                if description
                else "Authentication failed: Invalid client credentials"
            )
            return AuthenticationError(
                message,
                instance=TOKEN_INSTANCE,
                details=details,
            )

        logger.warning(
            "Token request failed",
            status_code=status,
            retry_after=retry_after,
            error=sanitize_log_message(error_body.error or "") if error_body else None,
        )
        return TokenRequestError(
            f"Token request failed with status {status}",
            status_code=status,
            instance=TOKEN_INSTANCE,
            details=details,
            retry_after=retry_after,
        )


__all__ = [
    "EXPIRY_BUFFER_SECONDS",
    "TokenManager",
    "TokenState",
    "classify_token",
    "should_retry_token_request",
]
