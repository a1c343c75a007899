from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx

from pax8_client.auth.token_manager import (
    EXPIRY_BUFFER_SECONDS,
    TokenManager,
    TokenState,
)
from pax8_client.errors import (
    AuthenticationError,
    NetworkError,
    RequestTimeoutError,
    TokenRefreshError,
    TokenRequestError,
)

from tests.factories import (
    FIXED_NOW,
    TOKEN_URL,
    error_response,
    make_config,
    token_response,
)
from tests.stubs import StubTransport


@pytest.mark.asyncio
async def test_happy_path_builds_token_from_response(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=token_response("abc", 3600))

    token = await token_manager.ensure_valid_token()

    assert token.value == "abc"
    assert token.token_type == "Bearer"
    assert token.expires_at == FIXED_NOW + 3600
    assert token_manager.state is TokenState.VALID
    assert token_manager.get_token_expires_at() == FIXED_NOW + 3600

    sent = json.loads(route.calls.last.request.content)
    assert sent == {
        "client_id": "test-client",
        "client_secret": "test-secret",
        "audience": "https://api.pax8.com",
        "grant_type": "client_credentials",
    }
    assert route.calls.last.request.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_cached_token_is_reused(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=token_response())

    first = await token_manager.ensure_valid_token()
    second = await token_manager.ensure_valid_token()

    assert first is second
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=token_response("shared"))

    tokens = await asyncio.gather(
        *(token_manager.ensure_valid_token() for _ in range(5))
    )

    assert route.call_count == 1
    assert {token.value for token in tokens} == {"shared"}
    assert len({id(token) for token in tokens}) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_failure(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=error_response(401, error="invalid_client")
    )

    results = await asyncio.gather(
        *(token_manager.ensure_valid_token() for _ in range(4)),
        return_exceptions=True,
    )

    assert route.call_count == 1
    assert all(isinstance(result, AuthenticationError) for result in results)
    assert len({id(result) for result in results}) == 1


@pytest.mark.asyncio
async def test_refresh_handle_is_cleared_after_completion(config) -> None:
    transport = StubTransport(token_delay=0.01)
    async with httpx.AsyncClient(transport=transport) as client:
        manager = TokenManager(config, client)

        pending = asyncio.ensure_future(manager.ensure_valid_token())
        await asyncio.sleep(0)
        assert manager.state is TokenState.REFRESHING

        await pending
        await asyncio.sleep(0)
        assert manager.state is TokenState.VALID

        await manager.refresh_token()

    assert transport.token_calls == 2


@pytest.mark.asyncio
async def test_cancelled_joiner_does_not_abort_shared_refresh(config) -> None:
    transport = StubTransport(token_delay=0.05)
    async with httpx.AsyncClient(transport=transport) as client:
        manager = TokenManager(config, client)

        impatient = asyncio.ensure_future(manager.ensure_valid_token())
        patient = asyncio.ensure_future(manager.ensure_valid_token())
        await asyncio.sleep(0.01)
        impatient.cancel()

        token = await patient

    assert impatient.cancelled()
    assert token.value == "abc"
    assert transport.token_calls == 1


@pytest.mark.asyncio
async def test_settled_refresh_is_never_rejoined(
    http_client: httpx.AsyncClient, respx_mock: respx.Router
) -> None:
    manager = TokenManager(make_config(retry_attempts=1), http_client)
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[error_response(503), token_response("fresh")]
    )

    first = asyncio.ensure_future(manager.ensure_valid_token())
    await asyncio.sleep(0)
    failed_refresh = manager._refresh_task
    assert failed_refresh is not None
    with pytest.raises(TokenRefreshError):
        await first

    # Handle still pointing at the finished task, as before its done callback runs.
    manager._refresh_task = failed_refresh
    token = await manager.ensure_valid_token()

    assert token.value == "fresh"
    assert route.call_count == 2
    assert manager.state is TokenState.VALID


@pytest.mark.asyncio
async def test_caller_arriving_as_refresh_settles_starts_new_cycle(
    http_client: httpx.AsyncClient, respx_mock: respx.Router
) -> None:
    manager = TokenManager(make_config(retry_attempts=1), http_client)
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[error_response(503), token_response("fresh")]
    )

    async def call_once_settled():
        while manager._refresh_task is None:
            await asyncio.sleep(0)
        pending = manager._refresh_task
        while not pending.done():
            await asyncio.sleep(0)
        return await manager.ensure_valid_token()

    late = asyncio.create_task(call_once_settled())
    with pytest.raises(TokenRefreshError):
        await manager.ensure_valid_token()

    assert (await late).value == "fresh"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_is_token_valid_tracks_expiry(
    token_manager: TokenManager,
    respx_mock: respx.Router,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=token_response(expires_in=600))
    assert not token_manager.is_token_valid()

    await token_manager.ensure_valid_token()
    assert token_manager.is_token_valid()

    monkeypatch.setattr(token_manager, "_now", lambda: FIXED_NOW + 599.999)
    assert token_manager.is_token_valid()

    monkeypatch.setattr(token_manager, "_now", lambda: FIXED_NOW + 600)
    assert not token_manager.is_token_valid()
    assert token_manager.state is TokenState.EXPIRED


@pytest.mark.asyncio
async def test_auto_refresh_triggers_inside_expiry_buffer(
    token_manager: TokenManager,
    respx_mock: respx.Router,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[token_response("first", 3600), token_response("second", 3600)]
    )
    await token_manager.ensure_valid_token()

    just_before_buffer = FIXED_NOW + 3600 - EXPIRY_BUFFER_SECONDS - 1
    monkeypatch.setattr(token_manager, "_now", lambda: just_before_buffer)
    assert (await token_manager.ensure_valid_token()).value == "first"
    assert route.call_count == 1

    at_buffer = FIXED_NOW + 3600 - EXPIRY_BUFFER_SECONDS
    monkeypatch.setattr(token_manager, "_now", lambda: at_buffer)
    assert token_manager.is_token_valid()
    assert token_manager.state is TokenState.EXPIRING_SOON

    refreshed = await token_manager.ensure_valid_token()

    assert refreshed.value == "second"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_without_auto_refresh_only_expiry_forces_refresh(
    http_client: httpx.AsyncClient,
    respx_mock: respx.Router,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    manager = TokenManager(make_config(auto_refresh=False), http_client)
    monkeypatch.setattr(manager, "_now", lambda: FIXED_NOW)
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[token_response("first"), token_response("second")]
    )
    await manager.ensure_valid_token()

    monkeypatch.setattr(manager, "_now", lambda: FIXED_NOW + 3600 - 60)
    assert manager.state is TokenState.VALID
    assert (await manager.ensure_valid_token()).value == "first"

    monkeypatch.setattr(manager, "_now", lambda: FIXED_NOW + 3600)
    assert (await manager.ensure_valid_token()).value == "second"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_refresh_token_ignores_cached_validity(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[token_response("first"), token_response("manual")]
    )
    await token_manager.ensure_valid_token()

    token = await token_manager.refresh_token()

    assert token.value == "manual"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_unauthorized_is_terminal_and_not_wrapped(
    http_client: httpx.AsyncClient, respx_mock: respx.Router
) -> None:
    manager = TokenManager(make_config(retry_attempts=5), http_client)
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=error_response(
            401, error="invalid_client", description="Client secret is wrong"
        )
    )

    with pytest.raises(AuthenticationError) as excinfo:
        await manager.ensure_valid_token()

    assert route.call_count == 1
    assert excinfo.value.status_code == 401
    assert excinfo.value.error_type == "authentication_error"
    assert "Client secret is wrong" in str(excinfo.value)
    assert excinfo.value.details == {
        "error": "invalid_client",
        "error_description": "Client secret is wrong",
    }


@pytest.mark.asyncio
async def test_unauthorized_without_body_uses_default_message(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=error_response(401))

    with pytest.raises(AuthenticationError) as excinfo:
        await token_manager.ensure_valid_token()

    assert str(excinfo.value) == "Authentication failed: Invalid client credentials"


@pytest.mark.asyncio
async def test_bad_request_is_not_retried(
    token_manager: TokenManager,
    respx_mock: respx.Router,
    recorded_sleeps: list[float],
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        return_value=error_response(400, error="invalid_request")
    )

    with pytest.raises(TokenRefreshError) as excinfo:
        await token_manager.ensure_valid_token()

    assert route.call_count == 1
    assert excinfo.value.attempts == 1
    assert isinstance(excinfo.value.inner_error, TokenRequestError)
    assert excinfo.value.status_code == 400
    assert recorded_sleeps == []


@pytest.mark.asyncio
async def test_server_errors_exhaust_retry_budget(
    token_manager: TokenManager,
    respx_mock: respx.Router,
    recorded_sleeps: list[float],
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(return_value=error_response(503))

    with pytest.raises(TokenRefreshError) as excinfo:
        await token_manager.ensure_valid_token()

    assert route.call_count == 3
    assert excinfo.value.attempts == 3
    assert "after 3 attempt(s)" in str(excinfo.value)
    assert "Token request failed with status 503" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, TokenRequestError)
    assert len(recorded_sleeps) == 2
    assert 1.0 <= recorded_sleeps[0] < 2.0
    assert 2.0 <= recorded_sleeps[1] < 3.0
    assert token_manager.state is TokenState.ABSENT


@pytest.mark.asyncio
async def test_retry_after_is_honoured(
    token_manager: TokenManager,
    respx_mock: respx.Router,
    recorded_sleeps: list[float],
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[
            error_response(429, headers={"Retry-After": "2"}),
            token_response("after-wait"),
        ]
    )

    token = await token_manager.ensure_valid_token()

    assert token.value == "after-wait"
    assert route.call_count == 2
    assert recorded_sleeps == [2.0]


@pytest.mark.asyncio
async def test_network_errors_are_retried(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    route = respx_mock.post(TOKEN_URL).mock(
        side_effect=[httpx.ConnectError("connection refused"), token_response("ok")]
    )

    token = await token_manager.ensure_valid_token()

    assert token.value == "ok"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_exhausted_network_errors_are_wrapped(
    http_client: httpx.AsyncClient, respx_mock: respx.Router
) -> None:
    manager = TokenManager(make_config(retry_attempts=1), http_client)
    respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("unreachable"))

    with pytest.raises(TokenRefreshError) as excinfo:
        await manager.ensure_valid_token()

    assert isinstance(excinfo.value.inner_error, NetworkError)
    assert excinfo.value.attempts == 1


@pytest.mark.asyncio
async def test_slow_token_endpoint_times_out() -> None:
    transport = StubTransport(token_delay=1.0)
    config = make_config(timeout=20, retry_attempts=1)
    async with httpx.AsyncClient(transport=transport) as client:
        manager = TokenManager(config, client)

        with pytest.raises(TokenRefreshError) as excinfo:
            await manager.ensure_valid_token()

    assert isinstance(excinfo.value.inner_error, RequestTimeoutError)
    assert "Token request timed out" in str(excinfo.value)


@pytest.mark.asyncio
async def test_malformed_success_body_is_a_token_request_error(
    http_client: httpx.AsyncClient, respx_mock: respx.Router
) -> None:
    manager = TokenManager(make_config(retry_attempts=1), http_client)
    respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"token_type": "Bearer"})
    )

    with pytest.raises(TokenRefreshError) as excinfo:
        await manager.ensure_valid_token()

    assert isinstance(excinfo.value.inner_error, TokenRequestError)


@pytest.mark.asyncio
async def test_failed_refresh_drops_cached_token(
    token_manager: TokenManager, respx_mock: respx.Router
) -> None:
    respx_mock.post(TOKEN_URL).mock(
        side_effect=[token_response("first"), error_response(400)]
    )
    await token_manager.ensure_valid_token()

    with pytest.raises(TokenRefreshError):
        await token_manager.refresh_token()

    assert token_manager.get_token_expires_at() is None
    assert not token_manager.is_token_valid()
