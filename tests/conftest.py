from __future__ import annotations

import os
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from pax8_client.auth.token_manager import TokenManager
from pax8_client.config.settings import ClientConfig

from tests.factories import FIXED_NOW, make_config


@pytest.fixture(autouse=True)
def _isolate_pax8_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer PAX8_* variables out of configuration tests."""

    for name in list(os.environ):
        if name.startswith("PAX8_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> ClientConfig:
    return make_config()


@pytest_asyncio.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def token_manager(
    config: ClientConfig,
    http_client: httpx.AsyncClient,
    recorded_sleeps: list[float],
    monkeypatch: pytest.MonkeyPatch,
) -> TokenManager:
    """TokenManager on a frozen clock whose retry sleeps are recorded, not awaited."""

    manager = TokenManager(config, http_client)

    async def _fake_sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    monkeypatch.setattr(manager, "_sleep", _fake_sleep)
    monkeypatch.setattr(manager, "_now", lambda: FIXED_NOW)
    return manager
