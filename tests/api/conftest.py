"""Fixtures for API tests: an app wired to an in-memory lockout service."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from lockout.core.config import Settings
from lockout.main import create_app
from lockout.services.lockout import LockoutService
from lockout.services.stores import MemoryAttemptStore

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def admin_token() -> str:
    return ADMIN_TOKEN


@pytest.fixture
def api_settings() -> Settings:
    return Settings(LOCKOUT_BACKEND="memory", LOCKOUT_ADMIN_TOKEN=ADMIN_TOKEN, LOCKOUT_MAX_ATTEMPTS=3)


@pytest.fixture
def api_service(clock, policy, sink) -> LockoutService:
    return LockoutService(MemoryAttemptStore(clock=clock), policy=policy, sink=sink, clock=clock)


@pytest.fixture
def app(api_settings, api_service) -> FastAPI:
    return create_app(settings=api_settings, service=api_service)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Admin-Token": ADMIN_TOKEN},
    ) as ac:
        yield ac
