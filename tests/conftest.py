"""Pytest fixtures for lockout tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from lockout.db.session import create_session_maker, create_tables
from lockout.services.lockout import LockoutService
from lockout.services.notification import LockoutEvent
from lockout.services.state_machine import LockoutPolicy, LockoutRecord
from lockout.services.stores import (
    AttemptStore,
    DatabaseAttemptStore,
    MemoryAttemptStore,
    RedisAttemptStore,
)

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingSink:
    """Notification sink that keeps every published event."""

    def __init__(self):
        self.events: list[tuple[LockoutEvent, LockoutRecord]] = []

    async def publish(self, event: LockoutEvent, record: LockoutRecord) -> None:
        self.events.append((event, record))

    def names(self) -> list[str]:
        return [event.value for event, _ in self.events]

    def count(self, event: LockoutEvent) -> int:
        return sum(1 for e, _ in self.events if e == event)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def policy() -> LockoutPolicy:
    return LockoutPolicy(max_attempts=3, lock_duration=timedelta(minutes=15))


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lockout.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis_client(redis_server):
    client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    yield client
    await client.flushall()


@pytest.fixture
def memory_store(clock) -> MemoryAttemptStore:
    return MemoryAttemptStore(clock=clock)


@pytest.fixture
def database_store(sqlite_engine, clock) -> DatabaseAttemptStore:
    return DatabaseAttemptStore(create_session_maker(sqlite_engine), clock=clock)


@pytest.fixture
def redis_store(redis_client, clock) -> RedisAttemptStore:
    return RedisAttemptStore(redis_client, namespace="test-lockout", clock=clock)


@pytest_asyncio.fixture(params=["memory", "database", "redis"])
async def store(request, clock, tmp_path) -> AsyncGenerator[AttemptStore, None]:
    """Every attempt store backend, one test run each."""
    if request.param == "memory":
        yield MemoryAttemptStore(clock=clock)

    elif request.param == "database":
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lockout.db'}")
        await create_tables(engine)
        yield DatabaseAttemptStore(create_session_maker(engine), clock=clock)
        await engine.dispose()

    else:
        client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
        yield RedisAttemptStore(client, namespace="test-lockout", clock=clock)
        await client.flushall()


@pytest.fixture
def service(store, policy, sink, clock) -> LockoutService:
    return LockoutService(store, policy=policy, sink=sink, clock=clock)
