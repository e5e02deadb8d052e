from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lockout.core.clock import Clock, utc_now
from lockout.core.config import Settings
from lockout.services.stores.base import AttemptStore
from lockout.services.stores.database import DatabaseAttemptStore
from lockout.services.stores.memory import MemoryAttemptStore
from lockout.services.stores.redis import RedisAttemptStore


def build_store(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    redis: Redis | None = None,
    clock: Clock = utc_now,
) -> AttemptStore:
    """Select the attempt store backend named by LOCKOUT_BACKEND."""
    if settings.LOCKOUT_BACKEND == "database":
        if session_maker is None:
            raise ValueError("database backend requires a session maker")
        return DatabaseAttemptStore(session_maker, clock=clock)

    if settings.LOCKOUT_BACKEND == "redis":
        if redis is None:
            raise ValueError("redis backend requires a Redis client")
        return RedisAttemptStore(
            redis,
            namespace=settings.LOCKOUT_STORE_NAMESPACE,
            decay_window=settings.decay_window,
            clock=clock,
        )

    return MemoryAttemptStore(clock=clock)


__all__ = [
    "AttemptStore",
    "DatabaseAttemptStore",
    "MemoryAttemptStore",
    "RedisAttemptStore",
    "build_store",
]
