"""Database session configuration with connection pooling."""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lockout.core.config import settings

# Configurable pool settings via environment variables
# Allows tuning for different deployment sizes (single-worker dev vs multi-worker prod)
pool_size = int(os.getenv("DATABASE_POOL_SIZE", "20"))
max_overflow = int(os.getenv("DATABASE_MAX_OVERFLOW", "40"))


def create_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine; pool tuning is skipped for SQLite."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.DEBUG)

    return create_async_engine(
        url,
        echo=settings.DEBUG,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=30,  # Seconds to wait before giving up on getting a connection
        pool_recycle=3600,  # Recycle connections after 1 hour (prevents stale connections)
        pool_pre_ping=True,  # Verify connections before using them
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine | None = None
async_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session maker, creating the engine lazily."""
    global engine, async_session_maker
    if async_session_maker is None:
        engine = create_engine()
        async_session_maker = create_session_maker(engine)
    return async_session_maker


async def dispose_engine() -> None:
    """Dispose the process-wide engine. Called during application shutdown."""
    global engine, async_session_maker
    if engine is not None:
        await engine.dispose()
    engine = None
    async_session_maker = None


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables. Development convenience; production uses alembic."""
    from lockout.db.base import Base
    import lockout.models  # noqa: F401  (registers mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
