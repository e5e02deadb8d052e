"""Shared redis.asyncio client for the ephemeral attempt store."""

import redis.asyncio as redis

from lockout.core.config import settings

redis_client: redis.Redis | None = None


def get_redis(url: str | None = None) -> redis.Redis:
    """
    Process-wide client, created on first use.

    Building the client does not connect; the pool opens connections on the
    first command.
    """
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(url or settings.REDIS_URL, decode_responses=True)
    return redis_client


async def close_redis() -> None:
    """Close the pool and forget the client. Safe to call when none was created."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
