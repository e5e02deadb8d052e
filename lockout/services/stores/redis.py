"""
Ephemeral attempt store backed by Redis hashes.

Each identifier maps to one hash at ``<namespace>:<identifier>``. The key's
TTL carries the expiry semantics:

- open with attempts: expires after the decay window
- time-boxed lock: expires when the lock does
- indefinite lock: no TTL
- open with zero attempts: key deleted (absence == open, 0 attempts)

Read-modify-write uses WATCH/MULTI so concurrent workers retry instead of
losing updates.
"""

import json
import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from lockout.core.clock import Clock, as_utc, utc_now
from lockout.core.exceptions import StoreUnavailableError
from lockout.services.state_machine import LockoutRecord
from lockout.services.stores.base import Apply, AttemptStore, T

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "lockout"
MAX_WATCH_RETRIES = 50

_TIMESTAMP_FIELDS = ("locked_at", "lock_expires_at", "last_failed_at", "created_at", "updated_at")


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def encode_record(record: LockoutRecord) -> dict[str, str]:
    """Flatten a record into hash fields, omitting unset values."""
    fields: dict[str, str] = {"attempts": str(record.attempts)}
    for name in _TIMESTAMP_FIELDS:
        value = getattr(record, name)
        if value is not None:
            fields[name] = value.isoformat()
    if record.reason is not None:
        fields["reason"] = record.reason
    if record.user_id is not None:
        fields["user_id"] = record.user_id
    if record.metadata:
        fields["metadata"] = json.dumps(record.metadata, default=str)
    return fields


def decode_record(identifier: str, raw: dict) -> LockoutRecord:
    fields = {_text(k): _text(v) for k, v in raw.items()}
    timestamps = {
        name: as_utc(datetime.fromisoformat(fields[name]))
        for name in _TIMESTAMP_FIELDS
        if fields.get(name)
    }
    return LockoutRecord(
        identifier=identifier,
        attempts=max(0, int(fields.get("attempts", 0))),
        reason=fields.get("reason"),
        user_id=fields.get("user_id"),
        metadata=json.loads(fields["metadata"]) if fields.get("metadata") else {},
        **timestamps,
    )


class RedisAttemptStore(AttemptStore):
    """TTL-indexed store; entries vanish on their own once stale."""

    def __init__(
        self,
        redis: Redis,
        namespace: str = DEFAULT_NAMESPACE,
        decay_window: timedelta | None = None,
        clock: Clock = utc_now,
    ):
        self.redis = redis
        self.namespace = namespace
        self.decay_window = decay_window
        self._clock = clock

    def _key(self, identifier: str) -> str:
        return f"{self.namespace}:{identifier}"

    def _new(self, identifier: str) -> LockoutRecord:
        now = self._clock()
        return LockoutRecord(identifier=identifier, created_at=now, updated_at=now)

    def _ttl_ms(self, record: LockoutRecord) -> int | None:
        """Milliseconds until the key should disappear; None keeps it."""
        if record.locked_at is not None:
            if record.lock_expires_at is None:
                return None
            remaining = (record.lock_expires_at - self._clock()).total_seconds()
            return max(1, math.ceil(remaining * 1000))
        if self.decay_window is not None:
            return max(1, math.ceil(self.decay_window.total_seconds() * 1000))
        return None

    def _queue_write(self, pipe, record: LockoutRecord) -> None:
        key = self._key(record.identifier)
        pipe.delete(key)
        if record.locked_at is None and record.attempts == 0:
            return
        pipe.hset(key, mapping=encode_record(record))
        ttl = self._ttl_ms(record)
        if ttl is not None:
            pipe.pexpire(key, ttl)

    async def get(self, identifier: str) -> LockoutRecord | None:
        try:
            raw = await self.redis.hgetall(self._key(identifier))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e
        return decode_record(identifier, raw) if raw else None

    async def get_or_create(self, identifier: str) -> LockoutRecord:
        record = await self.get(identifier)
        return record if record is not None else self._new(identifier)

    async def save(self, record: LockoutRecord) -> LockoutRecord:
        stored, _ = await self.update(
            record.identifier,
            lambda current: (
                replace(record, created_at=current.created_at, updated_at=self._clock()),
                None,
            ),
        )
        return stored

    async def delete(self, identifier: str) -> None:
        try:
            await self.redis.delete(self._key(identifier))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def update(self, identifier: str, apply: Apply[T]) -> tuple[LockoutRecord, T]:
        key = self._key(identifier)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                for attempt in range(MAX_WATCH_RETRIES):
                    try:
                        await pipe.watch(key)
                        raw = await pipe.hgetall(key)
                        current = decode_record(identifier, raw) if raw else self._new(identifier)
                        updated, result = apply(current)
                        if updated == current:
                            await pipe.reset()
                            return current, result
                        pipe.multi()
                        self._queue_write(pipe, updated)
                        await pipe.execute()
                        return updated, result
                    except WatchError:
                        logger.debug("Concurrent write on %s, retrying (%d)", key, attempt + 1)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e

        raise StoreUnavailableError(f"gave up after {MAX_WATCH_RETRIES} contended writes on {key}")
