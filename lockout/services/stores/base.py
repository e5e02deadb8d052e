"""Attempt store contract shared by every backend."""

import asyncio
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeVar

from lockout.services.state_machine import LockoutRecord

T = TypeVar("T")

# Pure transition run inside a store's atomic read-modify-write. Backends with
# optimistic concurrency may call it more than once for a single update.
Apply = Callable[[LockoutRecord], tuple[LockoutRecord, T]]


class KeyedLock:
    """Per-identifier asyncio locks, dropped once no coroutine references them."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __call__(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class AttemptStore(ABC):
    """
    Persistence for lockout records, one record per identifier.

    Implementations raise StoreUnavailableError for any backend failure so
    the service can apply its fail-open policy uniformly.
    """

    @abstractmethod
    async def get(self, identifier: str) -> LockoutRecord | None:
        """Return the record for identifier, or None if there is none."""

    @abstractmethod
    async def get_or_create(self, identifier: str) -> LockoutRecord:
        """Return the record for identifier, creating an open one if absent."""

    @abstractmethod
    async def save(self, record: LockoutRecord) -> LockoutRecord:
        """Persist the full state of record."""

    @abstractmethod
    async def delete(self, identifier: str) -> None:
        """Remove the record for identifier if present."""

    @abstractmethod
    async def update(self, identifier: str, apply: Apply[T]) -> tuple[LockoutRecord, T]:
        """
        Atomically load (or create) a record, transform it and persist it.

        Concurrent updates for the same identifier are serialized, so two
        failures racing on ``attempts = max - 1`` cannot both miss the lock.

        Returns:
            (stored record, value returned by apply)
        """

    async def close(self) -> None:
        """Release backend resources."""
