"""In-process attempt store for tests and single-worker deployments."""

from dataclasses import replace

from lockout.core.clock import Clock, utc_now
from lockout.services.state_machine import LockoutRecord
from lockout.services.stores.base import Apply, AttemptStore, KeyedLock, T


class MemoryAttemptStore(AttemptStore):
    """Dict-backed store; updates are serialized per identifier."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._records: dict[str, LockoutRecord] = {}
        self._locks = KeyedLock()

    def _new(self, identifier: str) -> LockoutRecord:
        now = self._clock()
        return LockoutRecord(identifier=identifier, created_at=now, updated_at=now)

    async def get(self, identifier: str) -> LockoutRecord | None:
        return self._records.get(identifier)

    async def get_or_create(self, identifier: str) -> LockoutRecord:
        async with self._locks(identifier):
            return self._records.setdefault(identifier, self._new(identifier))

    async def save(self, record: LockoutRecord) -> LockoutRecord:
        async with self._locks(record.identifier):
            existing = self._records.get(record.identifier)
            created_at = existing.created_at if existing else self._clock()
            record = replace(record, created_at=created_at, updated_at=self._clock())
            self._records[record.identifier] = record
            return record

    async def delete(self, identifier: str) -> None:
        async with self._locks(identifier):
            self._records.pop(identifier, None)

    async def update(self, identifier: str, apply: Apply[T]) -> tuple[LockoutRecord, T]:
        async with self._locks(identifier):
            current = self._records.get(identifier) or self._new(identifier)
            updated, result = apply(current)
            self._records[identifier] = updated
            return updated, result
