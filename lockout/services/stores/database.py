"""
Durable attempt store backed by SQLAlchemy.

Records live until explicitly reset; lock expiry is decided by comparing
``lock_expires_at`` with the clock, or is indefinite when no duration is
configured.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lockout.core.clock import Clock, utc_now
from lockout.core.exceptions import StoreUnavailableError
from lockout.models.lockout import Lockout
from lockout.services.state_machine import LockoutRecord
from lockout.services.stores.base import Apply, AttemptStore, KeyedLock, T

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class DatabaseAttemptStore(AttemptStore):
    """Row-per-identifier store with upsert creation and row-level locking."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], clock: Clock = utc_now):
        self._session_maker = session_maker
        self._clock = clock
        # Serializes same-identifier updates within this process; FOR UPDATE
        # covers other workers on databases that support it.
        self._locks = KeyedLock()

    async def _ensure_row(self, session: AsyncSession, identifier: str) -> None:
        """Insert an open row for identifier unless one already exists."""
        dialect = session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)

        if insert is not None:
            stmt = (
                insert(Lockout)
                .values(identifier=identifier, attempts=0)
                .on_conflict_do_nothing(index_elements=["identifier"])
            )
            await session.execute(stmt)
            return

        exists = await session.scalar(select(Lockout.id).where(Lockout.identifier == identifier))
        if exists is not None:
            return
        try:
            async with session.begin_nested():
                session.add(Lockout(identifier=identifier, attempts=0))
        except IntegrityError:
            # Lost the creation race to another worker; its row is what we want
            logger.debug("Concurrent create for %s, using existing row", identifier)

    async def _locked_row(self, session: AsyncSession, identifier: str) -> Lockout:
        await self._ensure_row(session, identifier)
        result = await session.execute(
            select(Lockout).where(Lockout.identifier == identifier).with_for_update()
        )
        return result.scalar_one()

    async def get(self, identifier: str) -> LockoutRecord | None:
        try:
            async with self._session_maker() as session:
                row = await session.scalar(select(Lockout).where(Lockout.identifier == identifier))
                return row.to_record() if row else None
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def get_or_create(self, identifier: str) -> LockoutRecord:
        record, _ = await self.update(identifier, lambda current: (current, None))
        return record

    async def save(self, record: LockoutRecord) -> LockoutRecord:
        stored, _ = await self.update(record.identifier, lambda _current: (record, None))
        return stored

    async def delete(self, identifier: str) -> None:
        try:
            async with self._locks(identifier):
                async with self._session_maker() as session:
                    async with session.begin():
                        await session.execute(delete(Lockout).where(Lockout.identifier == identifier))
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def update(self, identifier: str, apply: Apply[T]) -> tuple[LockoutRecord, T]:
        try:
            async with self._locks(identifier):
                async with self._session_maker() as session:
                    async with session.begin():
                        row = await self._locked_row(session, identifier)
                        current = row.to_record()
                        updated, result = apply(current)
                        if updated != current:
                            row.apply_record(updated)
                            row.updated_at = self._clock()
                    return row.to_record(), result
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(str(e)) from e
