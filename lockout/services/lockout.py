"""
Lockout service.

Tracks failed authentication attempts per identifier and enforces the lock
policy by running state machine transitions against an attempt store.

Failure policy:
- Notification sinks are best-effort; their errors are logged and dropped.
- Lock checks fail open: if the store is unreachable the identifier is
  reported as not locked rather than locking every user out.
- Mutations raise StoreUnavailableError so admin callers can report it;
  the auth listeners and access gate catch it and carry on.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from lockout.core.clock import Clock, utc_now
from lockout.core.exceptions import StoreUnavailableError
from lockout.core.logging import LogHelper
from lockout.services import state_machine
from lockout.services.notification import LockoutEvent, NotificationSink
from lockout.services.state_machine import LockoutPolicy, LockoutRecord, Outcome
from lockout.services.stores.base import AttemptStore

logger = LogHelper(__name__)


@dataclass(frozen=True)
class LockStatus:
    """Read-only view of an identifier's lock state."""

    identifier: str
    locked: bool
    attempts: int
    retry_after: int | None = None
    locked_at: datetime | None = None
    lock_expires_at: datetime | None = None
    reason: str | None = None

    @classmethod
    def from_record(cls, record: LockoutRecord | None, identifier: str, now: datetime) -> "LockStatus":
        if record is None:
            return cls(identifier=identifier, locked=False, attempts=0)
        locked = record.is_locked(now)
        return cls(
            identifier=identifier,
            locked=locked,
            attempts=record.attempts,
            retry_after=record.seconds_until_unlock(now),
            locked_at=record.locked_at if locked else None,
            lock_expires_at=record.lock_expires_at if locked else None,
            reason=record.reason if locked else None,
        )


class LockoutService:
    """Record failures, answer lock queries, and lock/unlock identifiers."""

    def __init__(
        self,
        store: AttemptStore,
        policy: LockoutPolicy | None = None,
        sink: NotificationSink | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.policy = policy or LockoutPolicy()
        self.sink = sink
        self.clock = clock

    async def _notify(self, event: LockoutEvent, record: LockoutRecord) -> None:
        if self.sink is None:
            return
        try:
            await self.sink.publish(event, record)
        except Exception as e:
            logger.warning(
                "Lockout notification failed",
                lockout_event=event.value,
                identifier=record.identifier,
                error=str(e),
            )

    async def record_failed_attempt(
        self,
        identifier: str,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LockoutRecord:
        """
        Record a failed authentication attempt for identifier.

        Locks the identifier once the attempt count reaches max_attempts.
        Attempts against an active lock are ignored and do not extend it.

        Raises:
            StoreUnavailableError: If the attempt store cannot be reached
        """
        now = self.clock()

        def apply(current: LockoutRecord) -> tuple[LockoutRecord, tuple[Outcome, int]]:
            updated, outcome = state_machine.record_failure(
                current, now, self.policy, user_id=user_id, metadata=metadata
            )
            return updated, (outcome, state_machine.counted_failures(current, now, self.policy))

        record, (outcome, counted) = await self.store.update(identifier, apply)

        if outcome == Outcome.ALREADY_LOCKED:
            logger.debug("Failed attempt ignored, identifier already locked", identifier=identifier)
            return record

        # The locking attempt is reported with its count, not the reset counter
        await self._notify(LockoutEvent.ATTEMPT_FAILED, replace(record, attempts=counted))

        if outcome == Outcome.BECAME_LOCKED:
            logger.warning(
                "Identifier locked after too many failed attempts",
                identifier=identifier,
                max_attempts=self.policy.max_attempts,
                lock_expires_at=record.lock_expires_at.isoformat() if record.lock_expires_at else None,
            )
            await self._notify(LockoutEvent.LOCKED, record)

        return record

    async def is_locked(self, identifier: str) -> bool:
        """True when identifier has an active lock. Fails open."""
        status = await self.get_status(identifier)
        return status.locked if status is not None else False

    async def get_status(self, identifier: str) -> LockStatus | None:
        """
        Lock status for identifier.

        Returns:
            LockStatus, or None when the store is unavailable
        """
        try:
            record = await self.store.get(identifier)
        except StoreUnavailableError as e:
            logger.warning("Lockout store unavailable, allowing request", identifier=identifier, error=e.reason)
            return None
        return LockStatus.from_record(record, identifier, self.clock())

    async def seconds_until_unlock(self, identifier: str) -> int | None:
        status = await self.get_status(identifier)
        return status.retry_after if status is not None else None

    async def lock(
        self,
        identifier: str,
        user_id: str | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LockoutRecord:
        """Lock identifier now, regardless of its attempt count."""
        now = self.clock()
        record, outcome = await self.store.update(
            identifier,
            lambda current: state_machine.lock(
                current, now, self.policy, reason=reason, metadata=metadata, user_id=user_id
            ),
        )
        if outcome == Outcome.LOCKED:
            logger.warning("Identifier locked explicitly", identifier=identifier, reason=reason)
            await self._notify(LockoutEvent.LOCKED, record)
        return record

    async def unlock(self, identifier: str, reset_attempts: bool = True) -> LockoutRecord | None:
        """
        Lift the lock on identifier.

        Returns:
            The updated record, or None if identifier has never been seen
        """
        if await self.store.get(identifier) is None:
            return None

        now = self.clock()
        record, outcome = await self.store.update(
            identifier,
            lambda current: state_machine.unlock(current, now, reset_attempts=reset_attempts),
        )
        if outcome == Outcome.UNLOCKED:
            logger.info("Identifier unlocked", identifier=identifier, reset_attempts=reset_attempts)
            await self._notify(LockoutEvent.UNLOCKED, record)
        return record

    async def get_attempts(self, identifier: str) -> int:
        """Failed attempts counted for identifier (0 if unknown)."""
        record = await self.store.get(identifier)
        return record.attempts if record is not None else 0

    async def reset_attempts(self, identifier: str) -> LockoutRecord | None:
        """
        Clear the counter and any lock, as after a successful login.

        Returns:
            The updated record, or None if identifier has never been seen
        """
        if await self.store.get(identifier) is None:
            return None

        now = self.clock()

        def apply(current: LockoutRecord):
            updated, outcome = state_machine.reset(current, now)
            return updated, (outcome, current.is_locked(now))

        record, (outcome, was_locked) = await self.store.update(identifier, apply)
        if outcome == Outcome.RESET:
            logger.debug("Attempts reset", identifier=identifier, was_locked=was_locked)
        if was_locked:
            await self._notify(LockoutEvent.UNLOCKED, record)
        return record
