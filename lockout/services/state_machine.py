"""
Lockout state machine.

Pure decision logic: given the current record for an identifier, an event
and the policy, compute the next record and what happened. Nothing here
touches storage or the clock; callers pass ``now`` in.

Policy decisions:
- Attempts reset to 0 at the moment a lock is applied, so the next window
  after expiry starts from a clean counter.
- Failed attempts against an active lock change nothing (no extension, no
  counting), so attack traffic cannot keep a lock alive forever.
- A reset (successful login) clears both the counter and any lock.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from lockout.core.exceptions import InvalidConfigurationError

TOO_MANY_ATTEMPTS = "too_many_attempts"


class Outcome(str, Enum):
    ATTEMPT_RECORDED = "attempt_recorded"
    BECAME_LOCKED = "became_locked"
    ALREADY_LOCKED = "already_locked"
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    RESET = "reset"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class LockoutPolicy:
    """Thresholds and durations applied by the state machine."""

    max_attempts: int = 5
    decay_window: timedelta | None = None
    lock_duration: timedelta | None = timedelta(minutes=15)

    def __post_init__(self):
        if self.max_attempts <= 0:
            raise InvalidConfigurationError(
                f"max_attempts must be a positive integer, got {self.max_attempts}"
            )
        for name in ("decay_window", "lock_duration"):
            value = getattr(self, name)
            if value is not None and value <= timedelta(0):
                raise InvalidConfigurationError(f"{name} must be a positive duration")


@dataclass(frozen=True)
class LockoutRecord:
    """Attempt counter and lock state for one identifier."""

    identifier: str
    attempts: int = 0
    locked_at: datetime | None = None
    lock_expires_at: datetime | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    last_failed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_locked(self, now: datetime) -> bool:
        if self.locked_at is None:
            return False
        if self.lock_expires_at is None:
            return True
        return now < self.lock_expires_at

    def seconds_until_unlock(self, now: datetime) -> int | None:
        """Seconds left on a time-boxed lock; None when open or indefinite."""
        if not self.is_locked(now) or self.lock_expires_at is None:
            return None
        return max(0, math.ceil((self.lock_expires_at - now).total_seconds()))


def _clear_lock(record: LockoutRecord) -> LockoutRecord:
    return replace(record, locked_at=None, lock_expires_at=None, reason=None)


def _apply_lock(
    record: LockoutRecord,
    now: datetime,
    policy: LockoutPolicy,
    reason: str | None,
) -> LockoutRecord:
    expires_at = now + policy.lock_duration if policy.lock_duration is not None else None
    return replace(
        record,
        locked_at=now,
        lock_expires_at=expires_at,
        reason=reason,
        updated_at=now,
    )


def _expire_stale(record: LockoutRecord, now: datetime, policy: LockoutPolicy) -> LockoutRecord:
    """Drop an expired lock or a decayed counter before applying an event."""
    if record.locked_at is not None and not record.is_locked(now):
        record = replace(_clear_lock(record), attempts=0)
    if (
        policy.decay_window is not None
        and record.locked_at is None
        and record.attempts > 0
        and record.last_failed_at is not None
        and now - record.last_failed_at >= policy.decay_window
    ):
        record = replace(record, attempts=0)
    return record


def _merge_metadata(record: LockoutRecord, metadata: dict[str, Any] | None) -> LockoutRecord:
    if not metadata:
        return record
    return replace(record, metadata={**record.metadata, **metadata})


def _attach_user(record: LockoutRecord, user_id: str | None) -> LockoutRecord:
    if user_id is None or record.user_id == user_id:
        return record
    return replace(record, user_id=user_id)


def record_failure(
    record: LockoutRecord,
    now: datetime,
    policy: LockoutPolicy,
    user_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> tuple[LockoutRecord, Outcome]:
    """Apply a failed authentication attempt."""
    if record.is_locked(now):
        return record, Outcome.ALREADY_LOCKED

    record = _expire_stale(record, now, policy)
    record = _attach_user(record, user_id)
    record = _merge_metadata(record, metadata)

    attempts = record.attempts + 1
    if attempts >= policy.max_attempts:
        locked = _apply_lock(record, now, policy, TOO_MANY_ATTEMPTS)
        locked = replace(
            locked,
            attempts=0,
            last_failed_at=now,
            metadata={**locked.metadata, "max_attempts": policy.max_attempts},
        )
        return locked, Outcome.BECAME_LOCKED

    return (
        replace(record, attempts=attempts, last_failed_at=now, updated_at=now),
        Outcome.ATTEMPT_RECORDED,
    )


def counted_failures(record: LockoutRecord, now: datetime, policy: LockoutPolicy) -> int:
    """Attempt number the next failure against record is counted as."""
    return _expire_stale(record, now, policy).attempts + 1


def reset(record: LockoutRecord, now: datetime) -> tuple[LockoutRecord, Outcome]:
    """Return to Open with a zero counter. Idempotent."""
    cleared = replace(_clear_lock(record), attempts=0, last_failed_at=None)
    if cleared == record:
        return record, Outcome.NO_CHANGE
    return replace(cleared, updated_at=now), Outcome.RESET


def lock(
    record: LockoutRecord,
    now: datetime,
    policy: LockoutPolicy,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: str | None = None,
) -> tuple[LockoutRecord, Outcome]:
    """Lock immediately regardless of the attempt count."""
    if record.is_locked(now):
        return record, Outcome.NO_CHANGE

    record = _expire_stale(record, now, policy)
    record = _attach_user(record, user_id)
    record = _merge_metadata(record, metadata)
    return _apply_lock(record, now, policy, reason), Outcome.LOCKED


def unlock(
    record: LockoutRecord,
    now: datetime,
    reset_attempts: bool = True,
) -> tuple[LockoutRecord, Outcome]:
    """Lift a lock, optionally keeping the attempt counter."""
    if not record.is_locked(now):
        if record.locked_at is not None:
            # Expired lock: tidy the fields but it is not an unlock event
            return replace(_clear_lock(record), updated_at=now), Outcome.NO_CHANGE
        return record, Outcome.NO_CHANGE

    unlocked = _clear_lock(record)
    if reset_attempts:
        unlocked = replace(unlocked, attempts=0)
    return replace(unlocked, updated_at=now), Outcome.UNLOCKED
