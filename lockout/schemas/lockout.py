from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from lockout.services.lockout import LockStatus
from lockout.services.state_machine import LockoutRecord


class LockRequest(BaseModel):
    reason: str | None = Field(default="manual", max_length=64)
    user_id: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] | None = None


class UnlockRequest(BaseModel):
    reset_attempts: bool = True


class LockStatusResponse(BaseModel):
    identifier: str
    locked: bool
    attempts: int
    retry_after: int | None = None
    locked_at: datetime | None = None
    lock_expires_at: datetime | None = None
    reason: str | None = None

    @classmethod
    def from_status(cls, status: LockStatus) -> "LockStatusResponse":
        return cls(
            identifier=status.identifier,
            locked=status.locked,
            attempts=status.attempts,
            retry_after=status.retry_after,
            locked_at=status.locked_at,
            lock_expires_at=status.lock_expires_at,
            reason=status.reason,
        )


class LockoutRecordResponse(BaseModel):
    identifier: str
    attempts: int
    locked: bool
    locked_at: datetime | None = None
    lock_expires_at: datetime | None = None
    reason: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = {}
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: LockoutRecord, now: datetime) -> "LockoutRecordResponse":
        return cls(
            identifier=record.identifier,
            attempts=record.attempts,
            locked=record.is_locked(now),
            locked_at=record.locked_at,
            lock_expires_at=record.lock_expires_at,
            reason=record.reason,
            user_id=record.user_id,
            metadata=record.metadata,
            updated_at=record.updated_at,
        )
