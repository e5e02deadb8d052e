"""
Persistent lockout record.

One row per identifier (e.g. ``email|user@example.com``) holding the failed
attempt counter and lock window for the durable backend.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lockout.core.clock import as_utc
from lockout.core.config import settings
from lockout.db.base import Base, TimestampMixin
from lockout.services.state_machine import LockoutRecord


class Lockout(Base, TimestampMixin):
    """Failed attempt counter and lock state for one identifier."""

    __tablename__ = settings.LOCKOUT_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lock_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_record(self) -> LockoutRecord:
        return LockoutRecord(
            identifier=self.identifier,
            attempts=self.attempts or 0,
            locked_at=as_utc(self.locked_at),
            lock_expires_at=as_utc(self.lock_expires_at),
            reason=self.reason,
            metadata=dict(self.meta or {}),
            user_id=self.user_id,
            last_failed_at=as_utc(self.last_failed_at),
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    def apply_record(self, record: LockoutRecord) -> None:
        """Copy mutable state from a record onto this row."""
        self.attempts = record.attempts
        self.locked_at = record.locked_at
        self.lock_expires_at = record.lock_expires_at
        self.last_failed_at = record.last_failed_at
        self.reason = record.reason
        self.meta = dict(record.metadata) or None
        self.user_id = record.user_id

    def __repr__(self) -> str:
        return f"<Lockout {self.identifier} attempts={self.attempts} locked_at={self.locked_at}>"
