"""Time source used by the lockout service.

Every component that needs "now" takes a ``Clock`` so tests can freeze or
advance time without patching the datetime module.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime read back from storage to aware UTC.

    SQLite and some drivers drop tzinfo on round trip; naive values are
    assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
