"""
Notification dispatch for lockout events.

The lockout service only depends on the ``NotificationSink`` protocol; the
sinks here cover logging, outbound webhooks, and fanning out to several
sinks at once. Sinks may raise; the service treats every publish as
best-effort.
"""

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any, Protocol

import httpx

from lockout.core.clock import utc_now
from lockout.core.config import Settings
from lockout.services.state_machine import LockoutRecord

logger = logging.getLogger(__name__)


class LockoutEvent(str, Enum):
    ATTEMPT_FAILED = "attempt_failed"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class NotificationSink(Protocol):
    async def publish(self, event: LockoutEvent, record: LockoutRecord) -> None: ...


def build_payload(event: LockoutEvent, record: LockoutRecord) -> dict[str, Any]:
    """JSON-safe payload describing a lockout event."""

    def iso(value):
        return value.isoformat() if value is not None else None

    return {
        "event": event.value,
        "identifier": record.identifier,
        "attempts": record.attempts,
        "locked_at": iso(record.locked_at),
        "lock_expires_at": iso(record.lock_expires_at),
        "reason": record.reason,
        "user_id": record.user_id,
        "metadata": record.metadata,
        "timestamp": utc_now().isoformat(),
    }


class LoggingNotificationSink:
    """Write lockout events to the application log."""

    def __init__(self, logger_name: str = "lockout.events"):
        self.logger = logging.getLogger(logger_name)

    async def publish(self, event: LockoutEvent, record: LockoutRecord) -> None:
        level = logging.INFO if event == LockoutEvent.ATTEMPT_FAILED else logging.WARNING
        self.logger.log(
            level,
            "Lockout event %s for %s (attempts=%d, reason=%s)",
            event.value,
            record.identifier,
            record.attempts,
            record.reason,
        )


class WebhookNotificationSink:
    """POST lockout events as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        events: Sequence[LockoutEvent] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.events = set(events) if events is not None else set(LockoutEvent)
        self._transport = transport

    async def publish(self, event: LockoutEvent, record: LockoutRecord) -> None:
        if event not in self.events:
            return
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.url,
                json=build_payload(event, record),
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()


class FanoutNotificationSink:
    """Publish to several sinks; one failing sink does not stop the others."""

    def __init__(self, sinks: Sequence[NotificationSink]):
        self.sinks = list(sinks)

    async def publish(self, event: LockoutEvent, record: LockoutRecord) -> None:
        for sink in self.sinks:
            try:
                await sink.publish(event, record)
            except Exception as e:
                logger.warning(
                    "Notification sink %s failed for %s: %s",
                    type(sink).__name__,
                    event.value,
                    e,
                )


def build_sink(settings: Settings) -> NotificationSink:
    """Logging sink always; webhook sink too when LOCKOUT_WEBHOOK_URL is set."""
    sinks: list[NotificationSink] = [LoggingNotificationSink()]
    if settings.LOCKOUT_WEBHOOK_URL:
        sinks.append(
            WebhookNotificationSink(
                settings.LOCKOUT_WEBHOOK_URL,
                timeout=settings.LOCKOUT_WEBHOOK_TIMEOUT,
                # Per-attempt webhooks would be noisy; only lock transitions go out
                events=[LockoutEvent.LOCKED, LockoutEvent.UNLOCKED],
            )
        )
    return FanoutNotificationSink(sinks)
