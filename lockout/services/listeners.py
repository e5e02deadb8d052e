"""
Authentication event listeners.

Glue between the host application's "login failed" / "login succeeded"
signals and the lockout service. Both handlers are safe to call from a login
path: store outages are logged and swallowed.
"""

import logging
from collections.abc import Mapping
from typing import Any

from lockout.core.exceptions import StoreUnavailableError
from lockout.services.lockout import LockoutService
from lockout.services.state_machine import LockoutRecord
from lockout.utils.identifier import identifier_from_credentials, identifier_from_principal

logger = logging.getLogger(__name__)


class AuthEventListener:
    """Translate authentication outcomes into lockout service calls."""

    def __init__(
        self,
        service: LockoutService,
        identifier_field: str = "email",
        secondary_field: str | None = "username",
    ):
        self.service = service
        self.identifier_field = identifier_field
        self.secondary_field = secondary_field

    async def on_failed(
        self,
        credentials: Mapping[str, Any] | None,
        ip_address: str | None = None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LockoutRecord | None:
        """Handle a failed login carrying the submitted credentials."""
        identifier = identifier_from_credentials(
            credentials, self.identifier_field, self.secondary_field, ip_address
        )
        extra = dict(metadata or {})
        if ip_address:
            extra.setdefault("ip_address", ip_address)

        try:
            return await self.service.record_failed_attempt(
                identifier, user_id=user_id, metadata=extra or None
            )
        except StoreUnavailableError as e:
            logger.warning("Could not record failed attempt for %s: %s", identifier, e.reason)
            return None

    async def on_succeeded(
        self,
        principal: Any,
        ip_address: str | None = None,
    ) -> LockoutRecord | None:
        """Handle a successful login: clear the counter and any lock."""
        identifier = identifier_from_principal(
            principal, self.identifier_field, self.secondary_field, ip_address
        )
        try:
            return await self.service.reset_attempts(identifier)
        except StoreUnavailableError as e:
            logger.warning("Could not reset attempts for %s: %s", identifier, e.reason)
            return None
