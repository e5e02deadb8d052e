import secrets
from typing import Annotated

from fastapi import Depends, Header, Request

from lockout.core.config import Settings
from lockout.core.errors import LockedError, forbidden, unauthorized
from lockout.core.middleware import DEFAULT_MESSAGE, resolve_request_identifier
from lockout.services.lockout import LockoutService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_lockout_service(request: Request) -> LockoutService:
    return request.app.state.lockout_service


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Gate admin endpoints on the X-Admin-Token header."""
    expected = settings.LOCKOUT_ADMIN_TOKEN
    if not expected:
        raise forbidden("Lockout admin API is disabled")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise unauthorized("Invalid admin token")


class LockoutGuard:
    """
    Route dependency that rejects the request while its identifier is locked.

    Unlike the middleware it runs after routing, so route parameters are
    available for identifier resolution. Resolves to the identifier checked,
    or None if none could be determined.

    Usage:
        @router.post("/login", dependencies=[Depends(LockoutGuard())])
    """

    def __init__(
        self,
        identifier_field: str = "email",
        secondary_field: str | None = "username",
        message: str = DEFAULT_MESSAGE,
        status_code: int = 423,
        trust_forwarded: bool = False,
    ):
        self.identifier_field = identifier_field
        self.secondary_field = secondary_field
        self.message = message
        self.status_code = status_code
        self.trust_forwarded = trust_forwarded

    async def __call__(
        self,
        request: Request,
        service: Annotated[LockoutService, Depends(get_lockout_service)],
    ) -> str | None:
        identifier = await resolve_request_identifier(
            request,
            self.identifier_field,
            self.secondary_field,
            trust_forwarded=self.trust_forwarded,
        )
        if identifier is None:
            return None

        status = await service.get_status(identifier)
        if status is not None and status.locked:
            raise LockedError(self.message, status.retry_after, self.status_code)
        return identifier
