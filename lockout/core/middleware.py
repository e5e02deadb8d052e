"""Access-gate middleware that rejects requests for locked identifiers."""

import logging
from collections.abc import Iterable
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from lockout.core.errors import locked_response
from lockout.services.lockout import LockoutService
from lockout.utils.identifier import identifier_from_fields, make_identifier
from lockout.utils.request import MAX_BODY_SIZE, get_client_ip, request_fields

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Too many login attempts. Please try again later."


async def resolve_request_identifier(
    request: Request,
    identifier_field: str = "email",
    secondary_field: str | None = "username",
    trust_forwarded: bool = False,
    max_body_size: int = MAX_BODY_SIZE,
) -> str | None:
    """
    Identifier a request should be checked against.

    Uses identifier_field, then secondary_field (body, query, route params),
    then the client IP. None when nothing usable is present. Bodies larger
    than max_body_size are not inspected.
    """
    fields = await request_fields(request, max_body_size)
    identifier = identifier_from_fields(fields, identifier_field, secondary_field)
    if identifier:
        return identifier

    ip_address = get_client_ip(request, trust_forwarded=trust_forwarded)
    if ip_address and ip_address != "unknown":
        return make_identifier("ip", ip_address)
    return None


class LockoutGateMiddleware(BaseHTTPMiddleware):
    """Block requests to protected paths while their identifier is locked.

    Forwards the request untouched when the identifier is open, when none
    can be resolved, or when the lockout store is unavailable.
    """

    def __init__(
        self,
        app: ASGIApp,
        service: LockoutService,
        protected_paths: Iterable[str] | None = ("/login",),
        identifier_field: str = "email",
        secondary_field: str | None = "username",
        message: str = DEFAULT_MESSAGE,
        status_code: int = 423,
        trust_forwarded: bool = False,
        max_body_size: int = MAX_BODY_SIZE,
    ) -> None:
        super().__init__(app)
        self.service = service
        # None guards every path
        self.protected_paths = (
            {self._normalize(p) for p in protected_paths} if protected_paths is not None else None
        )
        self.identifier_field = identifier_field
        self.secondary_field = secondary_field
        self.message = message
        self.status_code = status_code
        self.trust_forwarded = trust_forwarded
        self.max_body_size = max_body_size

    @staticmethod
    def _normalize(path: str) -> str:
        return path.rstrip("/") or "/"

    def _is_protected(self, request: Request) -> bool:
        if self.protected_paths is None:
            return True
        return self._normalize(request.url.path) in self.protected_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._is_protected(request):
            return await call_next(request)

        identifier = await resolve_request_identifier(
            request,
            self.identifier_field,
            self.secondary_field,
            trust_forwarded=self.trust_forwarded,
            max_body_size=self.max_body_size,
        )
        if identifier is None:
            return await call_next(request)

        status = await self.service.get_status(identifier)
        if status is not None and status.locked:
            logger.info("Rejected request for locked identifier %s on %s", identifier, request.url.path)
            return locked_response(self.message, status.retry_after, self.status_code)

        return await call_next(request)
