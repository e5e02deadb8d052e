"""
Error responses for the lockout HTTP surface.

Two shapes are served:
- admin endpoints wrap failures in ``{"error": {"code", "message", ...}}``
- the access gate answers locked logins with a flat
  ``{"message", "retry_after"}`` body and a ``Retry-After`` header
"""
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from lockout.core.exceptions import StoreUnavailableError


class ErrorCode:
    """Machine-readable codes used in the admin error envelope."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorResponse:
    """Builder for the admin error envelope."""

    @staticmethod
    def create(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> JSONResponse:
        """
        Args:
            code: One of ErrorCode
            message: Text for operators
            status_code: HTTP status code
            details: Extra context such as the identifier involved
            request_id: Correlation ID echoed back to the caller
        """
        error: Dict[str, Any] = {"code": code, "message": message}
        if details:
            error["details"] = details
        if request_id:
            error["request_id"] = request_id
        return JSONResponse(status_code=status_code, content={"error": error})


class HTTPError(HTTPException):
    """
    HTTPException rendered through ErrorResponse.

    Usage:
        raise HTTPError(404, ErrorCode.NOT_FOUND, "Lockout record not found",
                        {"identifier": "email|a@b.c"})
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class LockedError(HTTPException):
    """Raised by the lockout guard dependency when the identifier is locked."""

    def __init__(self, message: str, retry_after: int | None, status_code: int = status.HTTP_423_LOCKED):
        self.message = message
        self.retry_after = retry_after
        super().__init__(status_code=status_code, detail=message)


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or getattr(request.state, "request_id", None) or str(uuid.uuid4())


def locked_response(message: str, retry_after: int | None, status_code: int = status.HTTP_423_LOCKED) -> JSONResponse:
    """Rejection for a locked identifier; Retry-After only when the expiry is known."""
    headers = {}
    if retry_after is not None:
        retry_after = max(0, int(retry_after))
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "retry_after": retry_after},
        headers=headers,
    )


async def http_error_handler(request: Request, exc: HTTPError) -> JSONResponse:
    return ErrorResponse.create(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=_request_id(request),
    )


async def locked_error_handler(request: Request, exc: LockedError) -> JSONResponse:
    return locked_response(exc.message, exc.retry_after, exc.status_code)


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """Admin operations cannot fail open; report the outage."""
    return ErrorResponse.create(
        code=ErrorCode.SERVICE_UNAVAILABLE,
        message="Lockout store unavailable",
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        request_id=_request_id(request),
    )


def not_found(resource: str, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    return HTTPError(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, f"{resource} not found", details)


def forbidden(message: str = "Forbidden") -> HTTPError:
    return HTTPError(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, message)


def unauthorized(message: str = "Unauthorized") -> HTTPError:
    return HTTPError(status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED, message)
