"""Request utility functions."""

import json
from typing import Any
from urllib.parse import parse_qsl

from starlette.requests import Request

# Login bodies are small; larger ones are left to the route
MAX_BODY_SIZE = 64 * 1024


def get_client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """
    Extract the client IP.

    Proxy headers are only consulted when trust_forwarded is set; otherwise a
    client could rotate X-Forwarded-For to dodge per-IP lockouts.

    Checks in order (when trusted):
    1. X-Forwarded-For (may contain chain: "client, proxy1, proxy2")
    2. X-Real-IP (single IP from nginx)
    3. Direct connection IP
    """
    if trust_forwarded:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # First IP in chain is the original client
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def _declared_size(request: Request) -> float:
    """Content-Length as declared; infinite when missing or malformed."""
    try:
        return int(request.headers.get("content-length", ""))
    except ValueError:
        return float("inf")


def parse_body(body: bytes, content_type: str) -> dict[str, Any]:
    """Decode a JSON or urlencoded form body into a flat dict; anything else is empty."""
    if not body:
        return {}

    if content_type.startswith("application/json"):
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    if content_type.startswith("application/x-www-form-urlencoded"):
        try:
            return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=False))
        except UnicodeDecodeError:
            return {}

    return {}


async def request_fields(request: Request, max_body_size: int = MAX_BODY_SIZE) -> dict[str, Any]:
    """
    Candidate identifier fields from a request.

    Precedence: body, then query string, then route parameters. The body is
    only read when Content-Length is declared and within max_body_size.
    """
    fields: dict[str, Any] = {}
    fields.update(request.path_params)
    fields.update(request.query_params)
    if request.method in {"POST", "PUT", "PATCH"} and _declared_size(request) <= max_body_size:
        body = await request.body()
        fields.update(parse_body(body, request.headers.get("content-type", "")))
    return fields
