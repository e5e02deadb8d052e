"""
Identifier namespacing.

Attempts are tracked under ``<kind>|<normalized value>`` so an email, a
username and an IP address that happen to share text never collide.
"""

from collections.abc import Mapping
from typing import Any

SEPARATOR = "|"
FALLBACK_IDENTIFIER = "unknown|global"


def make_identifier(kind: str, value: Any) -> str:
    """Build a namespaced identifier, lower-casing and trimming the value."""
    return f"{kind}{SEPARATOR}{str(value).strip().lower()}"


def _usable(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, str)):
        return str(value).strip() != ""
    return False


def identifier_from_fields(
    data: Mapping[str, Any],
    field: str,
    secondary_field: str | None = None,
) -> str | None:
    """First usable value among field, then secondary_field, namespaced by its field name."""
    for name in (field, secondary_field):
        if name and _usable(data.get(name)):
            return make_identifier(name, data[name])
    return None


def identifier_from_credentials(
    credentials: Mapping[str, Any] | None,
    field: str = "email",
    secondary_field: str | None = "username",
    ip_address: str | None = None,
) -> str:
    """Identifier for a failed login: credential fields, then IP, then a global bucket."""
    identifier = identifier_from_fields(credentials or {}, field, secondary_field)
    if identifier:
        return identifier
    if ip_address:
        return make_identifier("ip", ip_address)
    return FALLBACK_IDENTIFIER


def identifier_from_principal(
    principal: Any,
    field: str = "email",
    secondary_field: str | None = "username",
    ip_address: str | None = None,
) -> str:
    """
    Identifier for an authenticated principal.

    Accepts a mapping or any object with attributes. Falls back to the
    principal's id, then the IP address, then a global bucket.
    """
    if principal is not None:
        if isinstance(principal, Mapping):
            data = dict(principal)
        else:
            data = {
                name: getattr(principal, name, None)
                for name in (field, secondary_field, "id")
                if name
            }
        identifier = identifier_from_fields(data, field, secondary_field)
        if identifier:
            return identifier
        if data.get("id") is not None:
            return make_identifier("id", data["id"])

    if ip_address:
        return make_identifier("ip", ip_address)
    return FALLBACK_IDENTIFIER
