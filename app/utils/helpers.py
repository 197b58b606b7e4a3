"""Helper utilities (request helpers, name formatting)."""
from typing import Optional

from fastapi import Request

from app.core.constants import UNKNOWN_IP


def get_client_ip(request: Optional[Request]) -> str:
    """Return client's IP address from request headers or connection info.

    Checks `X-Forwarded-For` first (comma-separated), then falls back to
    `request.client.host`. Returns 'nieznany' if not found.
    """
    if request is None:
        return UNKNOWN_IP

    x_forwarded_for = request.headers.get("x-forwarded-for")
    if x_forwarded_for:
        # X-Forwarded-For can contain a list of IPs
        first = x_forwarded_for.split(",")[0].strip()
        if first:
            return first

    client = getattr(request, "client", None)
    if client and getattr(client, "host", None):
        return client.host

    return UNKNOWN_IP


def build_person_name(
    first_name: Optional[str],
    last_name: Optional[str],
    fallback: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    parts = " ".join(p for p in (first_name, last_name) if p).strip()
    if parts:
        return parts
    if fallback and fallback.strip():
        return fallback
    return default


def room_number_str(number: Optional[int]) -> Optional[str]:
    return None if number is None else str(number)


def unique_preserving_order(values):
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
