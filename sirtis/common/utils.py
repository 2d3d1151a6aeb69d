"""Small helpers shared by services and routers."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from fastapi import Request

# Checked in order; the first present header wins.
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip", "x-client-ip")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def client_ip(request: Request) -> Optional[str]:
    """Best-effort client address, honouring proxy headers."""
    for header in CLIENT_IP_HEADERS:
        raw = request.headers.get(header)
        if raw:
            return raw.split(",")[0].strip()
    return request.client.host if request.client else None


def request_meta(request: Request) -> dict[str, Optional[str]]:
    """IP + user agent, in the shape audit helpers accept as kwargs."""
    return {
        "ip_address": client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }


def jsonable(value: Any) -> Any:
    """Convert ORM attribute values to JSON-storable primitives."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value
