# Overview: UTC clock, ISO-8601 parsing and "Z" serialization for order and contract dates.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_before(days: int, now: Optional[datetime] = None) -> datetime:
    """Naive UTC instant `days` days before now; rows dated earlier are past the cutoff."""
    return (now or utcnow()) - timedelta(days=days)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a date or datetime string from a request body.

    Blank input gives None. A bare date means midnight UTC, a naive datetime
    is taken as UTC, and an offset (or trailing Z) is converted to UTC. The
    result is always naive. Raises ValueError on malformed input.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC with a trailing Z, to the second. Naive input is UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"
