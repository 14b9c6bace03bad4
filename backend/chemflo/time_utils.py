# Overview: Timestamp helpers; the database stores UTC as naive datetimes.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time without tzinfo (the form every timestamp column holds)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Turn a movement-filter bound into a naive UTC datetime.

    Accepted forms:
      2024-01-15                  midnight UTC of that day
      2024-01-15T08:30            taken as UTC
      2024-01-15T08:30:00Z        UTC
      2024-01-15T10:30:00+02:00   shifted to UTC

    Missing or blank input gives None; anything unparseable raises ValueError.
    """
    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None

    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"

    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as ISO-8601 seconds precision with a trailing Z."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
