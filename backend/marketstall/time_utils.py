# Overview: Clock and ISO-8601 helpers. Stored timestamps are naive UTC.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column holds."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    """Calendar day in UTC; breakdown and day lists default to it."""
    return utcnow().date()


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2024-06-10T09:30:00Z", "2024-06-10 09:30:00+02:00" or a bare
    "2024-06-10T09:30" (taken as UTC) -> naive UTC datetime.

    Blank input gives None; anything else unparsable raises ValueError.
    """
    raw = (value or "").strip()
    if not raw:
        return None
    if raw[-1] in "zZ":
        raw = raw[:-1] + "+00:00"
    return _as_naive_utc(datetime.fromisoformat(raw))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """"YYYY-MM-DD" (a datetime string is cut to its date part); blank -> None."""
    raw = (value or "").strip()
    if not raw:
        return None
    return date.fromisoformat(raw[:10])


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing Z; naive input counts as UTC."""
    if dt is None:
        return None
    stamp = _as_naive_utc(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
