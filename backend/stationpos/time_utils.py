from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_day_range(start_date: Optional[str], end_date: Optional[str]) -> tuple[datetime, datetime]:
    """
    Turn two "YYYY-MM-DD" strings into an inclusive UTC-naive window.

    start -> 00:00:00.000000 of the first day
    end   -> 23:59:59.999999 of the last day

    Raises ValueError when either bound is missing, malformed, or reversed.
    """
    if not start_date or not end_date:
        raise ValueError("startDate and endDate are required")

    try:
        first = date.fromisoformat(start_date.strip())
        last = date.fromisoformat(end_date.strip())
    except ValueError:
        raise ValueError("dates must use the YYYY-MM-DD format")

    if last < first:
        raise ValueError("endDate must not be before startDate")

    return datetime.combine(first, time.min), datetime.combine(last, time.max)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
