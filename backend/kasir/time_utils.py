from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


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


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string.

    - None / "" -> None
    - anything else that is not a calendar date -> ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown timezone: {tz_name}")


def local_date(tz_name: str, at: Optional[datetime] = None) -> date:
    """
    Calendar date in the given timezone for a UTC-naive instant (default now).

    Invoice numbers carry the store's local date, not the server's.
    """
    if at is None:
        at = utcnow()
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(get_zone(tz_name)).date()


def local_day_bounds(
    tz_name: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Convert an inclusive local date range to UTC-naive [start, end) bounds.

    Either side may be None (open range).
    """
    zone = get_zone(tz_name)
    start = end = None
    if date_from is not None:
        start = (
            datetime.combine(date_from, time.min, tzinfo=zone)
            .astimezone(timezone.utc)
            .replace(tzinfo=None)
        )
    if date_to is not None:
        end = (
            datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=zone)
            .astimezone(timezone.utc)
            .replace(tzinfo=None)
        )
    return start, end
