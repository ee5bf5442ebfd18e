"""
Timestamp helpers.

Everything is stored and compared in UTC. SQLite hands timestamps back
naive, so every comparison goes through `ensure_utc` first. Date-only
inputs ("2025-01-10") are read in the portal timezone: start fields at
00:00:00 local, end fields at 23:59:59 local.
"""

from __future__ import annotations

import datetime
from zoneinfo import ZoneInfo

from .config import settings


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(ts: datetime.datetime) -> datetime.datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    return ts.astimezone(datetime.timezone.utc)


def portal_tz() -> ZoneInfo:
    try:
        return ZoneInfo(settings.portal_timezone)
    except Exception:
        return ZoneInfo("UTC")


def parse_date(value: str) -> datetime.date | None:
    """Parse a YYYY-MM-DD string; None when blank or malformed."""
    s = (value or "").strip()
    if not s:
        return None
    try:
        return datetime.date.fromisoformat(s)
    except ValueError:
        return None


def parse_boundary(value, *, end_of_day: bool = False) -> datetime.datetime | None:
    """Coerce an API timestamp input into an aware UTC datetime.

    Accepts datetimes, dates and ISO strings. Naive datetimes are taken as
    portal-local wall time.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, datetime.date):
        dt = _day_boundary(value, end_of_day)
    else:
        s = str(value).strip()
        if len(s) == 10:
            day = parse_date(s)
            if day is None:
                raise ValueError(f"Invalid date: {value}")
            dt = _day_boundary(day, end_of_day)
        else:
            try:
                dt = datetime.datetime.fromisoformat(s.replace("Z", "+00:00"))
            except ValueError:
                raise ValueError(f"Invalid datetime: {value}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=portal_tz())
    return dt.astimezone(datetime.timezone.utc)


def _day_boundary(day: datetime.date, end_of_day: bool) -> datetime.datetime:
    clock = datetime.time(23, 59, 59) if end_of_day else datetime.time(0, 0, 0)
    return datetime.datetime.combine(day, clock)
