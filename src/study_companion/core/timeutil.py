# src/study_companion/core/timeutil.py

"""
Wall-clock helpers.

Nothing here knows about time zones beyond "the device's local zone":
dates and times are stored as plain strings and composed into aware local
datetimes on demand. DST gaps/overlaps are resolved by the platform
(`datetime.astimezone()` on a naive value), not by us.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time

from .errors import MalformedDateError, MalformedTimeError

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(hhmm: str) -> int:
    if not isinstance(hhmm, str):
        raise MalformedTimeError(hhmm)
    m = _TIME_RE.match(hhmm)
    if not m:
        raise MalformedTimeError(hhmm)
    return int(m.group(1)) * 60 + int(m.group(2))


def minutes_to_time(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time(hhmm: str) -> time:
    minutes = time_to_minutes(hhmm)
    return time(minutes // 60, minutes % 60)


def parse_date(iso: str) -> date:
    if not isinstance(iso, str) or not _DATE_RE.match(iso):
        raise MalformedDateError(iso)
    try:
        return date.fromisoformat(iso)
    except ValueError as e:
        # e.g. 2026-02-30
        raise MalformedDateError(iso) from e


def compose_local_instant(day: date, hhmm: str) -> datetime:
    """Combine a calendar date and an HH:MM wall-clock time into an aware local datetime."""
    return datetime.combine(day, parse_time(hhmm)).astimezone()


def minutes_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def local_now() -> datetime:
    return datetime.now().astimezone()


def format_time_12h(hhmm: str) -> str:
    """'09:30' -> '9:30 AM', '13:05' -> '1:05 PM'."""
    minutes = time_to_minutes(hhmm)
    h, m = divmod(minutes, 60)
    period = "PM" if h >= 12 else "AM"
    return f"{h % 12 or 12}:{m:02d} {period}"
