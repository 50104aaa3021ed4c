# src/study_companion/tasks/selectors.py

"""
Task views used by /list: now, upcoming, unscheduled.

Callers pass open items; completed ones are not filtered here.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..core.errors import MalformedDateError, MalformedTimeError
from ..core.timeutil import parse_date, time_to_minutes
from .task_models import ActionItem

_UNPARSEABLE = 24 * 60


def _time_sort_key(item: ActionItem) -> int:
    try:
        return time_to_minutes(item.time or "")
    except MalformedTimeError:
        return _UNPARSEABLE


def select_now_items(items: Iterable[ActionItem], now: datetime) -> list[ActionItem]:
    """Time-critical items due today, earliest first."""
    today = now.date().isoformat()
    return sorted((i for i in items if i.date == today and i.time), key=_time_sort_key)


def select_upcoming_groups(items: Iterable[ActionItem]) -> list[tuple[str, list[ActionItem]]]:
    """Date-only items grouped by date, dates ascending."""
    groups: dict[str, list[ActionItem]] = {}
    for item in items:
        if item.date and not item.time:
            groups.setdefault(item.date, []).append(item)
    return sorted(groups.items())


def select_unscheduled_items(items: Iterable[ActionItem]) -> list[ActionItem]:
    return [i for i in items if not i.date]


def friendly_date(iso: str) -> str:
    """'2026-02-10' -> 'Tue, Feb 10'; anything unparseable is returned as-is."""
    try:
        d = parse_date(iso)
    except MalformedDateError:
        return iso
    return f"{d:%a}, {d:%b} {d.day}"
