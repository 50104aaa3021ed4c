# src/study_companion/timetable/resolver.py

from __future__ import annotations

"""
Timetable resolver.

Pure functions over (slots, now): no I/O, no clock reads, same input -> same output.

The week is periodic: only the weekday and wall-clock time of `now` matter,
never its calendar date (except when composing boundary instants for today).
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.timeutil import compose_local_instant, minutes_of_day
from .timetable_models import DayOfWeek, LectureSlot


@dataclass(slots=True, frozen=True)
class LectureResolution:
    current: LectureSlot | None
    next: LectureSlot | None
    # 0 = next is today; >0 only when lookahead found it on a later day
    next_day_offset: int = 0


def today_schedule(slots: Sequence[LectureSlot], now: datetime) -> list[LectureSlot]:
    """Today's slots sorted by start time (stable for equal starts)."""
    today = DayOfWeek.from_datetime(now)
    return sorted((s for s in slots if s.day_of_week == today), key=lambda s: s.start_minutes)


def resolve(slots: Sequence[LectureSlot], now: datetime) -> LectureResolution:
    """
    Lecture in progress and next lecture, today only.

    - current: first slot in stored order with start <= now < end
      (overlapping input is not validated; the first match wins)
    - next: if current, earliest slot starting at/after current's end;
      otherwise earliest slot starting strictly after now
    """
    today = DayOfWeek.from_datetime(now)
    minutes_now = minutes_of_day(now)
    today_slots = [s for s in slots if s.day_of_week == today]

    current = next(
        (s for s in today_slots if s.start_minutes <= minutes_now < s.end_minutes),
        None,
    )

    if current is not None:
        after = current.end_minutes
        candidates = [s for s in today_slots if s.start_minutes >= after]
    else:
        candidates = [s for s in today_slots if s.start_minutes > minutes_now]

    upcoming = min(candidates, key=lambda s: s.start_minutes) if candidates else None
    return LectureResolution(current=current, next=upcoming)


def resolve_with_lookahead(
    slots: Sequence[LectureSlot], now: datetime, days: int
) -> LectureResolution:
    """
    Like resolve(), but when nothing is left today, take the first lecture of the
    first following day (up to `days` days ahead) that has one.
    """
    base = resolve(slots, now)
    if base.next is not None or days <= 0:
        return base

    for offset in range(1, min(days, 7) + 1):
        day = DayOfWeek.from_datetime(now + timedelta(days=offset))
        day_slots = [s for s in slots if s.day_of_week == day]
        if day_slots:
            first = min(day_slots, key=lambda s: s.start_minutes)
            return LectureResolution(current=base.current, next=first, next_day_offset=offset)

    return base


def describe(resolution: LectureResolution) -> str:
    current, upcoming = resolution.current, resolution.next
    if current is not None:
        return f"Now: {current.subject_name} until {current.end_time}"
    if upcoming is not None:
        if resolution.next_day_offset > 0:
            return f"Next: {upcoming.subject_name} on {upcoming.day_of_week.value} at {upcoming.start_time}"
        return f"Next: {upcoming.subject_name} at {upcoming.start_time}"
    return "No upcoming lectures today"


def future_boundaries(slots: Sequence[LectureSlot], now: datetime) -> list[datetime]:
    """Start/end instants of today's slots strictly after `now`, sorted and de-duplicated."""
    today = now.date()
    points: set[datetime] = set()
    for slot in today_schedule(slots, now):
        for hhmm in (slot.start_time, slot.end_time):
            instant = compose_local_instant(today, hhmm)
            if instant > now:
                points.add(instant)
    return sorted(points)
