# src/study_companion/notifications/deriver.py

from __future__ import annotations

"""
Desired-state deriver.

Turns the current tasks + weekly timetable into the set of notification
intents that should exist at `now`. Pure: the caller supplies the inputs and
the clock reading; nothing here touches storage or the notification store.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..core.errors import MalformedDateError, MalformedTimeError
from ..core.timeutil import compose_local_instant, minutes_to_time, parse_date
from ..tasks.task_models import ActionItem, DeadlineClass
from ..timetable.resolver import describe, future_boundaries, resolve, resolve_with_lookahead
from ..timetable.timetable_models import LectureSlot
from .intents import (
    TIMETABLE_CHANNEL,
    TIMETABLE_ENTITY_KEY,
    DesiredState,
    NotificationContent,
    NotificationIntent,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DeriverOptions:
    date_only_hour: int = 9
    date_only_minute: int = 0
    # Extension: also reschedule when the task text changes.
    fingerprint_includes_text: bool = False
    # Extension: when nothing is left today, look this many days ahead for "next".
    lookahead_days: int = 0

    @property
    def date_only_time(self) -> str:
        return minutes_to_time(self.date_only_hour * 60 + self.date_only_minute)


def _iso_utc(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat()


def task_schedule_at(item: ActionItem, options: DeriverOptions) -> datetime | None:
    """
    When a task's notification should fire (None = never).

    Raises MalformedDateError / MalformedTimeError for bad stored strings,
    including a time without a date.
    """
    if item.time and not item.date:
        raise MalformedDateError(item.date)

    cls = item.deadline_class
    if cls == DeadlineClass.NONE:
        return None

    day = parse_date(item.date or "")
    if cls == DeadlineClass.DATE:
        return compose_local_instant(day, options.date_only_time)
    return compose_local_instant(day, item.time or "")


def task_intent(
    item: ActionItem, now: datetime, options: DeriverOptions
) -> NotificationIntent | None:
    if item.is_completed:
        return None

    schedule_at = task_schedule_at(item, options)
    if schedule_at is None or schedule_at <= now:
        return None

    key = item.entity_key
    fingerprint = f"{key}:{_iso_utc(schedule_at)}"
    if options.fingerprint_includes_text:
        fingerprint += f":{item.text}"

    title = "Task due now" if item.deadline_class == DeadlineClass.TIME else "Task due today"
    return NotificationIntent(
        entity_key=key,
        fingerprint=fingerprint,
        trigger_at=schedule_at,
        content=NotificationContent(
            title=title,
            body=item.text,
            data={"kind": "action", "task_id": item.id},
        ),
    )


def timetable_intent(
    slots: Sequence[LectureSlot], now: datetime, options: DeriverOptions
) -> NotificationIntent:
    """
    The single persistent status notification plus its refresh points.

    Each boundary crossed during the day drops out of `refresh_at`, so the
    fingerprint changes every time the status may have changed.
    """
    if options.lookahead_days > 0:
        resolution = resolve_with_lookahead(slots, now, options.lookahead_days)
    else:
        resolution = resolve(slots, now)

    display = describe(resolution)
    boundaries = tuple(future_boundaries(slots, now))
    fingerprint = f"timetable:{display}:{','.join(_iso_utc(b) for b in boundaries)}"

    return NotificationIntent(
        entity_key=TIMETABLE_ENTITY_KEY,
        fingerprint=fingerprint,
        trigger_at=None,
        content=NotificationContent(
            title="Timetable",
            body=display,
            channel=TIMETABLE_CHANNEL,
            sticky=True,
            silent=True,
            data={"kind": "timetable"},
        ),
        refresh_at=boundaries,
        refresh_content=NotificationContent(
            title="Timetable",
            body="Refreshing lecture status...",
            channel=TIMETABLE_CHANNEL,
            silent=True,
            data={"kind": "refresh"},
        ),
    )


def derive_desired_state(
    items: Iterable[ActionItem],
    slots: Sequence[LectureSlot],
    now: datetime,
    options: DeriverOptions | None = None,
) -> DesiredState:
    """
    Everything that should be scheduled at `now`.

    `now` must be timezone-aware (see core.timeutil.local_now).
    """
    options = options or DeriverOptions()
    state = DesiredState()

    for item in items:
        try:
            intent = task_intent(item, now, options)
        except (MalformedDateError, MalformedTimeError) as e:
            logger.warning("Skipping task %s this pass: %s", item.id, e)
            state.skipped.add(item.entity_key)
            continue
        if intent is not None:
            state.intents[intent.entity_key] = intent

    try:
        tt = timetable_intent(slots, now, options)
    except MalformedTimeError as e:
        logger.warning("Skipping timetable status this pass: %s", e)
        state.skipped.add(TIMETABLE_ENTITY_KEY)
    else:
        state.intents[tt.entity_key] = tt

    return state
