# src/study_companion/notifications/intents.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TIMETABLE_ENTITY_KEY = "timetable:current-next"

DEFAULT_CHANNEL = "default"
TIMETABLE_CHANNEL = "timetable-silent"


@dataclass(slots=True, frozen=True)
class NotificationContent:
    title: str
    body: str
    channel: str = DEFAULT_CHANNEL
    sticky: bool = False
    silent: bool = False
    data: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(slots=True, frozen=True)
class NotificationIntent:
    """
    A notification that should exist right now.

    The fingerprint changes iff what the user would observe (trigger instant,
    and for the timetable the displayed text and refresh points) changes.
    """

    entity_key: str
    fingerprint: str
    trigger_at: datetime | None  # None = show immediately
    content: NotificationContent
    refresh_at: tuple[datetime, ...] = ()
    refresh_content: NotificationContent | None = None


@dataclass(slots=True, frozen=True)
class NotificationRecord:
    """What a previous pass issued for one entity (persisted baseline row)."""

    entity_key: str
    notification_id: str
    fingerprint: str
    refresh_ids: tuple[str, ...] = ()

    @property
    def all_ids(self) -> tuple[str, ...]:
        return (self.notification_id, *self.refresh_ids)


@dataclass(slots=True)
class DesiredState:
    intents: dict[str, NotificationIntent] = field(default_factory=dict)
    # Entities whose inputs were malformed this pass: prior records are kept as-is.
    skipped: set[str] = field(default_factory=set)


@dataclass(slots=True)
class PassReport:
    scheduled: list[str] = field(default_factory=list)
    rescheduled: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    carried: list[str] = field(default_factory=list)
    failures: int = 0
    persisted: bool = False

    @property
    def store_calls_made(self) -> bool:
        return bool(self.scheduled or self.rescheduled or self.cancelled)
