# src/study_companion/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DeadlineClass(StrEnum):
    """Derived from which of date/time are set; never stored."""

    NONE = "none"
    DATE = "date"  # date-only: fires at the default hour
    TIME = "time"  # time-critical: fires at date+time


class DeadlineIntent(StrEnum):
    """What the user asked for when creating/editing a task."""

    NONE = "none"
    DATE = "date"
    TIME = "time"


@dataclass(slots=True)
class ActionItem:
    id: str
    text: str
    date: str | None  # YYYY-MM-DD
    time: str | None  # HH:MM, only meaningful with date
    notes: str | None
    created_at: str  # ISO 8601 instant
    completed_at: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def deadline_class(self) -> DeadlineClass:
        if not self.date:
            return DeadlineClass.NONE
        if not self.time:
            return DeadlineClass.DATE
        return DeadlineClass.TIME

    @property
    def entity_key(self) -> str:
        return f"action:{self.id}"
