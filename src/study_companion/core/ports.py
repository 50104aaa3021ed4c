# src/study_companion/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reconciler depends on Protocols instead of concrete implementations, so
storage and the notification backend stay swappable and tests can use fakes.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Protocol

if TYPE_CHECKING:
    from ..notifications.intents import NotificationContent, NotificationRecord
    from ..notifications.local_store import ChannelConfig, PendingNotification
    from ..tasks.task_models import ActionItem
    from ..timetable.timetable_models import LectureSlot


class TaskSource(Protocol):
    """Read-only view of the task store; must include completed items."""

    def list_items(self) -> list[ActionItem]: ...


class ScheduleSource(Protocol):
    def list_slots(self) -> list[LectureSlot]: ...


class NotificationStore(Protocol):
    """
    OS-level scheduling primitive.

    - schedule() returns an opaque handle
    - cancel() of an unknown/already-fired handle is a no-op
    - failures raise NotificationStoreError
    """

    def schedule(self, content: NotificationContent, trigger_at: datetime | None) -> Awaitable[str]: ...

    def cancel(self, notification_id: str) -> Awaitable[None]: ...

    def list_scheduled(self) -> Awaitable[list[str]]: ...


class BaselineRepo(Protocol):
    """Persisted entity_key -> NotificationRecord map (raises PersistenceError)."""

    def load(self) -> dict[str, NotificationRecord]: ...

    def save(self, records: dict[str, NotificationRecord]) -> None: ...


class Notifier(Protocol):
    """Where delivered notifications end up (console, desktop, ...)."""

    def show(self, notification: PendingNotification, channel: ChannelConfig) -> None: ...

    def dismiss(self, notification_id: str) -> None: ...
