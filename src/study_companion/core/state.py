# src/study_companion/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..connectors.notifier import ConsoleNotifier
    from ..notifications.baseline_store import SQLiteBaselineStore
    from ..notifications.local_store import LocalNotificationStore
    from ..notifications.reconciler import NotificationReconciler
    from ..notifications.runner import BackgroundRunner
    from ..tasks.task_store import TaskStore
    from ..timetable.timetable_store import TimetableStore


@dataclass
class AppState:
    """Everything the CLI layer needs, wired once in cli.bootstrap."""

    settings: Any

    task_store: TaskStore
    timetable_store: TimetableStore
    notification_store: LocalNotificationStore
    baseline: SQLiteBaselineStore
    reconciler: NotificationReconciler
    notifier: ConsoleNotifier

    # Set by cli.main once the background loops are running.
    runner: BackgroundRunner | None = None
