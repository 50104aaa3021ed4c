# src/study_companion/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete stores, the notification backend and the reconciler into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.notifier import ConsoleNotifier, DesktopNotifier
from ..core.state import AppState
from ..notifications.baseline_store import SQLiteBaselineStore
from ..notifications.deriver import DeriverOptions
from ..notifications.local_store import LocalNotificationStore
from ..notifications.reconciler import NotificationReconciler
from ..tasks.task_store import TaskStore
from ..timetable.timetable_store import TimetableStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.timetable_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.notifications_db_path.parent.mkdir(parents=True, exist_ok=True)


def deriver_options_from(settings) -> DeriverOptions:
    return DeriverOptions(
        date_only_hour=int(getattr(settings, "date_only_hour", 9)),
        date_only_minute=int(getattr(settings, "date_only_minute", 0)),
        fingerprint_includes_text=bool(getattr(settings, "fingerprint_includes_text", False)),
        lookahead_days=int(getattr(settings, "lookahead_days", 0)),
    )


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)
    timetable_store = TimetableStore(settings.timetable_db_path)
    notification_store = LocalNotificationStore(settings.notifications_db_path)
    baseline = SQLiteBaselineStore(settings.notifications_db_path)

    reconciler = NotificationReconciler(
        task_store,
        timetable_store,
        notification_store,
        baseline,
        options=deriver_options_from(settings),
        cancel_untracked=bool(getattr(settings, "cancel_untracked", False)),
    )

    if getattr(settings, "desktop_notifications", False):
        notifier: ConsoleNotifier = DesktopNotifier(app_name=getattr(settings, "app_name", "study-companion"))
    else:
        notifier = ConsoleNotifier()

    return AppState(
        settings=settings,
        task_store=task_store,
        timetable_store=timetable_store,
        notification_store=notification_store,
        baseline=baseline,
        reconciler=reconciler,
        notifier=notifier,
    )
