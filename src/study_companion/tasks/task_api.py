# src/study_companion/tasks/task_api.py

from __future__ import annotations

import asyncio
import concurrent.futures
import logging

from ..core.state import AppState
from ..notifications.intents import PassReport
from .task_models import ActionItem, DeadlineIntent

logger = logging.getLogger(__name__)

SYNC_TIMEOUT_SECONDS = 30.0


def request_sync(state: AppState) -> PassReport | None:
    """
    Run a reconcile pass after a change, from synchronous (CLI) code.

    With the background loops running, the pass is submitted to their event
    loop so it is serialized with the periodic passes. Without them (tests,
    one-shot scripts) it runs on a fresh loop.
    """
    if state.runner is not None:
        fut = state.runner.submit(state.reconciler.reconcile())
        try:
            return fut.result(timeout=SYNC_TIMEOUT_SECONDS)
        except concurrent.futures.TimeoutError:
            logger.warning("Sync did not finish within %ss; it continues in background.", SYNC_TIMEOUT_SECONDS)
            return None
    return asyncio.run(state.reconciler.reconcile())


def create_task(
    state: AppState,
    *,
    text: str,
    deadline: DeadlineIntent = DeadlineIntent.NONE,
    date: str | None = None,
    time: str | None = None,
    notes: str | None = None,
) -> ActionItem:
    """Single entry point for task creation: store it, then converge notifications."""
    item = state.task_store.add_item(text=text, deadline=deadline, date=date, time=time, notes=notes)
    request_sync(state)
    return item


def set_task_completed(state: AppState, item_id: str, completed: bool) -> bool:
    changed = state.task_store.set_completed(item_id, completed)
    if changed:
        request_sync(state)
    return changed


def delete_task(state: AppState, item_id: str) -> bool:
    deleted = state.task_store.delete_item(item_id)
    if deleted:
        request_sync(state)
    return deleted


def update_task_notes(state: AppState, item_id: str, notes: str | None) -> None:
    # Notes never affect the fingerprint; no sync needed.
    state.task_store.update_item(item_id, notes=notes)


def update_task(
    state: AppState,
    item_id: str,
    *,
    text: str | None = None,
    deadline: DeadlineIntent | None = None,
    date: str | None = None,
    time: str | None = None,
) -> ActionItem | None:
    """Edit text and/or deadline, then converge notifications. None if the task is gone."""
    if state.task_store.get_item(item_id) is None:
        return None
    state.task_store.update_item(item_id, text=text, deadline=deadline, date=date, time=time)
    request_sync(state)
    return state.task_store.get_item(item_id)
