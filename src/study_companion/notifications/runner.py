# src/study_companion/notifications/runner.py

from __future__ import annotations

"""
Polling loops.

- run_reconcile_loop: one pass at startup (launch trigger), then one every
  interval_seconds.
- run_delivery_loop: re-shows sticky notifications still on display, then
  hands due notifications from the local store to a Notifier; a delivered
  refresh trigger asks for a reconcile pass so the timetable status follows
  lecture boundaries.
- start_in_background: both loops on a private event loop in a daemon thread.

To stop a loop, cancel the coroutine/task.
"""

import asyncio
import concurrent.futures
import contextlib
import logging
import sqlite3
import threading
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.ports import Notifier
from ..core.timeutil import local_now
from .local_store import LocalNotificationStore
from .reconciler import NotificationReconciler

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_reconcile_loop(
        reconciler: NotificationReconciler,
        *,
        interval_seconds: float = 60.0,
) -> None:
    sleep_s = max(1.0, float(interval_seconds))

    while True:
        try:
            await reconciler.reconcile()
        except Exception:
            logger.exception("reconcile pass crashed")

        await asyncio.sleep(sleep_s)


async def deliver_due(
        store: LocalNotificationStore,
        notifier: Notifier,
        *,
        on_refresh: Callable[[], Awaitable[object]] | None = None,
) -> int:
    """Deliver everything due now; returns how many notifications were shown."""
    for nid in store.take_dismissals():
        try:
            notifier.dismiss(nid)
        except Exception:
            logger.exception("dismiss failed id=%s", nid)

    shown = 0
    refresh_requested = False
    for pending in store.due(local_now()):
        store.mark_delivered(pending.id)

        if pending.content.data.get("kind") == "refresh":
            refresh_requested = True
            continue

        try:
            notifier.show(pending, store.channel(pending.content.channel))
            shown += 1
        except Exception:
            logger.exception("notifier.show failed id=%s", pending.id)

    if refresh_requested and on_refresh is not None:
        await on_refresh()
    return shown


def restore_displayed(store: LocalNotificationStore, notifier: Notifier) -> int:
    """Show sticky notifications delivered by a previous run again; the notifier starts empty."""
    restored = 0
    for shown in store.displayed_sticky():
        try:
            notifier.show(shown, store.channel(shown.content.channel))
            restored += 1
        except Exception:
            logger.exception("restoring displayed notification failed id=%s", shown.id)
    return restored


async def run_delivery_loop(
        store: LocalNotificationStore,
        notifier: Notifier,
        *,
        interval_seconds: float = 5.0,
        on_refresh: Callable[[], Awaitable[object]] | None = None,
) -> None:
    sleep_s = max(0.5, float(interval_seconds))

    try:
        store.prune()
    except sqlite3.Error:
        logger.exception("pruning finished notifications failed")

    try:
        restore_displayed(store, notifier)
    except sqlite3.Error:
        logger.exception("restoring displayed notifications failed")

    while True:
        try:
            await deliver_due(store, notifier, on_refresh=on_refresh)
        except Exception:
            logger.exception("delivery tick failed")

        await asyncio.sleep(sleep_s)


@dataclass
class BackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule a coroutine on the background loop from another thread."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal background loop stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_until_stopped(
        reconciler: NotificationReconciler,
        store: LocalNotificationStore,
        notifier: Notifier,
        stop_event: asyncio.Event,
        reconcile_interval_seconds: float,
        delivery_interval_seconds: float,
) -> None:
    tasks = [
        asyncio.create_task(run_reconcile_loop(reconciler, interval_seconds=reconcile_interval_seconds)),
        asyncio.create_task(
            run_delivery_loop(
                store,
                notifier,
                interval_seconds=delivery_interval_seconds,
                on_refresh=reconciler.reconcile,
            )
        ),
    ]
    try:
        await stop_event.wait()
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def start_in_background(
        reconciler: NotificationReconciler,
        store: LocalNotificationStore,
        notifier: Notifier,
        *,
        reconcile_interval_seconds: float = 60.0,
        delivery_interval_seconds: float = 5.0,
) -> BackgroundRunner | None:
    """
    Run the reconcile + delivery loops on their own event loop in a daemon thread,
    so the blocking console REPL can run in the main thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                _run_until_stopped(
                    reconciler,
                    store,
                    notifier,
                    stop_event,
                    reconcile_interval_seconds,
                    delivery_interval_seconds,
                )
            )
        finally:
            with contextlib.suppress(RuntimeError):
                loop.close()

    t = threading.Thread(target=runner, name="notifications", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Notification thread did not initialize properly.")
        return None

    logger.info("Notification loops started (reconcile every %ss).", reconcile_interval_seconds)
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
