# tests/test_runner.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from study_companion.connectors.notifier import ConsoleNotifier
from study_companion.notifications.intents import NotificationContent
from study_companion.notifications.local_store import LocalNotificationStore, NotificationState
from study_companion.notifications.runner import deliver_due, restore_displayed, run_delivery_loop, run_reconcile_loop
from study_companion.notifications.setup import HandlerConfig, init_notifications

from .conftest import local
from .fakes import FakeNotifier


@pytest.mark.asyncio
async def test_deliver_due_shows_only_due_notifications(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    notifier = FakeNotifier()

    past = await store.schedule(NotificationContent("Task due now", "Essay"), local(2020, 1, 1, 9, 0))
    await store.schedule(NotificationContent("Task due now", "Far away"), local(2099, 1, 1, 9, 0))

    shown = await deliver_due(store, notifier)

    assert shown == 1
    assert notifier.shown == ["Essay"]
    assert store.get_state(past) == NotificationState.DELIVERED

    # Delivered notifications are not shown twice.
    assert await deliver_due(store, notifier) == 0


@pytest.mark.asyncio
async def test_refresh_trigger_is_not_shown_and_requests_a_pass(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    notifier = FakeNotifier()
    calls: list[int] = []

    async def on_refresh() -> None:
        calls.append(1)

    rid = await store.schedule(
        NotificationContent("Timetable", "Refreshing lecture status...", silent=True, data={"kind": "refresh"}),
        local(2020, 1, 1, 9, 0),
    )
    await store.schedule(
        NotificationContent("Timetable", "Refreshing lecture status...", silent=True, data={"kind": "refresh"}),
        local(2020, 1, 1, 10, 0),
    )

    assert await deliver_due(store, notifier, on_refresh=on_refresh) == 0
    assert notifier.shown == []
    # Several refresh points due at once still produce a single request.
    assert calls == [1]
    assert store.get_state(rid) == NotificationState.DELIVERED


@pytest.mark.asyncio
async def test_cancelled_sticky_status_is_dismissed(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    notifier = ConsoleNotifier()

    status = await store.schedule(NotificationContent("Timetable", "Now: CS101 until 10:00", sticky=True), None)
    await deliver_due(store, notifier)
    assert notifier.status_line == "Timetable: Now: CS101 until 10:00"

    await store.cancel(status)
    await deliver_due(store, notifier)
    assert notifier.status_line is None
    assert store.get_state(status) == NotificationState.CANCELLED


@pytest.mark.asyncio
async def test_handler_can_suppress_banners(tmp_path: Path, capsys) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    init_notifications(store, handler=HandlerConfig(show_banner=False))
    notifier = ConsoleNotifier()

    await store.schedule(NotificationContent("Task due now", "Essay"), None)
    await deliver_due(store, notifier)

    assert "Essay" not in capsys.readouterr().out


def test_init_notifications_is_idempotent(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    first = init_notifications(store, handler=HandlerConfig(play_sound=False))
    second = init_notifications(store, handler=HandlerConfig(play_sound=True))

    assert second is first
    assert store.channel("timetable-silent").importance == "low"


class CountingReconciler:
    def __init__(self) -> None:
        self.calls = 0

    async def reconcile(self):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("pass crashed")
        return None


@pytest.mark.asyncio
async def test_reconcile_loop_survives_crashes_and_cancels_cleanly(monkeypatch) -> None:
    reconciler = CountingReconciler()
    real_sleep = asyncio.sleep

    async def fast_sleep(_seconds: float) -> None:
        await real_sleep(0)

    monkeypatch.setattr("study_companion.notifications.runner.asyncio.sleep", fast_sleep)

    task = asyncio.create_task(run_reconcile_loop(reconciler, interval_seconds=60))
    while reconciler.calls < 3:
        await real_sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert reconciler.calls >= 3


@pytest.mark.asyncio
async def test_delivery_loop_cancels_cleanly(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    notifier = FakeNotifier()
    await store.schedule(NotificationContent("Task", "Essay"), None)

    task = asyncio.create_task(run_delivery_loop(store, notifier, interval_seconds=0.5))
    for _ in range(50):
        if notifier.shown:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert notifier.shown == ["Essay"]


@pytest.mark.asyncio
async def test_status_line_is_shown_again_after_restart(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    await store.schedule(NotificationContent("Timetable", "Now: CS101 until 10:00", sticky=True), None)
    gone = await store.schedule(NotificationContent("Timetable", "Free until 11:00", sticky=True), None)
    await deliver_due(store, ConsoleNotifier())
    await store.cancel(gone)

    # A new process starts with an empty notifier over the same database.
    restarted = ConsoleNotifier()
    assert restore_displayed(LocalNotificationStore(tmp_path / "n.sqlite3"), restarted) == 1
    assert restarted.status_line == "Timetable: Now: CS101 until 10:00"


@pytest.mark.asyncio
async def test_delivery_loop_restores_status_before_first_tick(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    await store.schedule(NotificationContent("Timetable", "Free", sticky=True), None)
    await deliver_due(store, FakeNotifier())

    notifier = FakeNotifier()
    task = asyncio.create_task(run_delivery_loop(store, notifier, interval_seconds=0.5))
    for _ in range(50):
        if notifier.shown:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert notifier.shown == ["Free"]
