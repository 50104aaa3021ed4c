# tests/test_notifier.py

from __future__ import annotations

from pathlib import Path

import pytest

from study_companion.connectors.notifier import ConsoleNotifier, DesktopNotifier, should_ring, urgency_for
from study_companion.notifications.intents import TIMETABLE_CHANNEL, NotificationContent
from study_companion.notifications.local_store import ChannelConfig, LocalNotificationStore, PendingNotification
from study_companion.notifications.runner import deliver_due
from study_companion.notifications.setup import HandlerConfig, init_notifications

from .fakes import FakeNotifier


def _pending(*, sticky: bool = False, silent: bool = False) -> PendingNotification:
    return PendingNotification(
        id="p1",
        content=NotificationContent("Task due now", "Essay", sticky=sticky, silent=silent),
        trigger_at=None,
    )


@pytest.mark.parametrize(
    ("importance", "expected"),
    [("low", "low"), ("default", "normal"), ("high", "critical"), ("weird", "normal")],
)
def test_urgency_follows_channel_importance(importance: str, expected: str) -> None:
    channel = ChannelConfig(name="c", importance=importance)
    assert urgency_for(_pending(), channel) == expected


def test_silent_content_is_always_low_urgency() -> None:
    assert urgency_for(_pending(silent=True), ChannelConfig(name="c", importance="high")) == "low"


def test_ringing_needs_handler_channel_and_loud_content(tmp_path: Path) -> None:
    loud = ChannelConfig(name="c", sound=True)
    quiet = ChannelConfig(name="q", sound=False)

    # Handler default keeps sound off.
    assert should_ring(_pending(), loud) is False

    init_notifications(LocalNotificationStore(tmp_path / "n.sqlite3"), handler=HandlerConfig(play_sound=True))
    assert should_ring(_pending(), loud) is True
    assert should_ring(_pending(), quiet) is False
    assert should_ring(_pending(silent=True), loud) is False


def test_desktop_command_carries_channel_settings(tmp_path: Path) -> None:
    init_notifications(LocalNotificationStore(tmp_path / "n.sqlite3"), handler=HandlerConfig(play_sound=True))
    notifier = DesktopNotifier()

    cmd = notifier.build_command(_pending(), ChannelConfig(name="default", importance="high", sound=True))
    assert cmd[cmd.index("--urgency") + 1] == "critical"
    assert cmd[cmd.index("--category") + 1] == "default"
    assert "string:sound-name:message-new-instant" in cmd
    assert "--expire-time" not in cmd
    assert cmd[-2:] == ["Task due now", "Essay"]

    sticky = notifier.build_command(
        _pending(sticky=True, silent=True), ChannelConfig(name=TIMETABLE_CHANNEL, importance="low", sound=False)
    )
    assert sticky[sticky.index("--urgency") + 1] == "low"
    assert sticky[sticky.index("--expire-time") + 1] == "0"
    assert "boolean:suppress-sound:true" in sticky


def test_console_rings_bell_only_when_sound_is_on(capsys, tmp_path: Path) -> None:
    notifier = ConsoleNotifier()
    channel = ChannelConfig(name="default", sound=True)

    notifier.show(_pending(), channel)
    assert "\a" not in capsys.readouterr().out

    init_notifications(LocalNotificationStore(tmp_path / "n.sqlite3"), handler=HandlerConfig(play_sound=True))
    notifier.show(_pending(), channel)
    out = capsys.readouterr().out
    assert out.startswith("\a")
    assert "[NOTIFY] Task due now: Essay" in out


@pytest.mark.asyncio
async def test_delivery_passes_the_configured_channel(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    init_notifications(store)
    notifier = FakeNotifier()

    await store.schedule(NotificationContent("Task due now", "Essay"), None)
    await store.schedule(NotificationContent("Timetable", "Free", channel=TIMETABLE_CHANNEL, sticky=True), None)
    await deliver_due(store, notifier)

    assert sorted(notifier.channels) == ["default", TIMETABLE_CHANNEL]
    assert store.channel(TIMETABLE_CHANNEL).sound is False
