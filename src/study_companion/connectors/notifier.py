# src/study_companion/connectors/notifier.py

from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import datetime

from ..notifications.local_store import ChannelConfig, PendingNotification
from ..notifications.setup import get_handler

logger = logging.getLogger(__name__)

_URGENCY = {"low": "low", "default": "normal", "high": "critical"}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def should_ring(notification: PendingNotification, channel: ChannelConfig) -> bool:
    return get_handler().play_sound and channel.sound and not notification.content.silent


def urgency_for(notification: PendingNotification, channel: ChannelConfig) -> str:
    """notify-send urgency from the channel importance; silent content is always low."""
    if notification.content.silent:
        return "low"
    return _URGENCY.get(channel.importance, "normal")


class ConsoleNotifier:
    """Prints notifications to stdout; the sticky timetable status is shown as a status line."""

    def __init__(self) -> None:
        self.status_line: str | None = None
        self._status_id: str | None = None

    def show(self, notification: PendingNotification, channel: ChannelConfig) -> None:
        c = notification.content
        if c.sticky:
            # Tracked even with banners off, so /status can report it.
            self._status_id = notification.id
            self.status_line = f"{c.title}: {c.body}"
        if not get_handler().show_banner:
            return

        bell = "\a" if should_ring(notification, channel) else ""
        tag = "STATUS" if c.sticky else "NOTIFY"
        print(f"{bell}[{_ts_local()}] [{tag}] {c.title}: {c.body}", flush=True)

    def dismiss(self, notification_id: str) -> None:
        if notification_id == self._status_id:
            self._status_id = None
            self.status_line = None


class DesktopNotifier(ConsoleNotifier):
    """
    Desktop notifications through `notify-send` (libnotify), best effort.

    Falls back to console output when the binary is missing or fails.
    """

    def __init__(self, app_name: str = "study-companion") -> None:
        super().__init__()
        self._app_name = app_name
        self._binary = shutil.which("notify-send")
        if self._binary is None:
            logger.warning("notify-send not found; desktop notifications fall back to console.")

    def build_command(self, notification: PendingNotification, channel: ChannelConfig) -> list[str]:
        c = notification.content
        cmd = [
            self._binary or "notify-send",
            "--app-name",
            self._app_name,
            "--urgency",
            urgency_for(notification, channel),
            "--category",
            channel.name,
        ]
        if c.sticky:
            cmd += ["--expire-time", "0"]
        if should_ring(notification, channel):
            cmd += ["--hint", "string:sound-name:message-new-instant"]
        else:
            cmd += ["--hint", "boolean:suppress-sound:true"]
        return [*cmd, c.title, c.body]

    def show(self, notification: PendingNotification, channel: ChannelConfig) -> None:
        super().show(notification, channel)
        if self._binary is None or not get_handler().show_banner:
            return

        try:
            subprocess.run(self.build_command(notification, channel), check=True, timeout=10, capture_output=True)
        except (OSError, subprocess.SubprocessError):
            logger.warning("notify-send failed id=%s", notification.id, exc_info=True)
