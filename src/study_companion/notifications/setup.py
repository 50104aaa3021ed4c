# src/study_companion/notifications/setup.py

from __future__ import annotations

"""
Process-wide notification handler configuration.

init_notifications() is called once at startup (before the first reconcile
pass). It only records configuration: how delivered notifications are
presented and which channels exist. Calling it again is a no-op.
"""

import logging
from dataclasses import dataclass

from .intents import DEFAULT_CHANNEL, TIMETABLE_CHANNEL
from .local_store import ChannelConfig, LocalNotificationStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class HandlerConfig:
    show_banner: bool = True
    # Only channels with sound=True ring, and never for silent content.
    play_sound: bool = False


DEFAULT_CHANNELS: tuple[ChannelConfig, ...] = (
    ChannelConfig(name=DEFAULT_CHANNEL, importance="default", sound=True),
    ChannelConfig(name=TIMETABLE_CHANNEL, importance="low", sound=False),
)

_handler: HandlerConfig | None = None


def init_notifications(
    store: LocalNotificationStore,
    *,
    handler: HandlerConfig | None = None,
    channels: tuple[ChannelConfig, ...] = DEFAULT_CHANNELS,
) -> HandlerConfig:
    """Register the handler and channels once; later calls return the existing handler."""
    global _handler
    if _handler is not None:
        return _handler

    for ch in channels:
        store.configure_channel(ch)
    _handler = handler or HandlerConfig()
    logger.info(
        "Notifications initialized: channels=%s sound=%s",
        ",".join(c.name for c in channels),
        _handler.play_sound,
    )
    return _handler


def get_handler() -> HandlerConfig:
    return _handler or HandlerConfig()


def _reset_handler() -> None:
    global _handler
    _handler = None
