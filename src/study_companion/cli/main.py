# src/study_companion/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, registers the notification handler,
then starts:
- reconcile + delivery loops in a background thread,
- console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..notifications.runner import start_in_background
from ..notifications.setup import HandlerConfig, init_notifications

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "data_dir", ".local/study"), console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "study-companion"))

    state = create_initial_state(settings=settings)
    init_notifications(
        state.notification_store,
        handler=HandlerConfig(play_sound=bool(getattr(settings, "notification_sound", False))),
    )

    # The first reconcile pass runs as soon as the loop starts (launch trigger).
    state.runner = start_in_background(
        state.reconciler,
        state.notification_store,
        state.notifier,
        reconcile_interval_seconds=settings.reconcile_interval_seconds,
        delivery_interval_seconds=settings.delivery_interval_seconds,
    )

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running notification loops only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if state.runner is not None:
            state.runner.stop()
            state.runner.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
