# src/study_companion/logging_setup.py

from __future__ import annotations

"""
Logging for the interactive CLI.

The REPL shares stderr with the background reconcile/delivery thread, so the
console only gets what a user should see; study.log (rotated) keeps the rest.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_LOGGER = "study_companion"

# Minimum console level per logger prefix; the longest matching prefix wins.
CONSOLE_THRESHOLDS: dict[str, int] = {
    APP_LOGGER: logging.NOTSET,
    f"{APP_LOGGER}.notifications.runner": logging.WARNING,
    f"{APP_LOGGER}.notifications.reconciler": logging.WARNING,
    "py.warnings": logging.ERROR,
}
OTHER_THRESHOLD = logging.ERROR

LOG_FILE_NAME = "study.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3


def _threshold_for(name: str, thresholds: dict[str, int], default: int) -> int:
    best: str | None = None
    for prefix in thresholds:
        if name == prefix or name.startswith(prefix + "."):
            if best is None or len(prefix) > len(best):
                best = prefix
    return thresholds[best] if best is not None else default


class ConsoleThresholdFilter(logging.Filter):
    """Drops records below the console threshold of their logger prefix."""

    def __init__(self, thresholds: dict[str, int] | None = None, default: int = OTHER_THRESHOLD) -> None:
        super().__init__()
        self._thresholds = dict(CONSOLE_THRESHOLDS if thresholds is None else thresholds)
        self._default = default

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= _threshold_for(record.name, self._thresholds, self._default)


class ShortNameFormatter(logging.Formatter):
    """Console format: time, one-letter level, logger name without the package prefix."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname).1s %(shortname)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith(APP_LOGGER + "."):
            name = name[len(APP_LOGGER) + 1:]
        record.shortname = name
        return super().format(record)


def setup_logging(
    *,
    log_dir: str | Path = ".local/study",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler on the root
    logger, replacing whatever was there. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(ShortNameFormatter())
    console.addFilter(ConsoleThresholdFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
