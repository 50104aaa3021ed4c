# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from study_companion.logging_setup import ConsoleThresholdFilter, ShortNameFormatter, setup_logging


def _record(name: str, level: int, msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.parametrize(
    ("name", "level", "passes"),
    [
        ("study_companion.cli.commands", logging.INFO, True),
        ("study_companion.notifications.reconciler", logging.INFO, False),
        ("study_companion.notifications.reconciler", logging.WARNING, True),
        ("study_companion.notifications.runner", logging.DEBUG, False),
        ("study_companion.notifications.local_store", logging.DEBUG, True),
        ("py.warnings", logging.WARNING, False),
        ("urllib3.connectionpool", logging.WARNING, False),
        ("urllib3.connectionpool", logging.ERROR, True),
        # Prefix match is per dotted segment.
        ("study_companion_extra", logging.INFO, False),
    ],
)
def test_console_threshold_filter(name: str, level: int, passes: bool) -> None:
    assert ConsoleThresholdFilter().filter(_record(name, level)) is passes


def test_console_threshold_filter_accepts_overrides() -> None:
    f = ConsoleThresholdFilter({"noisy": logging.CRITICAL}, default=logging.DEBUG)
    assert f.filter(_record("noisy.child", logging.ERROR)) is False
    assert f.filter(_record("quiet", logging.DEBUG)) is True


def test_short_name_formatter_drops_package_prefix() -> None:
    out = ShortNameFormatter().format(_record("study_companion.cli.commands", logging.WARNING, "bad input"))
    assert out.endswith("W cli.commands: bad input")

    other = ShortNameFormatter().format(_record("py.warnings", logging.ERROR, "x"))
    assert other.endswith("E py.warnings: x")


def test_setup_logging_writes_everything_to_file(tmp_path: Path, restore_root_logger) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

    logging.getLogger("study_companion.notifications.reconciler").debug("pass finished entity=%s", "t1")
    for h in logging.getLogger().handlers:
        h.flush()

    assert log_file == tmp_path / "logs" / "study.log"
    text = log_file.read_text(encoding="utf-8")
    assert "study_companion.notifications.reconciler: pass finished entity=t1" in text

    # Calling again replaces handlers rather than stacking them.
    setup_logging(log_dir=tmp_path / "logs")
    assert len(logging.getLogger().handlers) == 2
