# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from study_companion.cli.bootstrap import create_initial_state
from study_companion.core.state import AppState
from study_companion.notifications.setup import _reset_handler
from study_companion.tasks.task_models import ActionItem
from study_companion.timetable.timetable_models import DayOfWeek, LectureSlot

# Monday 2026-02-09, 08:00 local time.
MONDAY_0800 = datetime(2026, 2, 9, 8, 0).astimezone()


def local(y: int, mo: int, d: int, h: int = 0, mi: int = 0) -> datetime:
    return datetime(y, mo, d, h, mi).astimezone()


def make_item(
    item_id: str = "t1",
    *,
    text: str = "Submit lab report",
    date: str | None = None,
    time: str | None = None,
    notes: str | None = None,
    completed_at: str | None = None,
) -> ActionItem:
    return ActionItem(
        id=item_id,
        text=text,
        date=date,
        time=time,
        notes=notes,
        created_at="2026-02-01T10:00:00+00:00",
        completed_at=completed_at,
    )


def monday_slots() -> list[LectureSlot]:
    return [
        LectureSlot(DayOfWeek.MONDAY, "09:00", "10:00", "CS101", location="R-101"),
        LectureSlot(DayOfWeek.MONDAY, "11:00", "12:00", "PHY102", location="R-204"),
    ]


@pytest.fixture(autouse=True)
def _fresh_notification_handler():
    _reset_handler()
    yield
    _reset_handler()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="study-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        timetable_db_path=tmp_path / "timetable.sqlite3",
        notifications_db_path=tmp_path / "notifications.sqlite3",
        date_only_hour=9,
        date_only_minute=0,
        lookahead_days=0,
        fingerprint_includes_text=False,
        cancel_untracked=False,
        desktop_notifications=False,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with the real SQLite stores.

    Their correctness is part of what we want to test; the background loops are not started.
    """
    return create_initial_state(settings=settings)
