# tests/test_stores.py

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest

from study_companion.core.errors import MalformedDateError, MalformedTimeError, PersistenceError
from study_companion.notifications.baseline_store import SQLiteBaselineStore
from study_companion.notifications.intents import NotificationContent, NotificationRecord
from study_companion.notifications.local_store import LocalNotificationStore, NotificationState
from study_companion.tasks.task_models import DeadlineClass, DeadlineIntent
from study_companion.tasks.task_store import TaskStore
from study_companion.timetable.timetable_models import DayOfWeek
from study_companion.timetable.timetable_store import TimetableStore, load_slots_json

from .conftest import local, monday_slots

# ---- TaskStore ----


def test_task_store_add_and_list(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    a = store.add_item(text="  Read chapter 3 ", deadline=DeadlineIntent.TIME, date="2026-02-10", time="09:30")
    b = store.add_item(text="Buy notebook")
    c = store.add_item(text="Essay draft", deadline=DeadlineIntent.DATE, date="2026-02-09", time="18:00")

    assert a.text == "Read chapter 3"
    assert a.deadline_class == DeadlineClass.TIME
    assert b.deadline_class == DeadlineClass.NONE
    # Date-only intent drops the time.
    assert c.time is None

    items = store.list_items()
    assert [i.id for i in items] == [c.id, a.id, b.id]
    assert store.count_items() == 3


def test_task_store_rejects_bad_input(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    with pytest.raises(ValueError):
        store.add_item(text="   ")
    with pytest.raises(MalformedDateError):
        store.add_item(text="x", deadline=DeadlineIntent.DATE, date="2026-02-31")
    with pytest.raises(MalformedTimeError):
        store.add_item(text="x", deadline=DeadlineIntent.TIME, date="2026-02-10", time="7:00")
    with pytest.raises(ValueError):
        store.add_item(text="x", deadline=DeadlineIntent.TIME, date="2026-02-10")
    assert store.count_items() == 0


def test_task_store_complete_undo_delete(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    item = store.add_item(text="Lab prep")

    assert store.set_completed(item.id, True) is True
    assert store.set_completed(item.id, True) is False
    assert store.get_item(item.id).is_completed
    assert store.list_items(include_completed=False) == []

    assert store.set_completed(item.id, False) is True
    assert not store.get_item(item.id).is_completed

    assert store.delete_item(item.id) is True
    assert store.delete_item(item.id) is False
    assert store.get_item(item.id) is None


def test_task_store_update_and_prefix(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    item = store.add_item(text="Lab prep", notes="room 4")

    store.update_item(item.id, notes=None)
    store.update_item(item.id, deadline=DeadlineIntent.DATE, date="2026-03-01")
    updated = store.get_item(item.id)
    assert updated.notes is None
    assert updated.date == "2026-03-01"

    assert store.find_by_prefix(item.id[:6]).id == item.id
    assert store.find_by_prefix("") is None


def test_task_store_skips_malformed_rows(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    good = store.add_item(text="fine")

    conn = sqlite3.connect(db)
    conn.execute(
        "INSERT INTO action_items(id, text, date, time, notes, created_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("bad", "x", None, None, b"\x00", "2026-02-01T00:00:00+00:00"),
    )
    conn.commit()
    conn.close()

    assert [i.id for i in store.list_items()] == [good.id]


# ---- TimetableStore ----


def test_timetable_lock_replaces_slots(tmp_path: Path) -> None:
    store = TimetableStore(tmp_path / "tt.sqlite3")
    assert store.get_record() is None

    store.save_locked_timetable(monday_slots(), class_name="SE", division="A")
    assert [s.subject_name for s in store.list_slots()] == ["CS101", "PHY102"]

    record = store.save_locked_timetable(monday_slots()[:1], class_name="SE", division="B", batch="B1")
    assert len(record.slots) == 1

    loaded = store.get_record()
    assert loaded.division == "B"
    assert loaded.batch == "B1"
    assert [s.subject_name for s in loaded.slots] == ["CS101"]
    assert loaded.slots[0].location == "R-101"


def test_load_slots_json(tmp_path: Path) -> None:
    path = tmp_path / "tt.json"
    path.write_text(
        json.dumps(
            {
                "class_name": "SE",
                "division": "A",
                "slots": [
                    {"day_of_week": "Tuesday", "start_time": "10:00", "end_time": "11:00", "subject_name": "DBMS"},
                    {"dayOfWeek": "Wed", "startTime": "13:00", "endTime": "15:00", "subjectName": "OS Lab",
                     "type": "Lab", "batch": "B2"},
                ],
            }
        ),
        "utf-8",
    )
    slots, meta = load_slots_json(path)
    assert [s.day_of_week for s in slots] == [DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY]
    assert meta == {"class_name": "SE", "division": "A"}


def test_load_slots_json_fails_whole_file_on_bad_slot(tmp_path: Path) -> None:
    path = tmp_path / "tt.json"
    path.write_text(
        json.dumps([{"day_of_week": "Monday", "start_time": "11:00", "end_time": "10:00", "subject_name": "X"}]),
        "utf-8",
    )
    with pytest.raises(ValueError, match="slot #0"):
        load_slots_json(path)


# ---- Baseline ----


def test_baseline_round_trip_and_replace(tmp_path: Path) -> None:
    repo = SQLiteBaselineStore(tmp_path / "n.sqlite3")
    assert repo.load() == {}

    records = {
        "action:a": NotificationRecord("action:a", "n1", "fp-a"),
        "timetable:current-next": NotificationRecord("timetable:current-next", "n2", "fp-t", ("r1", "r2")),
    }
    repo.save(records)
    assert repo.load() == records

    repo.save({"action:a": records["action:a"]})
    assert set(repo.load()) == {"action:a"}


def test_baseline_skips_malformed_rows(tmp_path: Path) -> None:
    db = tmp_path / "n.sqlite3"
    repo = SQLiteBaselineStore(db)
    repo.save({"action:a": NotificationRecord("action:a", "n1", "fp-a")})

    conn = sqlite3.connect(db)
    conn.execute(
        "INSERT INTO notification_baseline(entity_key, notification_id, fingerprint, refresh_ids) VALUES (?, ?, ?, ?)",
        ("action:b", "n2", "fp-b", '{"not": "a list"}'),
    )
    conn.commit()
    conn.close()

    assert set(repo.load()) == {"action:a"}


def test_baseline_load_failure_raises_persistence_error(tmp_path: Path) -> None:
    db = tmp_path / "n.sqlite3"
    repo = SQLiteBaselineStore(db)
    conn = sqlite3.connect(db)
    conn.execute("DROP TABLE notification_baseline")
    conn.commit()
    conn.close()

    with pytest.raises(PersistenceError):
        repo.load()


# ---- LocalNotificationStore ----


@pytest.mark.asyncio
async def test_local_store_schedule_due_and_cancel(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")

    later = await store.schedule(NotificationContent("Task due now", "Essay"), local(2026, 2, 10, 9, 30))
    immediate = await store.schedule(NotificationContent("Timetable", "Next: CS101 at 09:00", sticky=True), None)

    assert set(await store.list_scheduled()) == {later, immediate}

    due = store.due(local(2026, 2, 10, 9, 0))
    assert [p.id for p in due] == [immediate]
    assert due[0].content.sticky

    due = store.due(local(2026, 2, 10, 9, 30))
    assert {p.id for p in due} == {later, immediate}

    await store.cancel(later)
    assert store.get_state(later) == NotificationState.CANCELLED
    assert later not in await store.list_scheduled()
    # Cancelling again is harmless.
    await store.cancel(later)
    await store.cancel("missing")


@pytest.mark.asyncio
async def test_local_store_cancel_of_displayed_sticky_goes_through_dismissal(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    status = await store.schedule(NotificationContent("Timetable", "Now: CS101", sticky=True), None)
    plain = await store.schedule(NotificationContent("Task", "Essay"), None)

    store.mark_delivered(status)
    store.mark_delivered(plain)
    assert await store.list_scheduled() == [status]

    await store.cancel(status)
    await store.cancel(plain)
    assert store.get_state(status) == NotificationState.DISMISSING
    assert store.get_state(plain) == NotificationState.DELIVERED

    assert store.take_dismissals() == [status]
    assert store.take_dismissals() == []
    assert store.get_state(status) == NotificationState.CANCELLED


@pytest.mark.asyncio
async def test_local_store_prune(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    nid = await store.schedule(NotificationContent("Task", "Essay"), None)
    await store.cancel(nid)

    assert store.prune(older_than_seconds=3600) == 0
    assert store.prune(older_than_seconds=-1) == 1
    assert store.get_state(nid) is None


@pytest.mark.asyncio
async def test_local_store_lists_displayed_sticky(tmp_path: Path) -> None:
    store = LocalNotificationStore(tmp_path / "n.sqlite3")
    status = await store.schedule(NotificationContent("Timetable", "Now: CS101", sticky=True), None)
    waiting = await store.schedule(NotificationContent("Timetable", "Free", sticky=True), local(2099, 1, 1, 9, 0))
    plain = await store.schedule(NotificationContent("Task", "Essay"), None)
    store.mark_delivered(status)
    store.mark_delivered(plain)

    assert [p.id for p in store.displayed_sticky()] == [status]
    assert waiting not in [p.id for p in store.displayed_sticky()]

    await store.cancel(status)
    assert store.displayed_sticky() == []
