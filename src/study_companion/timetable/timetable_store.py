# src/study_companion/timetable/timetable_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .timetable_models import LectureSlot, TimetableRecord

logger = logging.getLogger(__name__)


class TimetableStore:
    """
    SQLite store for the locked weekly timetable.

    The timetable is written once per semester (lock) and then only read.
    Re-locking replaces every slot in a single transaction.
    """

    def __init__(self, db_path: str | Path = "timetable.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TimetableStore ready db=%s slots=%s", self._db_path, self.count_slots())

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lecture_slots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    position INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS timetable_meta (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    locked_at TEXT NOT NULL,
                    class_name TEXT NOT NULL,
                    division TEXT NOT NULL,
                    batch TEXT
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def count_slots(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM lecture_slots").fetchone()
            return int(n)
        finally:
            conn.close()

    def save_locked_timetable(
        self,
        slots: Iterable[LectureSlot],
        *,
        class_name: str = "",
        division: str = "",
        batch: str | None = None,
    ) -> TimetableRecord:
        slots = list(slots)
        locked_at = datetime.now(UTC).isoformat(timespec="seconds")

        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM lecture_slots")
                conn.executemany(
                    "INSERT INTO lecture_slots(position, data) VALUES (?, ?)",
                    [
                        (i, json.dumps(s.to_dict(), ensure_ascii=False))
                        for i, s in enumerate(slots)
                    ],
                )
                conn.execute(
                    """
                    INSERT INTO timetable_meta(id, locked_at, class_name, division, batch)
                    VALUES (1, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        locked_at = excluded.locked_at,
                        class_name = excluded.class_name,
                        division = excluded.division,
                        batch = excluded.batch
                    """,
                    (locked_at, class_name, division, batch),
                )
        finally:
            conn.close()

        logger.info("Timetable locked: %d slots (class=%s division=%s)", len(slots), class_name, division)
        return TimetableRecord(
            locked_at=locked_at,
            class_name=class_name,
            division=division,
            batch=batch,
            slots=slots,
        )

    def list_slots(self) -> list[LectureSlot]:
        """Slots in stored order. Rows that fail to decode are logged and left out."""
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT id, data FROM lecture_slots ORDER BY position ASC").fetchall()
        finally:
            conn.close()

        out: list[LectureSlot] = []
        for row in rows:
            try:
                out.append(LectureSlot.from_dict(json.loads(row["data"])))
            except (ValueError, TypeError):
                logger.warning("Rejecting malformed lecture_slots row id=%s", row["id"], exc_info=True)
        return out

    def get_record(self) -> TimetableRecord | None:
        conn = self._get_conn()
        try:
            meta = conn.execute("SELECT * FROM timetable_meta WHERE id = 1").fetchone()
        finally:
            conn.close()
        if meta is None:
            return None
        return TimetableRecord(
            locked_at=str(meta["locked_at"]),
            class_name=str(meta["class_name"]),
            division=str(meta["division"]),
            batch=meta["batch"],
            slots=self.list_slots(),
        )


def load_slots_json(path: str | Path) -> tuple[list[LectureSlot], dict[str, Any]]:
    """
    Read a timetable export:

        {"class_name": "...", "division": "...", "batch": null,
         "slots": [{"day_of_week": "Monday", "start_time": "09:00", ...}, ...]}

    A bare list of slots is accepted too. Any bad slot fails the whole file.
    """
    data = json.loads(Path(path).read_text("utf-8"))
    meta: dict[str, Any] = {}
    if isinstance(data, dict):
        raw_slots = data.get("slots")
        meta = {k: data.get(k) for k in ("class_name", "division", "batch") if data.get(k) is not None}
    else:
        raw_slots = data
    if not isinstance(raw_slots, list):
        raise ValueError("timetable file must contain a list of slots")

    slots: list[LectureSlot] = []
    for i, raw in enumerate(raw_slots):
        try:
            slots.append(LectureSlot.from_dict(raw))
        except ValueError as e:
            raise ValueError(f"slot #{i}: {e}") from e
    return slots, meta
