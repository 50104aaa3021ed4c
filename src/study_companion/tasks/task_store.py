# src/study_companion/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.timeutil import parse_date, time_to_minutes
from .task_models import ActionItem, DeadlineIntent

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


def _opt_str(row: sqlite3.Row, name: str) -> str | None:
    val = row[name]
    if val is None:
        return None
    if not isinstance(val, str):
        raise ValueError(f"column {name} must be TEXT or NULL, got {type(val).__name__}")
    return val


def _req_str(row: sqlite3.Row, name: str) -> str:
    val = _opt_str(row, name)
    if val is None or not val.strip():
        raise ValueError(f"column {name} is required")
    return val


def row_to_item(row: sqlite3.Row) -> ActionItem:
    """
    Decode one row. Fails closed: wrong types or missing required columns raise ValueError.

    Date/time *formats* are not checked here; the deriver treats a bad stored
    string as a per-entity data fault.
    """
    return ActionItem(
        id=_req_str(row, "id"),
        text=_req_str(row, "text"),
        date=_opt_str(row, "date"),
        time=_opt_str(row, "time"),
        notes=_opt_str(row, "notes"),
        created_at=_req_str(row, "created_at"),
        completed_at=_opt_str(row, "completed_at"),
    )


def normalize_deadline(
    intent: DeadlineIntent, date: str | None, time: str | None
) -> tuple[str | None, str | None]:
    """
    Apply a deadline intent to raw date/time input and validate the result.

    - none -> (None, None)
    - date -> (date, None)
    - time -> (date, time), both required
    """
    if intent == DeadlineIntent.NONE:
        return None, None

    if not date:
        raise ValueError(f"deadline '{intent.value}' requires a date")
    parse_date(date)

    if intent == DeadlineIntent.DATE:
        return date, None

    if not time:
        raise ValueError("deadline 'time' requires a time")
    time_to_minutes(time)
    return date, time


class TaskStore:
    """
    SQLite store for action items.

    Schema handling mirrors the other stores: create table if missing, add
    missing columns with ALTER TABLE. Each method opens its own connection.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_items()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS action_items (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    date TEXT,
                    time TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
                """
            )

            cur.execute("PRAGMA table_info(action_items)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE action_items ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("notes", "TEXT")
            add_col("completed_at", "TEXT")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_action_items_open "
                "ON action_items(completed_at, date, time)"
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def count_items(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM action_items").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_item(
        self,
        *,
        text: str,
        deadline: DeadlineIntent = DeadlineIntent.NONE,
        date: str | None = None,
        time: str | None = None,
        notes: str | None = None,
    ) -> ActionItem:
        if not text or not text.strip():
            raise ValueError("text is required")
        date, time = normalize_deadline(deadline, date, time)

        item = ActionItem(
            id=uuid.uuid4().hex,
            text=text.strip(),
            date=date,
            time=time,
            notes=(notes or None),
            created_at=_utc_now_iso(),
            completed_at=None,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO action_items(id, text, date, time, notes, created_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (item.id, item.text, item.date, item.time, item.notes, item.created_at, None),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task added id=%s deadline=%s date=%s time=%s", item.id, deadline, date, time)
        return item

    def get_item(self, item_id: str) -> ActionItem | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM action_items WHERE id = ?", (item_id,)).fetchone()
        finally:
            conn.close()
        return row_to_item(row) if row else None

    def list_items(self, *, include_completed: bool = True) -> list[ActionItem]:
        """
        All items, ordered by deadline then creation time.

        Rows that fail to decode are logged and left out.
        """
        sql = "SELECT * FROM action_items"
        if not include_completed:
            sql += " WHERE completed_at IS NULL"
        sql += " ORDER BY date IS NULL, date ASC, time IS NULL, time ASC, created_at ASC"

        conn = self._get_conn()
        try:
            rows = conn.execute(sql).fetchall()
        finally:
            conn.close()

        out: list[ActionItem] = []
        for row in rows:
            try:
                out.append(row_to_item(row))
            except ValueError:
                logger.warning("Rejecting malformed action_items row id=%r", row["id"], exc_info=True)
        return out

    def find_by_prefix(self, prefix: str) -> ActionItem | None:
        """Resolve a short id typed by the user. Ambiguous prefixes resolve to None."""
        prefix = (prefix or "").strip()
        if not prefix:
            return None
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM action_items WHERE id LIKE ? LIMIT 2", (prefix + "%",)
            ).fetchall()
        finally:
            conn.close()
        if len(rows) != 1:
            return None
        return row_to_item(rows[0])

    def update_item(
        self,
        item_id: str,
        *,
        text: str | None = None,
        deadline: DeadlineIntent | None = None,
        date: str | None = None,
        time: str | None = None,
        notes: str | None = _UNSET,
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []

        if text is not None:
            if not text.strip():
                raise ValueError("text cannot be empty")
            fields.append("text = ?")
            params.append(text.strip())

        if deadline is not None:
            date, time = normalize_deadline(deadline, date, time)
            fields.extend(["date = ?", "time = ?"])
            params.extend([date, time])

        if notes is not _UNSET:
            fields.append("notes = ?")
            params.append(notes or None)

        if not fields:
            return

        params.append(item_id)
        conn = self._get_conn()
        try:
            conn.execute(f"UPDATE action_items SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        finally:
            conn.close()

    def set_completed(self, item_id: str, completed: bool) -> bool:
        """Mark done/undone. Returns True if a row changed."""
        conn = self._get_conn()
        try:
            if completed:
                cur = conn.execute(
                    "UPDATE action_items SET completed_at = ? WHERE id = ? AND completed_at IS NULL",
                    (_utc_now_iso(), item_id),
                )
            else:
                cur = conn.execute(
                    "UPDATE action_items SET completed_at = NULL "
                    "WHERE id = ? AND completed_at IS NOT NULL",
                    (item_id,),
                )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_item(self, item_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM action_items WHERE id = ?", (item_id,))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()
