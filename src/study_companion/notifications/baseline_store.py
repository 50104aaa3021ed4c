# src/study_companion/notifications/baseline_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from pathlib import Path

from ..core.errors import PersistenceError
from .intents import NotificationRecord

logger = logging.getLogger(__name__)


def row_to_record(row: sqlite3.Row) -> NotificationRecord:
    """Decode one baseline row; raises ValueError on anything unexpected."""
    key, nid, fp = row["entity_key"], row["notification_id"], row["fingerprint"]
    if not all(isinstance(v, str) and v for v in (key, nid, fp)):
        raise ValueError("entity_key, notification_id and fingerprint must be non-empty TEXT")

    refresh = json.loads(row["refresh_ids"] or "[]")
    if not isinstance(refresh, list) or not all(isinstance(r, str) for r in refresh):
        raise ValueError("refresh_ids must be a JSON list of strings")

    return NotificationRecord(
        entity_key=key,
        notification_id=nid,
        fingerprint=fp,
        refresh_ids=tuple(refresh),
    )


class SQLiteBaselineStore:
    """
    Reconciliation baseline: entity_key -> (notification_id, fingerprint, refresh_ids).

    save() replaces the whole map in one transaction, so a reader sees either
    the old baseline or the new one.
    """

    def __init__(self, db_path: str | Path = "notifications.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

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
                CREATE TABLE IF NOT EXISTS notification_baseline (
                    entity_key TEXT PRIMARY KEY,
                    notification_id TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    refresh_ids TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def load(self) -> dict[str, NotificationRecord]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute("SELECT * FROM notification_baseline").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to read baseline from {self._db_path}: {e}") from e

        out: dict[str, NotificationRecord] = {}
        for row in rows:
            try:
                rec = row_to_record(row)
            except ValueError:
                logger.warning("Rejecting malformed baseline row key=%r", row["entity_key"], exc_info=True)
                continue
            out[rec.entity_key] = rec
        return out

    def save(self, records: dict[str, NotificationRecord]) -> None:
        try:
            conn = self._get_conn()
            try:
                with conn:
                    conn.execute("DELETE FROM notification_baseline")
                    conn.executemany(
                        """
                        INSERT INTO notification_baseline(entity_key, notification_id, fingerprint, refresh_ids)
                        VALUES (?, ?, ?, ?)
                        """,
                        [
                            (r.entity_key, r.notification_id, r.fingerprint, json.dumps(list(r.refresh_ids)))
                            for r in records.values()
                        ],
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to write baseline to {self._db_path}: {e}") from e
        logger.debug("Baseline saved: %d records", len(records))
