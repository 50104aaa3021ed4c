# src/study_companion/notifications/local_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path

from ..core.errors import NotificationStoreError
from .intents import NotificationContent

logger = logging.getLogger(__name__)


class NotificationState(StrEnum):
    PENDING = "pending"  # waiting for its trigger
    DELIVERED = "delivered"  # handed to the notifier
    DISMISSING = "dismissing"  # cancelled while displayed (sticky); notifier must remove it
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class PendingNotification:
    id: str
    content: NotificationContent
    trigger_at: datetime | None


@dataclass(slots=True, frozen=True)
class ChannelConfig:
    name: str
    importance: str = "default"  # low | default | high
    sound: bool = True


class LocalNotificationStore:
    """
    Local notification backend on SQLite.

    Plays the role of the OS notification scheduler: it keeps scheduled
    notifications until their trigger passes; the delivery loop
    (notifications.runner.run_delivery_loop) hands due ones to a Notifier.

    Store calls are async to match the NotificationStore port; the SQLite work
    itself is short and local.
    """

    def __init__(self, db_path: str | Path = "notifications.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._channels: dict[str, ChannelConfig] = {}
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
                CREATE TABLE IF NOT EXISTS scheduled_notifications (
                    id TEXT PRIMARY KEY,
                    state TEXT NOT NULL DEFAULT 'pending',
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    sticky INTEGER NOT NULL DEFAULT 0,
                    silent INTEGER NOT NULL DEFAULT 0,
                    data TEXT NOT NULL DEFAULT '{}',
                    trigger_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_scheduled_state_trigger "
                "ON scheduled_notifications(state, trigger_at)"
            )
            conn.commit()
        finally:
            conn.close()

    # ---- channels (configured once by notifications.setup) ----

    def configure_channel(self, channel: ChannelConfig) -> None:
        self._channels[channel.name] = channel

    def channel(self, name: str) -> ChannelConfig:
        return self._channels.get(name) or ChannelConfig(name=name)

    # ---- NotificationStore port ----

    async def schedule(self, content: NotificationContent, trigger_at: datetime | None) -> str:
        nid = uuid.uuid4().hex
        now = time.time()
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO scheduled_notifications(
                        id, state, title, body, channel, sticky, silent, data,
                        trigger_at, created_at, updated_at
                    )
                    VALUES (?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        nid,
                        content.title,
                        content.body,
                        content.channel,
                        int(content.sticky),
                        int(content.silent),
                        json.dumps(content.data, ensure_ascii=False),
                        trigger_at.timestamp() if trigger_at is not None else None,
                        now,
                        now,
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise NotificationStoreError(f"schedule failed: {e}") from e
        return nid

    async def cancel(self, notification_id: str) -> None:
        now = time.time()
        try:
            conn = self._get_conn()
            try:
                with conn:
                    conn.execute(
                        "UPDATE scheduled_notifications SET state = 'cancelled', updated_at = ? "
                        "WHERE id = ? AND state = 'pending'",
                        (now, notification_id),
                    )
                    conn.execute(
                        "UPDATE scheduled_notifications SET state = 'dismissing', updated_at = ? "
                        "WHERE id = ? AND state = 'delivered' AND sticky = 1",
                        (now, notification_id),
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise NotificationStoreError(f"cancel failed id={notification_id}: {e}") from e

    async def list_scheduled(self) -> list[str]:
        """Pending notifications plus sticky ones currently on display."""
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(
                    "SELECT id FROM scheduled_notifications "
                    "WHERE state = 'pending' OR (state = 'delivered' AND sticky = 1) "
                    "ORDER BY created_at ASC"
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise NotificationStoreError(f"list_scheduled failed: {e}") from e
        return [str(r["id"]) for r in rows]

    # ---- delivery side ----

    @staticmethod
    def _row_to_pending(row: sqlite3.Row) -> PendingNotification:
        data = json.loads(row["data"] or "{}")
        trigger = row["trigger_at"]
        return PendingNotification(
            id=str(row["id"]),
            content=NotificationContent(
                title=str(row["title"]),
                body=str(row["body"]),
                channel=str(row["channel"]),
                sticky=bool(row["sticky"]),
                silent=bool(row["silent"]),
                data=data if isinstance(data, dict) else {},
            ),
            trigger_at=datetime.fromtimestamp(float(trigger)).astimezone() if trigger is not None else None,
        )

    def due(self, now: datetime, limit: int = 64) -> list[PendingNotification]:
        """Pending notifications whose trigger is immediate or at/before `now`."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM scheduled_notifications
                WHERE state = 'pending' AND (trigger_at IS NULL OR trigger_at <= ?)
                ORDER BY COALESCE(trigger_at, created_at) ASC, created_at ASC
                LIMIT ?
                """,
                (now.timestamp(), int(limit)),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_pending(r) for r in rows]

    def displayed_sticky(self) -> list[PendingNotification]:
        """Sticky notifications already delivered and not cancelled (still on display)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM scheduled_notifications WHERE state = 'delivered' AND sticky = 1 "
                "ORDER BY updated_at ASC"
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_pending(r) for r in rows]

    def mark_delivered(self, notification_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE scheduled_notifications SET state = 'delivered', updated_at = ? "
                "WHERE id = ? AND state = 'pending'",
                (time.time(), notification_id),
            )
            conn.commit()
        finally:
            conn.close()

    def take_dismissals(self) -> list[str]:
        """Ids of displayed sticky notifications that were cancelled; each is returned once."""
        conn = self._get_conn()
        try:
            with conn:
                rows = conn.execute(
                    "SELECT id FROM scheduled_notifications WHERE state = 'dismissing'"
                ).fetchall()
                ids = [str(r["id"]) for r in rows]
                conn.executemany(
                    "UPDATE scheduled_notifications SET state = 'cancelled', updated_at = ? WHERE id = ?",
                    [(time.time(), i) for i in ids],
                )
        finally:
            conn.close()
        return ids

    def get_state(self, notification_id: str) -> NotificationState | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT state FROM scheduled_notifications WHERE id = ?", (notification_id,)
            ).fetchone()
        finally:
            conn.close()
        return NotificationState(row["state"]) if row else None

    def prune(self, *, older_than_seconds: float = 7 * 24 * 3600) -> int:
        """Drop finished rows (delivered non-sticky / cancelled) older than the cutoff."""
        cutoff = time.time() - older_than_seconds
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                DELETE FROM scheduled_notifications
                WHERE updated_at < ?
                  AND (state = 'cancelled' OR (state = 'delivered' AND sticky = 0))
                """,
                (cutoff,),
            )
            conn.commit()
            n = cur.rowcount
        finally:
            conn.close()
        if n:
            logger.debug("Pruned %d finished notifications", n)
        return n
