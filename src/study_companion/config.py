# src/study_companion/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every knob has a default; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "STUDY"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    desktop_notifications: bool
    notification_sound: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    timetable_db_path: Path
    notifications_db_path: Path

    # ---- Reconciliation ----
    reconcile_interval_seconds: float
    delivery_interval_seconds: float
    date_only_hour: int
    date_only_minute: int
    cancel_untracked: bool

    # ---- Optional behaviours (off by default) ----
    lookahead_days: int
    fingerprint_includes_text: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "study-companion")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        desktop_notifications = _env_bool(_k("DESKTOP_NOTIFICATIONS"), False)
        notification_sound = _env_bool(_k("NOTIFICATION_SOUND"), False)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/study"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        timetable_db_path = _env_path(_k("TIMETABLE_DB_PATH"), data_dir / "timetable.sqlite3")
        notifications_db_path = _env_path(_k("NOTIFICATIONS_DB_PATH"), data_dir / "notifications.sqlite3")

        reconcile_interval_seconds = _env_float(_k("RECONCILE_INTERVAL_SECONDS"), 60.0)
        delivery_interval_seconds = _env_float(_k("DELIVERY_INTERVAL_SECONDS"), 5.0)

        # Clamp rather than fail: a bad env value should not keep the app from starting.
        date_only_hour = min(23, max(0, _env_int(_k("DATE_ONLY_HOUR"), 9)))
        date_only_minute = min(59, max(0, _env_int(_k("DATE_ONLY_MINUTE"), 0)))
        cancel_untracked = _env_bool(_k("CANCEL_UNTRACKED"), False)

        lookahead_days = min(7, max(0, _env_int(_k("LOOKAHEAD_DAYS"), 0)))
        fingerprint_includes_text = _env_bool(_k("FINGERPRINT_INCLUDES_TEXT"), False)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            desktop_notifications=desktop_notifications,
            notification_sound=notification_sound,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            timetable_db_path=timetable_db_path,
            notifications_db_path=notifications_db_path,
            reconcile_interval_seconds=reconcile_interval_seconds,
            delivery_interval_seconds=delivery_interval_seconds,
            date_only_hour=date_only_hour,
            date_only_minute=date_only_minute,
            cancel_untracked=cancel_untracked,
            lookahead_days=lookahead_days,
            fingerprint_includes_text=fingerprint_includes_text,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
