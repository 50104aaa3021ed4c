# src/study_companion/core/errors.py

"""
Error taxonomy.

Per-entity errors (malformed stored strings, a single failed store call) are
isolated by the reconciler; pass-level errors abort the whole pass.
"""

from __future__ import annotations


class StudyCompanionError(Exception):
    """Base class for all project errors."""


class MalformedTimeError(StudyCompanionError, ValueError):
    """A stored time-of-day is not a valid 24h HH:MM string."""

    def __init__(self, value: object) -> None:
        super().__init__(f"malformed time-of-day: {value!r} (expected HH:MM)")
        self.value = value


class MalformedDateError(StudyCompanionError, ValueError):
    """A stored calendar date is not a valid YYYY-MM-DD string."""

    def __init__(self, value: object) -> None:
        super().__init__(f"malformed date: {value!r} (expected YYYY-MM-DD)")
        self.value = value


class NotificationStoreError(StudyCompanionError):
    """A schedule/cancel/list call against the notification store failed."""


class PersistenceError(StudyCompanionError):
    """The reconciliation baseline could not be read or written."""


class ReconcileAbortedError(StudyCompanionError):
    """A pass could not read its inputs; the previous baseline is left untouched."""
