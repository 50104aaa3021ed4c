# src/study_companion/notifications/reconciler.py

from __future__ import annotations

"""
Notification reconciler.

One pass:
- read tasks + timetable (failure aborts the pass, baseline untouched),
- derive the desired intents,
- walk intents against the previous baseline (reuse or replace),
- sweep previous records that produced no intent (orphans),
- persist the new baseline.

Per-entity store failures are logged and left for the next pass to fix: the
next pass recomputes from current inputs, so the system converges without
retries. Passes are serialized; a request that arrives while a pass is
running is coalesced into a single follow-up pass.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from ..core.errors import NotificationStoreError, PersistenceError, ReconcileAbortedError
from ..core.ports import BaselineRepo, NotificationStore, ScheduleSource, TaskSource
from ..core.timeutil import local_now
from .deriver import DeriverOptions, derive_desired_state
from .intents import NotificationIntent, NotificationRecord, PassReport

logger = logging.getLogger(__name__)


class NotificationReconciler:
    def __init__(
        self,
        task_source: TaskSource,
        schedule_source: ScheduleSource,
        store: NotificationStore,
        baseline: BaselineRepo,
        *,
        options: DeriverOptions | None = None,
        cancel_untracked: bool = False,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._tasks = task_source
        self._schedule = schedule_source
        self._store = store
        self._baseline = baseline
        self._options = options or DeriverOptions()
        self._cancel_untracked = cancel_untracked
        self._clock = clock

        self._lock = asyncio.Lock()
        self._rerun_requested = False
        # Last baseline this process committed (or tried to); authoritative once set.
        self._records: dict[str, NotificationRecord] | None = None
        # Handles from a rolled-back issue whose cancel failed; retried every pass.
        self._orphaned_ids: set[str] = set()

    @property
    def records(self) -> dict[str, NotificationRecord]:
        return dict(self._records or {})

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def reconcile(self) -> PassReport | None:
        """
        Run a pass now, or coalesce into the pass already in flight.

        Returns the report of the last pass run by this call, or None if the
        request was coalesced or the pass was aborted.
        """
        if self._lock.locked():
            self._rerun_requested = True
            logger.debug("Reconcile requested while a pass is running; coalesced.")
            return None

        async with self._lock:
            report = await self._run_logged()
            while self._rerun_requested:
                self._rerun_requested = False
                report = await self._run_logged()
            return report

    async def _run_logged(self) -> PassReport | None:
        try:
            return await self.run_pass()
        except ReconcileAbortedError:
            logger.exception("Reconcile pass aborted; previous baseline kept.")
            return None

    async def run_pass(self, now: datetime | None = None) -> PassReport:
        """A single pass. Callers other than reconcile() must not run passes concurrently."""
        now = now or self._clock()

        try:
            items = self._tasks.list_items()
            slots = self._schedule.list_slots()
        except Exception as e:
            raise ReconcileAbortedError(f"could not read tasks/timetable: {e}") from e

        previous = self._load_previous()
        if self._orphaned_ids:
            self._orphaned_ids = set(await self._cancel_ids("rollback", tuple(sorted(self._orphaned_ids))))
        desired = derive_desired_state(items, slots, now, self._options)

        report = PassReport()
        next_state: dict[str, NotificationRecord] = {}

        for key, intent in desired.intents.items():
            prev = previous.get(key)

            if prev is not None and prev.fingerprint == intent.fingerprint:
                next_state[key] = prev
                report.unchanged.append(key)
                continue

            if prev is not None and await self._cancel_ids(key, prev.all_ids):
                # Old handles may still be live: keep tracking them, retry the whole swap next pass.
                next_state[key] = prev
                report.failures += 1
                report.carried.append(key)
                continue

            record = await self._issue(intent)
            if record is None:
                report.failures += 1
                report.carried.append(key)
                if prev is not None:
                    # Keep the stale record; its fingerprint mismatch makes the next pass retry.
                    next_state[key] = prev
                continue

            next_state[key] = record
            (report.rescheduled if prev is not None else report.scheduled).append(key)

        for key in desired.skipped:
            prev = previous.get(key)
            if prev is not None and key not in next_state:
                next_state[key] = prev
                report.carried.append(key)

        for key, prev in previous.items():
            if key in next_state:
                continue
            if await self._cancel_ids(key, prev.all_ids):
                next_state[key] = prev
                report.failures += 1
                report.carried.append(key)
            else:
                report.cancelled.append(key)

        if self._cancel_untracked:
            await self._sweep_untracked(next_state)

        try:
            self._baseline.save(next_state)
            report.persisted = True
        except PersistenceError:
            logger.exception("Failed to persist notification baseline (%d records).", len(next_state))
        self._records = next_state

        log = logger.info if (report.store_calls_made or report.failures) else logger.debug
        log(
            "Reconcile pass: scheduled=%d rescheduled=%d unchanged=%d cancelled=%d carried=%d failures=%d",
            len(report.scheduled),
            len(report.rescheduled),
            len(report.unchanged),
            len(report.cancelled),
            len(report.carried),
            report.failures,
        )
        return report

    # ---- helpers ----

    def _load_previous(self) -> dict[str, NotificationRecord]:
        if self._records is not None:
            return dict(self._records)
        try:
            records = self._baseline.load()
        except PersistenceError as e:
            raise ReconcileAbortedError(f"could not load baseline: {e}") from e
        self._records = dict(records)
        return dict(records)

    async def _issue(self, intent: NotificationIntent) -> NotificationRecord | None:
        issued: list[str] = []
        try:
            notification_id = await self._store.schedule(intent.content, intent.trigger_at)
            issued.append(notification_id)

            refresh_ids: list[str] = []
            if intent.refresh_content is not None:
                for at in intent.refresh_at:
                    rid = await self._store.schedule(intent.refresh_content, at)
                    issued.append(rid)
                    refresh_ids.append(rid)
        except NotificationStoreError:
            logger.exception("schedule failed entity=%s", intent.entity_key)
            # Roll back a partially issued group so a retry starts clean.
            leaked = await self._cancel_ids(intent.entity_key, tuple(issued))
            if leaked:
                logger.error(
                    "rollback left live notifications entity=%s ids=%s; retrying next pass",
                    intent.entity_key,
                    ",".join(leaked),
                )
                self._orphaned_ids.update(leaked)
            return None

        logger.debug("Scheduled entity=%s id=%s at=%s", intent.entity_key, notification_id, intent.trigger_at)
        return NotificationRecord(
            entity_key=intent.entity_key,
            notification_id=notification_id,
            fingerprint=intent.fingerprint,
            refresh_ids=tuple(refresh_ids),
        )

    async def _cancel_ids(self, entity_key: str, ids: tuple[str, ...]) -> tuple[str, ...]:
        """Cancel every id; returns the ids whose cancel failed."""
        failed: list[str] = []
        for nid in ids:
            try:
                await self._store.cancel(nid)
            except NotificationStoreError:
                logger.exception("cancel failed entity=%s id=%s", entity_key, nid)
                failed.append(nid)
        return tuple(failed)

    async def _sweep_untracked(self, next_state: dict[str, NotificationRecord]) -> None:
        """Best effort: cancel store handles this engine has no record of."""
        try:
            scheduled = await self._store.list_scheduled()
        except NotificationStoreError:
            logger.exception("list_scheduled failed; skipping untracked sweep")
            return

        known = {nid for rec in next_state.values() for nid in rec.all_ids}
        for nid in scheduled:
            if nid in known:
                continue
            try:
                await self._store.cancel(nid)
                logger.info("Cancelled untracked notification id=%s", nid)
            except NotificationStoreError:
                logger.exception("cancel of untracked notification failed id=%s", nid)
