"""Sync automatically tracked habits from a metric source.

Fetches run outside any habit lock on a small thread pool, each with its own
timeout; results are then applied through the engine one habit at a time. A
trigger that arrives while a sync is running is dropped, not queued. Workers
stuck on a timed-out fetch are abandoned so later fetches get fresh ones.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, CancelledError, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from threading import Lock
from typing import Callable, Optional

from ..clock import Clock
from ..errors import ExternalSourceError, HabitSageError, PersistenceError, SourceErrorKind
from ..infra.repositories.settings import SQLModelSettingsRepository
from ..models.habit import Habit, MetricKind
from .habit_engine import HabitStateEngine, HabitUpdate
from .metrics import MetricSource, resolve_metric_kind

logger = logging.getLogger("habitsage.sync")

SYNC_JOB_ID = "habit_sync"


class SyncTrigger(str, Enum):
    TIMER = "timer"
    FOREGROUND = "foreground"
    HABIT_ADDED = "habit_added"
    EXTERNAL_EVENT = "external_event"
    FORCE = "force"


COOLDOWN_EXEMPT = frozenset({SyncTrigger.HABIT_ADDED, SyncTrigger.FORCE})


@dataclass
class HabitSyncOutcome:
    habit_id: int
    habit_name: str
    metric_kind: MetricKind
    value: Optional[float] = None
    error: Optional[HabitSageError] = None
    update: Optional[HabitUpdate] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    trigger: SyncTrigger
    started_at: datetime
    skipped_reason: Optional[str] = None
    outcomes: list[HabitSyncOutcome] = field(default_factory=list)

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None

    @property
    def failures(self) -> list[HabitSyncOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def succeeded(self) -> list[HabitSyncOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]


class ReconciliationScheduler:
    """Decides when to sync and applies fetched metrics through the engine."""

    def __init__(
        self,
        engine: HabitStateEngine,
        source: MetricSource,
        clock: Clock,
        *,
        settings: Optional[SQLModelSettingsRepository] = None,
        interval: float = 120.0,
        cooldown: float = 30.0,
        fetch_timeout: float = 10.0,
        max_workers: int = 4,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.source = source
        self.clock = clock
        self.settings = settings
        self.interval = interval
        self.cooldown = cooldown
        self.fetch_timeout = fetch_timeout
        self._monotonic = monotonic
        self._in_flight = Lock()
        self._last_sync: Optional[float] = None
        self._last_day: date = clock.today()
        self.max_workers = max_workers
        self._executor = self._new_executor()

    # ------------------------------------------------------------------ #
    # Triggers
    # ------------------------------------------------------------------ #
    def auto_sync_enabled(self) -> bool:
        if self.settings is None:
            return True
        return self.settings.auto_sync_enabled()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def trigger(
        self, reason: SyncTrigger = SyncTrigger.TIMER, *, kind: Optional[MetricKind] = None
    ) -> SyncReport:
        """Run one sync pass unless disabled, cooling down, or already running."""

        report = SyncReport(trigger=reason, started_at=self.clock.now())
        if not self.auto_sync_enabled():
            report.skipped_reason = "disabled"
            logger.debug("Automatic sync disabled; ignoring %s trigger", reason.value)
            return report

        if reason not in COOLDOWN_EXEMPT and self._cooling_down():
            report.skipped_reason = "cooldown"
            logger.debug("Sync cooling down; ignoring %s trigger", reason.value)
            return report

        if not self._in_flight.acquire(blocking=False):
            report.skipped_reason = "in_flight"
            logger.debug("Sync already running; dropping %s trigger", reason.value)
            return report

        try:
            self._last_sync = self._monotonic()
            report.outcomes = self._sync_all(kind)
        finally:
            self._in_flight.release()

        logger.info(
            "Sync finished",
            extra={
                "trigger": reason.value,
                "synced": len(report.succeeded),
                "failed": len(report.failures),
            },
        )
        return report

    def external_event(self, kind: MetricKind) -> SyncReport:
        """The metric source reported new data for ``kind``."""
        return self.trigger(SyncTrigger.EXTERNAL_EVENT, kind=kind)

    def habit_added(self, habit: Habit) -> Optional[SyncReport]:
        if not habit.is_automatic:
            return None
        return self.trigger(SyncTrigger.HABIT_ADDED)

    def _cooling_down(self) -> bool:
        if self._last_sync is None:
            return False
        return self._monotonic() - self._last_sync < self.cooldown

    # ------------------------------------------------------------------ #
    # Date changes
    # ------------------------------------------------------------------ #
    def check_date_change(self) -> Optional[list[HabitUpdate]]:
        """Reconcile every habit if the clock's day moved since the last check."""

        today = self.clock.today()
        if today == self._last_day:
            return None
        return self.on_date_changed(self._last_day, today)

    def on_date_changed(self, old_day: date, new_day: date) -> list[HabitUpdate]:
        logger.info(
            "Current day changed",
            extra={"from_day": old_day.isoformat(), "to_day": new_day.isoformat()},
        )
        self._last_day = new_day
        return self.engine.reconcile_all(new_day)

    def tick(self) -> SyncReport:
        """Periodic job: roll the day if needed, then sync."""

        self.check_date_change()
        return self.trigger(SyncTrigger.TIMER)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def start(self, jobs) -> None:
        jobs.add_interval_job(
            self.tick, job_id=SYNC_JOB_ID, seconds=self.interval, name="Habit metric sync"
        )

    def shutdown(self, jobs=None) -> None:
        if jobs is not None:
            jobs.remove_job(SYNC_JOB_ID)
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Sync pass
    # ------------------------------------------------------------------ #
    def _sync_all(self, kind: Optional[MetricKind]) -> list[HabitSyncOutcome]:
        day = self.clock.today()
        fetches: list[_Fetch] = []
        for habit in self.engine.list_habits():
            metric = resolve_metric_kind(habit)
            if metric is None:
                continue
            if kind is not None and metric != kind:
                continue
            fetches.append(_Fetch(habit, metric))

        if not fetches:
            return []

        for fetch in fetches:
            self._submit(fetch, day)

        pending = list(fetches)
        while pending:
            wait(
                [fetch.future for fetch in pending],
                timeout=self._next_deadline(pending),
                return_when=FIRST_COMPLETED,
            )
            now = time.monotonic()
            still_pending: list[_Fetch] = []
            timed_out = False
            for fetch in pending:
                if fetch.future.done():
                    fetch.outcome = self._settle(fetch, day)
                elif fetch.started is not None and now - fetch.started >= self.fetch_timeout:
                    fetch.outcome = self._timed_out(fetch)
                    timed_out = True
                else:
                    still_pending.append(fetch)
            if timed_out:
                self._replace_executor(still_pending, day)
            pending = still_pending

        return [fetch.outcome for fetch in fetches]

    def _submit(self, fetch: _Fetch, day: date) -> None:
        def run() -> float:
            fetch.started = time.monotonic()
            return self.source.fetch_metric(fetch.metric, day)

        fetch.started = None
        fetch.future = self._executor.submit(run)

    def _next_deadline(self, pending: list[_Fetch]) -> float:
        """Seconds until the earliest running fetch runs out of time."""

        started = [fetch.started for fetch in pending if fetch.started is not None]
        if not started:
            return self.fetch_timeout
        return max(0.0, min(started) + self.fetch_timeout - time.monotonic())

    def _replace_executor(self, pending: list[_Fetch], day: date) -> None:
        """Abandon workers stuck on timed-out fetches and requeue waiting ones."""

        requeue = [fetch for fetch in pending if fetch.future.cancel()]
        stuck = self._executor
        self._executor = self._new_executor()
        stuck.shutdown(wait=False)
        for fetch in requeue:
            self._submit(fetch, day)
        logger.info("Replaced sync workers after a timeout", extra={"requeued": len(requeue)})

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="habitsage-sync")

    def _timed_out(self, fetch: _Fetch) -> HabitSyncOutcome:
        outcome = fetch.new_outcome()
        outcome.error = ExternalSourceError(
            SourceErrorKind.TIMEOUT, f"{fetch.metric.value} fetch timed out"
        )
        self._log_failure(fetch, outcome)
        return outcome

    def _settle(self, fetch: _Fetch, day: date) -> HabitSyncOutcome:
        habit = fetch.habit
        outcome = fetch.new_outcome()
        try:
            value = fetch.future.result()
        except CancelledError:
            outcome.error = ExternalSourceError(SourceErrorKind.UNAVAILABLE, "sync cancelled")
        except ExternalSourceError as exc:
            outcome.error = exc
        except Exception as exc:
            logger.exception("Metric source raised unexpectedly", extra={"habit_id": habit.id})
            outcome.error = ExternalSourceError(SourceErrorKind.UNAVAILABLE, str(exc))
        else:
            outcome.value = value
            try:
                outcome.update = self.engine.apply_external_progress(habit.id, value, day)
            except PersistenceError as exc:
                outcome.error = exc

        if outcome.error is not None:
            self._log_failure(fetch, outcome)
        return outcome

    def _log_failure(self, fetch: _Fetch, outcome: HabitSyncOutcome) -> None:
        logger.warning(
            "Sync failed for %s: %s",
            fetch.habit.name,
            outcome.error,
            extra={"habit_id": fetch.habit.id, "metric": fetch.metric.value},
        )


@dataclass
class _Fetch:
    """One habit's metric fetch during a sync pass."""

    habit: Habit
    metric: MetricKind
    future: Optional[Future] = None
    started: Optional[float] = None
    outcome: Optional[HabitSyncOutcome] = None

    def new_outcome(self) -> HabitSyncOutcome:
        return HabitSyncOutcome(
            habit_id=self.habit.id, habit_name=self.habit.name, metric_kind=self.metric
        )


__all__ = [
    "COOLDOWN_EXEMPT",
    "HabitSyncOutcome",
    "ReconciliationScheduler",
    "SyncReport",
    "SyncTrigger",
]
