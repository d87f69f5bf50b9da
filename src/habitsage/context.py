"""Application context for dependency injection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlmodel import Session

from .clock import DebugClock
from .config import BaseConfig
from .infra.database import create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelHabitRepository, SQLModelSettingsRepository
from .scheduler import JobScheduler, cleanup_old_logs
from .services.habit_engine import HabitStateEngine, HabitUpdate, RepairReport
from .services.metrics import MetricSource, StaticMetricSource
from .services.reconciliation import ReconciliationScheduler
from .services.reminders import JobReminderSink, LogReminderSink, ReminderPlanner

logger = logging.getLogger("habitsage.context")

LOG_CLEANUP_JOB_ID = "log_cleanup"


@dataclass
class AppContext:
    """Centralized application context with services and state."""

    # Configuration
    config: BaseConfig

    # Session factory
    session_factory: Callable[[], Session]

    # Repositories
    habit_repo: SQLModelHabitRepository
    settings_repo: SQLModelSettingsRepository

    # Services
    clock: DebugClock
    habits: HabitStateEngine
    metric_source: MetricSource
    sync: ReconciliationScheduler
    reminders: ReminderPlanner
    jobs: JobScheduler

    dev_mode: bool = False

    def startup(self) -> list[RepairReport]:
        """Bring stored state in line with today and repair drifted counters."""

        self.habits.reconcile_all(self.clock.today())
        reports = self.habits.repair_all()
        repaired = sum(1 for report in reports if report.counters_changed)
        if repaired:
            logger.warning("Repaired %s habit(s) on startup", repaired)
        return reports

    def start_background(self) -> None:
        self.jobs.start()
        self.sync.start(self.jobs)
        self.jobs.add_cron_job(
            lambda: cleanup_old_logs(self.config.DATA_DIR),
            job_id=LOG_CLEANUP_JOB_ID,
            hour=4,
            name="Log cleanup",
        )
        self.reminders.sink = JobReminderSink(self.jobs)
        self.reminders.refresh(force=True)

    def shutdown(self) -> None:
        self.reminders.cancel()
        self.sync.shutdown(self.jobs)
        self.jobs.stop()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    metric_source: Optional[MetricSource] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)

    habit_repo = SQLModelHabitRepository(session_factory)
    settings_repo = SQLModelSettingsRepository(session_factory)

    # Time travel only survives restarts in dev mode.
    override = settings_repo.get_debug_date() if config.DEV_MODE else None
    clock = DebugClock(override=override)

    habits = HabitStateEngine(habit_repo, clock)
    source = metric_source or StaticMetricSource()
    sync = ReconciliationScheduler(
        habits,
        source,
        clock,
        settings=settings_repo,
        interval=config.SYNC_INTERVAL_SECONDS,
        cooldown=config.SYNC_COOLDOWN_SECONDS,
        fetch_timeout=config.FETCH_TIMEOUT_SECONDS,
    )
    reminders = ReminderPlanner(
        habits, clock, LogReminderSink(), debounce=config.REMINDER_DEBOUNCE_SECONDS
    )

    def _persist_override(old_day: date, new_day: date) -> None:
        settings_repo.set_debug_date(clock.override)

    clock.add_listener(_persist_override)
    clock.add_listener(sync.on_date_changed)
    clock.add_listener(reminders.on_date_changed)
    habits.subscribe(reminders.on_habit_changed)

    def _sync_new_habit(update: HabitUpdate) -> None:
        if update.action == "create_habit" and update.habit is not None:
            sync.habit_added(update.habit)

    habits.subscribe(_sync_new_habit)

    return AppContext(
        config=config,
        session_factory=session_factory,
        habit_repo=habit_repo,
        settings_repo=settings_repo,
        clock=clock,
        habits=habits,
        metric_source=source,
        sync=sync,
        reminders=reminders,
        jobs=JobScheduler(),
        dev_mode=config.DEV_MODE,
    )


__all__ = ["AppContext", "create_app_context"]
