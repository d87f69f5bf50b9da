"""Background job scheduler for periodic sync, reminders and maintenance."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("habitsage.scheduler")

LOG_MAX_AGE_DAYS = 30


class JobScheduler:
    """Thin wrapper over APScheduler's background scheduler."""

    def __init__(self) -> None:
        self.scheduler: Optional[APScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return
        self.scheduler = APScheduler()
        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def add_interval_job(
        self, func: Callable, *, job_id: str, seconds: float, name: Optional[str] = None
    ) -> None:
        self._add(func, IntervalTrigger(seconds=seconds), job_id=job_id, name=name)

    def add_cron_job(
        self,
        func: Callable,
        *,
        job_id: str,
        hour: int,
        minute: int = 0,
        name: Optional[str] = None,
    ) -> None:
        self._add(func, CronTrigger(hour=hour, minute=minute), job_id=job_id, name=name)

    def add_date_job(
        self,
        func: Callable,
        *,
        job_id: str,
        run_at: datetime,
        name: Optional[str] = None,
    ) -> None:
        self._add(func, DateTrigger(run_date=run_at), job_id=job_id, name=name)

    def _add(self, func: Callable, trigger, *, job_id: str, name: Optional[str]) -> None:
        if self.scheduler is None:
            logger.warning("Cannot add job %s: scheduler not started", job_id)
            return
        self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=name or job_id,
            replace_existing=True,
        )
        logger.info("Added job: %s", job_id)

    def remove_job(self, job_id: str) -> None:
        """Remove a job if it is still scheduled."""
        if self.scheduler is not None and self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)
            logger.info("Removed job: %s", job_id)

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]


def cleanup_old_logs(data_dir: Path, *, max_age_days: int = LOG_MAX_AGE_DAYS) -> int:
    """Delete rotated log files older than ``max_age_days``; returns the count removed."""

    logs_dir = Path(data_dir) / "logs"
    if not logs_dir.exists():
        return 0

    cutoff = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
    removed = 0
    for log_file in logs_dir.glob("*.log.*"):
        try:
            if log_file.stat().st_mtime < cutoff:
                log_file.unlink()
                removed += 1
                logger.info("Deleted old log file: %s", log_file.name)
        except OSError as exc:
            logger.error("Log cleanup failed for %s: %s", log_file.name, exc)
    return removed


__all__ = ["JobScheduler", "cleanup_old_logs"]
