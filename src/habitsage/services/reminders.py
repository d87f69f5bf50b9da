"""Daily reminder planning for habits that are still open."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from threading import Lock, Timer
from typing import Optional, Protocol, Sequence

from ..clock import Clock
from ..models.habit import Habit
from .habit_engine import HabitStateEngine, HabitUpdate

logger = logging.getLogger("habitsage.reminders")


@dataclass(frozen=True)
class TimeSlot:
    key: str
    hour: int
    title: str


TIME_SLOTS: tuple[TimeSlot, ...] = (
    TimeSlot("morning", 9, "Good morning"),
    TimeSlot("afternoon", 14, "Afternoon check-in"),
    TimeSlot("evening", 18, "Evening reminder"),
    TimeSlot("night", 21, "Last call for today"),
)


@dataclass(frozen=True)
class ReminderMessage:
    slot: TimeSlot
    fire_at: datetime
    title: str
    body: str
    habit_ids: tuple[int, ...]

    @property
    def job_id(self) -> str:
        return f"reminder-{self.fire_at:%Y%m%d}-{self.slot.key}"


class ReminderComposer(Protocol):
    def compose(self, slot: TimeSlot, habits: Sequence[Habit]) -> tuple[str, str]:  # pragma: no cover - interface
        ...


class ReminderSink(Protocol):
    def schedule(self, message: ReminderMessage) -> None:  # pragma: no cover - interface
        ...

    def cancel_all(self) -> None:  # pragma: no cover - interface
        ...


class SummaryComposer:
    """Plain-text summary of what is left for the day."""

    max_names = 3

    def compose(self, slot: TimeSlot, habits: Sequence[Habit]) -> tuple[str, str]:
        names = [habit.name for habit in habits[: self.max_names]]
        extra = len(habits) - len(names)
        listing = ", ".join(names)
        if extra > 0:
            listing += f" and {extra} more"
        noun = "habit" if len(habits) == 1 else "habits"
        return slot.title, f"{len(habits)} {noun} left today: {listing}"


class LogReminderSink:
    """Keeps scheduled reminders in memory and logs them."""

    def __init__(self) -> None:
        self.scheduled: list[ReminderMessage] = []

    def schedule(self, message: ReminderMessage) -> None:
        self.scheduled.append(message)
        logger.info(
            "Reminder scheduled",
            extra={"slot": message.slot.key, "fire_at": message.fire_at.isoformat(), "body": message.body},
        )

    def cancel_all(self) -> None:
        self.scheduled.clear()


class JobReminderSink:
    """Delivers reminders as one-shot jobs on the background scheduler."""

    def __init__(self, jobs, deliver=None) -> None:
        self.jobs = jobs
        self.deliver = deliver or _log_delivery
        self._job_ids: list[str] = []

    def schedule(self, message: ReminderMessage) -> None:
        self.jobs.add_date_job(
            lambda: self.deliver(message),
            job_id=message.job_id,
            run_at=message.fire_at,
            name=message.title,
        )
        self._job_ids.append(message.job_id)

    def cancel_all(self) -> None:
        for job_id in self._job_ids:
            self.jobs.remove_job(job_id)
        self._job_ids.clear()


def _log_delivery(message: ReminderMessage) -> None:
    logger.info("%s: %s", message.title, message.body, extra={"slot": message.slot.key})


class ReminderPlanner:
    """Plans the remaining reminder slots for today.

    The set of incomplete habits is snapshotted together with the day; when
    nothing changed since the last plan the sink is left alone. Bursts of
    change notifications are coalesced with a short debounce timer.
    """

    def __init__(
        self,
        engine: HabitStateEngine,
        clock: Clock,
        sink: ReminderSink,
        *,
        composer: Optional[ReminderComposer] = None,
        debounce: float = 1.0,
    ):
        self.engine = engine
        self.clock = clock
        self.sink = sink
        self.composer = composer or SummaryComposer()
        self.debounce = debounce
        self._lock = Lock()
        self._snapshot: Optional[tuple[date, frozenset[int]]] = None
        self._timer: Optional[Timer] = None
        self.refresh_count = 0

    def refresh(self, force: bool = False) -> Optional[list[ReminderMessage]]:
        """Re-plan today's reminders; returns None when the plan was unchanged."""

        with self._lock:
            today = self.clock.today()
            pending = self.engine.incomplete_habits(today)
            snapshot = (today, frozenset(habit.id for habit in pending))
            if not force and snapshot == self._snapshot:
                logger.debug("Reminder plan unchanged")
                return None
            self._snapshot = snapshot
            self.refresh_count += 1

            self.sink.cancel_all()
            messages = self._plan(today, pending)
            for message in messages:
                self.sink.schedule(message)

        logger.info(
            "Reminders planned",
            extra={"day": today.isoformat(), "pending": len(pending), "scheduled": len(messages)},
        )
        return messages

    def _plan(self, today: date, pending: Sequence[Habit]) -> list[ReminderMessage]:
        if not pending:
            return []
        now = self.clock.now()
        habit_ids = tuple(habit.id for habit in pending)
        messages = []
        for slot in TIME_SLOTS:
            fire_at = datetime.combine(today, time(hour=slot.hour))
            if fire_at <= now:
                continue
            title, body = self.composer.compose(slot, pending)
            messages.append(ReminderMessage(slot, fire_at, title, body, habit_ids))
        return messages

    def request_refresh(self) -> None:
        """Schedule a refresh after the debounce window, replacing any pending one."""

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = Timer(self.debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.refresh()

    def on_habit_changed(self, update: HabitUpdate) -> None:
        self.request_refresh()

    def on_date_changed(self, old_day: date, new_day: date) -> None:
        self.request_refresh()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


__all__ = [
    "JobReminderSink",
    "LogReminderSink",
    "ReminderComposer",
    "ReminderMessage",
    "ReminderPlanner",
    "ReminderSink",
    "SummaryComposer",
    "TIME_SLOTS",
    "TimeSlot",
]
