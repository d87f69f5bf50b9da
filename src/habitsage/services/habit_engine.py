"""Habit state engine: the only writer of a habit's live fields and entries.

Every public mutation runs as one transaction under the habit's lock:

1. load the habit and its entries from the repository,
2. roll the live day forward (or backward) to the clock's day, archiving
   progress that belongs to the previous live day,
3. apply the requested rule to the target day's entry,
4. recompute live state and streak counters from the entries,
5. save the habit and the touched entries atomically.

Validation problems come back as a rejected ``HabitUpdate``; store failures
raise ``PersistenceError``.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from threading import Lock, RLock
from typing import Callable, Iterator, Optional, Union

from ..calendar_days import start_of_day
from ..clock import Clock
from ..domain.repositories.habit import HabitRepository
from ..errors import InvariantViolation, PersistenceError, ValidationError
from ..models.habit import (
    GoalUnit,
    Habit,
    HabitEntry,
    HabitType,
    MetricKind,
    QuitHabitType,
    TrackingMode,
)
from . import streaks
from .metrics import infer_metric_kind, supports_automatic
from .presets import PresetHabit

logger = logging.getLogger("habitsage.engine")

MAX_NAME_LENGTH = 50

HabitRef = Union[Habit, int]


class UpdateStatus(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    REJECTED = "rejected"


@dataclass(frozen=True)
class HabitUpdate:
    """Outcome of an engine operation."""

    action: str
    status: UpdateStatus
    habit: Optional[Habit] = None
    day: Optional[date] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.status != UpdateStatus.REJECTED

    @property
    def changed(self) -> bool:
        return self.status == UpdateStatus.APPLIED


@dataclass(frozen=True)
class RepairReport:
    habit_id: int
    duplicates_collapsed: int
    counters_changed: bool


ChangeListener = Callable[[HabitUpdate], None]


class _Noop:
    """Marker returned by rules that found nothing to do."""


NOOP = _Noop()

RuleOutcome = Union[None, _Noop, ValidationError]


@dataclass
class _Working:
    """Mutable view of one habit while a transaction is open."""

    habit: Habit
    entries: dict[date, HabitEntry]
    today: date
    now: datetime
    dirty: dict[date, HabitEntry] = field(default_factory=dict)
    rolled: bool = False

    def entry(self, day: date) -> Optional[HabitEntry]:
        return self.entries.get(day)

    def ensure_entry(self, day: date) -> HabitEntry:
        entry = self.entries.get(day)
        if entry is None:
            entry = HabitEntry.snapshot(self.habit, day)
            self.entries[day] = entry
        return entry

    def day_progress(self, day: date) -> float:
        # The entry is authoritative; live fields may be zeroed by a reset.
        entry = self.entries.get(day)
        return entry.progress if entry else 0.0

    def is_successful(self, day: date) -> bool:
        entry = self.entries.get(day)
        return entry is not None and streaks.is_successful_day(entry, self.habit.habit_type)

    def write(
        self,
        day: date,
        *,
        progress: Optional[float] = None,
        completed: Optional[bool] = None,
    ) -> HabitEntry:
        """Upsert the entry for ``day``; today's entry also picks up goal edits."""

        entry = self.ensure_entry(day)
        if day == self.today:
            entry.copy_goal_from(self.habit)
        if progress is not None:
            entry.progress = progress
            if day == self.today:
                self.habit.current_progress = progress
        if completed is not None:
            entry.is_completed = completed
        entry.recorded_at = self.now
        self.dirty[day] = entry
        return entry


def _habit_id(habit: HabitRef) -> int:
    habit_id = habit if isinstance(habit, int) else habit.id
    if habit_id is None:
        raise ValueError("habit has not been persisted")
    return habit_id


class HabitStateEngine:
    """Transactional rules for habits, entries and streak counters."""

    def __init__(self, repository: HabitRepository, clock: Clock):
        self.repository = repository
        self.clock = clock
        self._locks: dict[int, RLock] = {}
        self._locks_guard = Lock()
        self._catalog_lock = Lock()
        self._listeners: list[ChangeListener] = []

    # ------------------------------------------------------------------ #
    # Change notification
    # ------------------------------------------------------------------ #
    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, update: HabitUpdate) -> None:
        if not update.changed:
            return
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                logger.exception("Change listener failed for %s", update.action)

    # ------------------------------------------------------------------ #
    # Locking
    # ------------------------------------------------------------------ #
    @contextmanager
    def _locked(self, habit_id: int) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(habit_id, RLock())
        with lock:
            yield

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get_habit(self, habit: HabitRef) -> Optional[Habit]:
        return self.repository.get_by_id(_habit_id(habit))

    def list_habits(self, include_inactive: bool = False) -> list[Habit]:
        return self.repository.list_all(include_inactive=include_inactive)

    def entries_for(self, habit: HabitRef) -> list[HabitEntry]:
        return self.repository.list_entries(_habit_id(habit))

    def streak_history(self, habit: HabitRef, days: int = 90) -> dict[date, bool]:
        current = self.get_habit(habit)
        if current is None:
            return {}
        return streaks.streak_history(
            self.entries_for(current), current.habit_type, today=self.clock.today(), days=days
        )

    def incomplete_habits(self, as_of: Optional[date] = None) -> list[Habit]:
        """Active habits whose goal is not yet satisfied for ``as_of``."""

        as_of = as_of or self.clock.today()
        pending: list[Habit] = []
        for habit in self.repository.list_all():
            if habit.progress_on == as_of:
                done = habit.is_completed
            else:
                entry = self.repository.get_entry(_habit_id(habit), as_of)
                done = entry is not None and streaks.is_successful_day(entry, habit.habit_type)
            if not done:
                pending.append(habit)
        return pending

    def validate(self, habit: HabitRef) -> bool:
        current = self.get_habit(habit)
        if current is None:
            return False
        today = self.clock.today()
        return streaks.validate(
            current, self.entries_for(current), today=today, now=self._now_for(today)
        )

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #
    def create_habit(
        self,
        name: str,
        *,
        habit_type: HabitType = HabitType.BUILD,
        quit_habit_type: Optional[QuitHabitType] = None,
        goal_target: float = 1.0,
        goal_unit: GoalUnit = GoalUnit.NONE,
        tracking_mode: TrackingMode = TrackingMode.MANUAL,
        metric_kind: Optional[MetricKind] = None,
        description: str = "",
    ) -> HabitUpdate:
        """Validate and insert a new habit."""

        # Name uniqueness is checked and claimed under one lock.
        with self._catalog_lock:
            update = self._create_habit(
                name,
                habit_type=habit_type,
                quit_habit_type=quit_habit_type,
                goal_target=goal_target,
                goal_unit=goal_unit,
                tracking_mode=tracking_mode,
                metric_kind=metric_kind,
                description=description,
            )
        self._notify(update)
        return update

    def _create_habit(
        self,
        name: str,
        *,
        habit_type: HabitType = HabitType.BUILD,
        quit_habit_type: Optional[QuitHabitType] = None,
        goal_target: float = 1.0,
        goal_unit: GoalUnit = GoalUnit.NONE,
        tracking_mode: TrackingMode = TrackingMode.MANUAL,
        metric_kind: Optional[MetricKind] = None,
        description: str = "",
    ) -> HabitUpdate:
        action = "create_habit"
        cleaned = (name or "").strip()
        if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
            return self._rejected(
                action,
                ValidationError(
                    ValidationError.INVALID_NAME,
                    f"Habit name must be 1-{MAX_NAME_LENGTH} characters",
                ),
            )
        if self.repository.get_by_name(cleaned) is not None:
            return self._rejected(
                action,
                ValidationError(ValidationError.DUPLICATE_NAME, f"A habit named {cleaned!r} exists"),
            )

        if habit_type == HabitType.QUIT:
            quit_habit_type = quit_habit_type or QuitHabitType.ABSTINENCE
        else:
            quit_habit_type = None

        goal_error = _check_goal(habit_type, quit_habit_type, goal_target, goal_unit)
        if goal_error is not None:
            return self._rejected(action, goal_error)

        if tracking_mode == TrackingMode.AUTOMATIC:
            if habit_type != HabitType.BUILD or not supports_automatic(goal_unit):
                return self._rejected(
                    action,
                    ValidationError(
                        ValidationError.UNSUPPORTED_TRACKING,
                        "Automatic tracking needs a build habit measured in steps or minutes",
                    ),
                )
            inferred = infer_metric_kind(goal_unit, cleaned)
            if metric_kind is not None and not _metric_matches_unit(metric_kind, goal_unit):
                return self._rejected(
                    action,
                    ValidationError(
                        ValidationError.UNSUPPORTED_TRACKING,
                        f"{metric_kind.value} cannot feed a goal in {goal_unit.value}",
                    ),
                )
            metric_kind = metric_kind or inferred
        else:
            metric_kind = None

        binary = habit_type == HabitType.BUILD and goal_unit == GoalUnit.NONE
        habit = Habit(
            name=cleaned,
            description=description,
            habit_type=habit_type,
            quit_habit_type=quit_habit_type,
            goal_target=1.0 if binary else float(goal_target),
            goal_unit=goal_unit,
            tracking_mode=tracking_mode,
            metric_kind=metric_kind,
            created_at=self.clock.now(),
            progress_on=self.clock.today(),
        )
        created = self.repository.create(habit)
        logger.info(
            "Created habit %s",
            created.name,
            extra={"habit_id": created.id, "habit_type": habit_type.value},
        )
        update = HabitUpdate(action, UpdateStatus.APPLIED, created, self.clock.today())
        return update

    def create_from_preset(
        self, preset: PresetHabit, *, tracking_mode: TrackingMode = TrackingMode.MANUAL
    ) -> HabitUpdate:
        return self.create_habit(
            preset.name,
            habit_type=preset.habit_type,
            quit_habit_type=preset.quit_habit_type,
            goal_target=preset.goal_target,
            goal_unit=preset.goal_unit,
            tracking_mode=tracking_mode,
            description=preset.description,
        )

    def delete_habit(self, habit: HabitRef) -> HabitUpdate:
        habit_id = _habit_id(habit)
        with self._locked(habit_id):
            existing = self.repository.get_by_id(habit_id)
            if existing is not None:
                self.repository.delete(habit_id)
        with self._locks_guard:
            self._locks.pop(habit_id, None)
        if existing is None:
            return self._not_found("delete_habit", habit_id)
        logger.info("Deleted habit %s", existing.name, extra={"habit_id": habit_id})
        update = HabitUpdate("delete_habit", UpdateStatus.APPLIED, existing, self.clock.today())
        self._notify(update)
        return update

    def update_goal(
        self,
        habit: HabitRef,
        goal_target: float,
        goal_unit: Optional[GoalUnit] = None,
    ) -> HabitUpdate:
        """Change the goal going forward; past entries keep their recorded goal."""

        return self._run("update_goal", habit, None, self._apply_goal, goal_target, goal_unit)

    # ------------------------------------------------------------------ #
    # Daily outcomes
    # ------------------------------------------------------------------ #
    def record_completion(self, habit: HabitRef, day: Optional[date] = None) -> HabitUpdate:
        """Mark a build habit's day as done."""
        return self._run("record_completion", habit, day, self._apply_completion)

    def add_progress(
        self, habit: HabitRef, amount: float, day: Optional[date] = None
    ) -> HabitUpdate:
        """Add (or with a negative amount, remove) progress for a day."""
        return self._run("add_progress", habit, day, self._apply_progress, amount)

    def apply_external_progress(
        self, habit: HabitRef, value: float, day: Optional[date] = None
    ) -> HabitUpdate:
        """Set a day's progress to the value reported by the metric source."""
        return self._run("apply_external_progress", habit, day, self._apply_external, value)

    def record_quit_success(self, habit: HabitRef, day: Optional[date] = None) -> HabitUpdate:
        """Mark a quit habit's day as clean (or within its limit)."""
        return self._run("record_quit_success", habit, day, self._apply_quit_success)

    def record_failure(self, habit: HabitRef, day: Optional[date] = None) -> HabitUpdate:
        """Record a lapse on a quit habit."""
        return self._run("record_failure", habit, day, self._apply_failure)

    def reset_streak(self, habit: HabitRef) -> HabitUpdate:
        """User-requested "start over".

        Zeroes the live counter without recomputing from entries and leaves
        ``longest_streak`` alone, so the stored streak may disagree with the
        history until the next mutation or repair pass recomputes it.
        """

        action = "reset_streak"
        habit_id = _habit_id(habit)
        with self._locked(habit_id):
            current = self.repository.get_by_id(habit_id)
            if current is None:
                return self._not_found(action, habit_id)
            today = self.clock.today()
            state = self._open(current, today)
            self._roll_live_day(state)
            current.streak = 0
            current.current_progress = 0.0
            current.is_completed = False
            current.last_completed_on = None
            current.progress_on = today
            saved = self._save(state)
        logger.info("Reset streak for %s", saved.name, extra={"habit_id": habit_id})
        update = HabitUpdate(action, UpdateStatus.APPLIED, saved, today)
        self._notify(update)
        return update

    # ------------------------------------------------------------------ #
    # Reconciliation and repair
    # ------------------------------------------------------------------ #
    def reconcile_for_date(self, habit: HabitRef, new_day: date) -> HabitUpdate:
        """Re-base live state on ``new_day`` after the current date moved.

        Works for forward and backward moves: progress belonging to the old
        live day is archived into its entry, and the new day's state is read
        back from its entry when one exists.
        """

        return self._run("reconcile_for_date", habit, new_day, None, today=new_day)

    def reconcile_all(self, new_day: Optional[date] = None) -> list[HabitUpdate]:
        new_day = new_day or self.clock.today()
        updates = []
        for habit in self.repository.list_all(include_inactive=True):
            updates.append(self.reconcile_for_date(habit, new_day))
        changed = sum(1 for update in updates if update.changed)
        logger.info(
            "Reconciled habits for %s", new_day.isoformat(), extra={"changed": changed}
        )
        return updates

    def repair(self, habit: HabitRef) -> HabitUpdate:
        """Recompute stored counters from history."""
        return self._run("repair", habit, None, None)

    def repair_all(self) -> list[RepairReport]:
        """Startup pass: collapse duplicate entries and fix drifted counters."""

        reports = []
        for habit in self.repository.list_all(include_inactive=True):
            habit_id = _habit_id(habit)
            with self._locked(habit_id):
                entries = self.repository.list_entries(habit_id)
                duplicates = streaks.find_duplicate_days(entries)
                if duplicates:
                    self._collapse_duplicates(habit, entries, duplicates)
            update = self.repair(habit_id)
            reports.append(
                RepairReport(
                    habit_id=habit_id,
                    duplicates_collapsed=sum(count - 1 for count in duplicates.values()),
                    counters_changed=update.changed,
                )
            )
        return reports

    def _collapse_duplicates(
        self, habit: Habit, entries: list[HabitEntry], duplicates: dict[date, int]
    ) -> None:
        winners = streaks.collapse_duplicate_entries(entries)
        habit_id = _habit_id(habit)
        for day, count in duplicates.items():
            logger.warning(
                "Collapsing duplicate entries",
                extra={"violation": str(InvariantViolation(habit_id, day, count))},
            )
            self.repository.delete_entry(habit_id, day)
            self.repository.upsert_entry(winners[day])

    # ------------------------------------------------------------------ #
    # Transaction plumbing
    # ------------------------------------------------------------------ #
    def _now_for(self, today: date) -> datetime:
        if today == self.clock.today():
            return self.clock.now()
        return start_of_day(today)

    def _open(self, habit: Habit, today: date) -> _Working:
        entries = self.repository.list_entries(_habit_id(habit))
        return _Working(
            habit=habit,
            entries=streaks.collapse_duplicate_entries(entries),
            today=today,
            now=self._now_for(today),
        )

    def _run(
        self,
        action: str,
        habit: HabitRef,
        day: Optional[date],
        rule: Optional[Callable[..., RuleOutcome]],
        *args,
        today: Optional[date] = None,
    ) -> HabitUpdate:
        habit_id = _habit_id(habit)
        today = today or self.clock.today()
        day = day or today
        if day > today:
            return self._rejected(
                action,
                ValidationError(
                    ValidationError.FUTURE_DAY,
                    f"{day.isoformat()} is after the current day {today.isoformat()}",
                ),
                day=day,
            )

        with self._locked(habit_id):
            current = self.repository.get_by_id(habit_id)
            if current is None:
                return self._not_found(action, habit_id)
            state = self._open(current, today)
            self._roll_live_day(state)

            outcome = rule(state, day, *args) if rule is not None else NOOP
            before = _derived_fields(current)
            self._recompute(state)
            after = _derived_fields(current)

            if isinstance(outcome, ValidationError):
                # Rules refuse before writing, so only the rollover is pending.
                saved = self._save(state) if state.rolled or before != after else current
                logger.info(
                    "Rejected %s: %s",
                    action,
                    outcome.message,
                    extra={"habit_id": habit_id, "day": day.isoformat(), "code": outcome.code},
                )
                return HabitUpdate(action, UpdateStatus.REJECTED, saved, day, outcome)

            changed = outcome is None or state.rolled or bool(state.dirty) or before != after
            if not changed:
                logger.debug("%s was a no-op", action, extra={"habit_id": habit_id})
                return HabitUpdate(action, UpdateStatus.NOOP, current, day)

            saved = self._save(state)

        logger.info(
            "%s %s",
            action,
            saved.name,
            extra={
                "habit_id": habit_id,
                "day": day.isoformat(),
                "streak": saved.streak,
                "longest_streak": saved.longest_streak,
                "progress": saved.current_progress,
                "completed": saved.is_completed,
            },
        )
        update = HabitUpdate(action, UpdateStatus.APPLIED, saved, day)
        self._notify(update)
        return update

    def _save(self, state: _Working) -> Habit:
        try:
            return self.repository.save(state.habit, list(state.dirty.values()))
        except PersistenceError as exc:
            exc.pending = state.habit
            raise

    def _roll_live_day(self, state: _Working) -> None:
        """Move the live fields onto ``state.today``, archiving the old day first."""

        habit = state.habit
        live_day = habit.progress_on or habit.last_completed_on
        if live_day == state.today:
            return

        has_unflushed = habit.current_progress > 0 or habit.is_completed
        if has_unflushed:
            owner = live_day or (state.today - timedelta(days=1))
            if owner != state.today:
                self._archive(state, owner)

        entry = state.entry(state.today)
        habit.current_progress = entry.progress if entry else 0.0
        habit.is_completed = state.is_successful(state.today)
        habit.progress_on = state.today
        state.rolled = True
        logger.debug(
            "Rolled live day",
            extra={
                "habit_id": habit.id,
                "from_day": live_day.isoformat() if live_day else None,
                "to_day": state.today.isoformat(),
            },
        )

    def _archive(self, state: _Working, owner: date) -> None:
        habit = state.habit
        entry = state.entry(owner)
        progress = habit.current_progress
        completed = habit.is_completed
        if entry is not None and entry.progress == progress and (entry.is_completed or not completed):
            return
        entry = state.ensure_entry(owner)
        entry.progress = progress
        entry.is_completed = entry.is_completed or completed
        entry.recorded_at = state.now
        state.dirty[owner] = entry
        logger.info(
            "Archived live progress",
            extra={"habit_id": habit.id, "day": owner.isoformat(), "progress": progress},
        )

    def _recompute(self, state: _Working) -> None:
        """Single place where live state and streak counters are derived."""

        habit = state.habit
        entries = list(state.entries.values())
        today_entry = state.entry(state.today)
        habit.current_progress = today_entry.progress if today_entry else 0.0
        habit.is_completed = state.is_successful(state.today)
        habit.progress_on = state.today
        habit.last_completed_on = streaks.last_success_on_or_before(
            entries, habit.habit_type, state.today
        )
        habit.streak, habit.longest_streak = streaks.compute_streaks(
            entries, habit.habit_type, today=state.today, now=state.now
        )

    def _rejected(
        self, action: str, error: ValidationError, *, day: Optional[date] = None
    ) -> HabitUpdate:
        logger.info("Rejected %s: %s", action, error.message, extra={"code": error.code})
        return HabitUpdate(action, UpdateStatus.REJECTED, None, day, error)

    def _not_found(self, action: str, habit_id: int) -> HabitUpdate:
        return self._rejected(
            action, ValidationError(ValidationError.NOT_FOUND, f"Habit {habit_id} not found")
        )

    # ------------------------------------------------------------------ #
    # Rules
    # ------------------------------------------------------------------ #
    def _apply_completion(self, state: _Working, day: date) -> RuleOutcome:
        habit = state.habit
        if habit.habit_type != HabitType.BUILD:
            return ValidationError(
                ValidationError.WRONG_HABIT_TYPE, "Quit habits record success with quit-success"
            )
        if state.is_successful(day):
            return NOOP
        state.write(day, completed=True)
        return None

    def _apply_progress(self, state: _Working, day: date, amount: float) -> RuleOutcome:
        habit = state.habit
        error = _check_progress_habit(habit)
        if error is not None:
            return error
        if not math.isfinite(amount):
            return ValidationError(ValidationError.INVALID_GOAL, "Progress must be a finite number")
        if amount == 0:
            return NOOP
        total = max(0.0, state.day_progress(day) + amount)
        return self._set_progress(state, day, total)

    def _apply_external(self, state: _Working, day: date, value: float) -> RuleOutcome:
        habit = state.habit
        error = _check_progress_habit(habit)
        if error is not None:
            return error
        if not math.isfinite(value) or value < 0:
            return ValidationError(ValidationError.INVALID_GOAL, "Metric values must be >= 0")
        needs_completion = (
            habit.habit_type == HabitType.BUILD
            and value >= habit.goal_target
            and not state.is_successful(day)
        )
        entry = state.entry(day)
        if entry is not None and entry.progress == value and not needs_completion:
            return NOOP
        return self._set_progress(state, day, value)

    def _set_progress(self, state: _Working, day: date, total: float) -> RuleOutcome:
        habit = state.habit
        if total == 0 and state.entry(day) is None:
            return NOOP
        was_successful = state.is_successful(day)
        entry = state.write(day, progress=total)
        if habit.habit_type == HabitType.BUILD and total >= entry.goal_target and not was_successful:
            entry.is_completed = True
            logger.info(
                "Goal reached for %s", habit.name, extra={"habit_id": habit.id, "day": day.isoformat()}
            )
        elif habit.is_quit_limit and was_successful and total > entry.goal_target:
            logger.warning(
                "Limit exceeded after success was recorded; keeping the success",
                extra={"habit_id": habit.id, "day": day.isoformat()},
            )
        return None

    def _apply_quit_success(self, state: _Working, day: date) -> RuleOutcome:
        habit = state.habit
        if habit.habit_type != HabitType.QUIT:
            return ValidationError(
                ValidationError.WRONG_HABIT_TYPE, "Only quit habits record quit success"
            )
        if state.is_successful(day):
            return NOOP
        progress = state.day_progress(day)
        if habit.is_quit_limit:
            if progress > habit.goal_target:
                return ValidationError(
                    ValidationError.OVER_LIMIT,
                    f"Still over limit ({progress:g} > {habit.goal_target:g})",
                )
        elif progress > 0:
            return ValidationError(
                ValidationError.ACTIVITY_RECORDED, "Activity was recorded for this day"
            )
        state.write(day, completed=True)
        return None

    def _apply_failure(self, state: _Working, day: date) -> RuleOutcome:
        habit = state.habit
        if habit.habit_type != HabitType.QUIT:
            return ValidationError(
                ValidationError.WRONG_HABIT_TYPE, "Only quit habits can record a failure"
            )
        if state.is_successful(day):
            return ValidationError(
                ValidationError.ALREADY_SUCCESSFUL,
                "This day is already marked successful",
            )
        progress = state.day_progress(day)
        if habit.is_quit_limit:
            failed_progress = progress if progress > habit.goal_target else habit.goal_target + 1
        else:
            failed_progress = max(progress, 1.0)
        entry = state.entry(day)
        if entry is not None and not entry.is_completed and entry.progress == failed_progress:
            return NOOP
        state.write(day, progress=failed_progress, completed=False)
        return None

    def _apply_goal(
        self,
        state: _Working,
        day: date,
        goal_target: float,
        goal_unit: Optional[GoalUnit],
    ) -> RuleOutcome:
        habit = state.habit
        goal_unit = goal_unit or habit.goal_unit
        error = _check_goal(habit.habit_type, habit.quit_habit_type, goal_target, goal_unit)
        if error is not None:
            return error
        if habit.is_automatic and not supports_automatic(goal_unit):
            return ValidationError(
                ValidationError.UNSUPPORTED_TRACKING,
                f"Automatic tracking cannot measure {goal_unit.value}",
            )
        if habit.goal_target == goal_target and habit.goal_unit == goal_unit:
            return NOOP
        habit.goal_target = float(goal_target)
        habit.goal_unit = goal_unit
        if state.entry(state.today) is not None:
            entry = state.write(state.today)
            if (
                habit.habit_type == HabitType.BUILD
                and habit.is_goal_based
                and entry.progress >= entry.goal_target
            ):
                entry.is_completed = True
        return None


def _check_goal(
    habit_type: HabitType,
    quit_habit_type: Optional[QuitHabitType],
    goal_target: float,
    goal_unit: GoalUnit,
) -> Optional[ValidationError]:
    try:
        target = float(goal_target)
    except (TypeError, ValueError):
        return ValidationError(ValidationError.INVALID_GOAL, "Goal target must be a number")
    if not math.isfinite(target) or target < 0:
        return ValidationError(ValidationError.INVALID_GOAL, "Goal target must be >= 0")
    abstinence = habit_type == HabitType.QUIT and quit_habit_type != QuitHabitType.LIMIT
    if goal_unit != GoalUnit.NONE and target <= 0 and not abstinence:
        return ValidationError(ValidationError.INVALID_GOAL, "Goal target must be greater than 0")
    if habit_type == HabitType.QUIT and quit_habit_type == QuitHabitType.LIMIT and goal_unit == GoalUnit.NONE:
        return ValidationError(ValidationError.INVALID_GOAL, "Limit habits need a measurable unit")
    return None


def _derived_fields(habit: Habit) -> tuple:
    return (
        habit.streak,
        habit.longest_streak,
        habit.last_completed_on,
        habit.current_progress,
        habit.is_completed,
    )


def _check_progress_habit(habit: Habit) -> Optional[ValidationError]:
    if habit.habit_type == HabitType.BUILD and habit.is_goal_based:
        return None
    if habit.is_quit_limit:
        return None
    return ValidationError(
        ValidationError.WRONG_HABIT_TYPE,
        "Progress applies to goal-based build habits and limit habits",
    )


def _metric_matches_unit(kind: MetricKind, unit: GoalUnit) -> bool:
    if kind == MetricKind.STEPS:
        return unit == GoalUnit.STEPS
    return unit == GoalUnit.MINUTES


__all__ = [
    "ChangeListener",
    "HabitStateEngine",
    "HabitUpdate",
    "RepairReport",
    "UpdateStatus",
]
