"""Streak derivation from habit history.

Streak counters are never incremented in place; they are recomputed from the
entries every time a habit changes, which keeps them correct across crashes,
backdated entries and clock changes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ..calendar_days import days_between, end_of_day, iter_days_back, local_day
from ..models.habit import GoalUnit, Habit, HabitEntry, HabitType

logger = logging.getLogger("habitsage.streaks")

MAX_STREAK_SCAN_DAYS = 1000


def is_successful_day(entry: HabitEntry, habit_type: HabitType) -> bool:
    """Whether an entry counts as a success for the habit.

    Goal-based build habits succeed by meeting the recorded target or by an
    explicit completion; binary build habits and all quit habits only succeed
    through an explicit completion.
    """

    if habit_type == HabitType.BUILD:
        if entry.goal_unit == GoalUnit.NONE:
            return entry.is_completed
        return entry.progress >= entry.goal_target or entry.is_completed
    return entry.is_completed


def collapse_duplicate_entries(entries: Iterable[HabitEntry]) -> dict[date, HabitEntry]:
    """Index entries by day, keeping the most recently written one per day."""

    by_day: dict[date, HabitEntry] = {}
    for entry in entries:
        existing = by_day.get(entry.occurred_on)
        if existing is None or entry.recorded_at >= existing.recorded_at:
            by_day[entry.occurred_on] = entry
    return by_day


def find_duplicate_days(entries: Iterable[HabitEntry]) -> dict[date, int]:
    """Days holding more than one entry, with their counts."""

    counts: dict[date, int] = {}
    for entry in entries:
        counts[entry.occurred_on] = counts.get(entry.occurred_on, 0) + 1
    return {day: count for day, count in counts.items() if count > 1}


def _resolve_now(today: Optional[date], now: Optional[datetime]) -> tuple[date, datetime]:
    if now is None:
        now = datetime.now()
    if today is None:
        today = local_day(now)
    return today, now


def current_streak(
    entries: Iterable[HabitEntry],
    habit_type: HabitType,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> int:
    """Consecutive successful days ending today (or yesterday while today is open)."""

    today, now = _resolve_now(today, now)
    by_day = collapse_duplicate_entries(entries)

    streak = 0
    for cursor in iter_days_back(today, MAX_STREAK_SCAN_DAYS):
        entry = by_day.get(cursor)
        if entry is not None:
            if not is_successful_day(entry, habit_type):
                break
            streak += 1
            continue
        if cursor == today and now < end_of_day(today):
            # Today is still undecided.
            continue
        break
    else:
        logger.warning("Streak scan hit the %s day bound", MAX_STREAK_SCAN_DAYS)

    return streak


def longest_streak(entries: Iterable[HabitEntry], habit_type: HabitType) -> int:
    """Longest run of consecutive successful days anywhere in the history."""

    ordered = sorted(collapse_duplicate_entries(entries).values(), key=lambda e: e.occurred_on)

    longest = 0
    run = 0
    last_success: Optional[date] = None
    for entry in ordered:
        if not is_successful_day(entry, habit_type):
            longest = max(longest, run)
            run = 0
            last_success = None
            continue

        if last_success is None:
            run = 1
        else:
            gap = days_between(last_success, entry.occurred_on)
            if gap == 1:
                run += 1
            elif gap > 1:
                longest = max(longest, run)
                run = 1
        last_success = entry.occurred_on

    return max(longest, run)


def compute_streaks(
    entries: Iterable[HabitEntry],
    habit_type: HabitType,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> tuple[int, int]:
    """Return (current_streak, longest_streak) from a collection of entries."""

    entries = list(entries)
    return (
        current_streak(entries, habit_type, today=today, now=now),
        longest_streak(entries, habit_type),
    )


def last_success_on_or_before(
    entries: Iterable[HabitEntry], habit_type: HabitType, day: date
) -> Optional[date]:
    """Most recent successful day not after ``day``."""

    successes = [
        entry.occurred_on
        for entry in collapse_duplicate_entries(entries).values()
        if entry.occurred_on <= day and is_successful_day(entry, habit_type)
    ]
    return max(successes) if successes else None


def validate(
    habit: Habit,
    entries: Iterable[HabitEntry],
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> bool:
    """True when the stored counters match the ones derived from ``entries``."""

    current, longest = compute_streaks(entries, habit.habit_type, today=today, now=now)
    if habit.streak == current and habit.longest_streak == longest:
        return True
    logger.warning(
        "Streak drift detected for %s",
        habit.name,
        extra={
            "habit_id": habit.id,
            "stored": (habit.streak, habit.longest_streak),
            "calculated": (current, longest),
        },
    )
    return False


def repair(
    habit: Habit,
    entries: Iterable[HabitEntry],
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Overwrite stored counters with derived ones; returns True if they changed."""

    current, longest = compute_streaks(entries, habit.habit_type, today=today, now=now)
    changed = (habit.streak, habit.longest_streak) != (current, longest)
    if changed:
        logger.info(
            "Repaired streak for %s: %s/%s -> %s/%s",
            habit.name,
            habit.streak,
            habit.longest_streak,
            current,
            longest,
            extra={"habit_id": habit.id},
        )
    habit.streak = current
    habit.longest_streak = longest
    return changed


def streak_history(
    entries: Iterable[HabitEntry],
    habit_type: HabitType,
    *,
    today: date,
    days: int = 90,
) -> dict[date, bool]:
    """Success flag per day for the last ``days`` days (missing days are False)."""

    by_day = collapse_duplicate_entries(entries)
    history: dict[date, bool] = {}
    for offset in range(days):
        day = today - timedelta(days=offset)
        entry = by_day.get(day)
        history[day] = entry is not None and is_successful_day(entry, habit_type)
    return history


__all__ = [
    "MAX_STREAK_SCAN_DAYS",
    "collapse_duplicate_entries",
    "compute_streaks",
    "current_streak",
    "find_duplicate_days",
    "is_successful_day",
    "last_success_on_or_before",
    "longest_streak",
    "repair",
    "streak_history",
    "validate",
]
