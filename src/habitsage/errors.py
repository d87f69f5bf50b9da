"""Error taxonomy shared by the store, engine and reconciliation layers."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional


class HabitSageError(Exception):
    """Base class for all HabitSage errors."""


class ValidationError(HabitSageError):
    """A request the engine refused; no state was mutated.

    Engine operations hand these back inside ``HabitUpdate`` instead of raising.
    """

    INVALID_NAME = "invalid_name"
    DUPLICATE_NAME = "duplicate_name"
    INVALID_GOAL = "invalid_goal"
    OVER_LIMIT = "over_limit"
    ACTIVITY_RECORDED = "activity_recorded"
    ALREADY_SUCCESSFUL = "already_successful"
    WRONG_HABIT_TYPE = "wrong_habit_type"
    UNSUPPORTED_TRACKING = "unsupported_tracking"
    FUTURE_DAY = "future_day"
    NOT_FOUND = "not_found"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"ValidationError(code={self.code!r}, message={self.message!r})"


class PersistenceError(HabitSageError):
    """The store failed to commit; cached state may be ahead of durable state.

    ``pending`` carries the state the engine computed but could not persist.
    Callers should reload from the store before trusting cached values.
    """

    def __init__(self, message: str, *, pending: Optional[object] = None) -> None:
        super().__init__(message)
        self.pending = pending


class SourceErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"


class ExternalSourceError(HabitSageError):
    """A metric fetch failed for a single habit."""

    def __init__(self, kind: SourceErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class InvariantViolation(HabitSageError):
    """Stored data broke a structural rule, e.g. two entries for one day."""

    def __init__(self, habit_id: Optional[int], day: date, count: int) -> None:
        super().__init__(f"habit {habit_id} has {count} entries for {day.isoformat()}")
        self.habit_id = habit_id
        self.day = day
        self.count = count


__all__ = [
    "ExternalSourceError",
    "HabitSageError",
    "InvariantViolation",
    "PersistenceError",
    "SourceErrorKind",
    "ValidationError",
]
