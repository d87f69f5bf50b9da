"""Automatic metric sources and the habit-to-metric mapping."""

from __future__ import annotations

from datetime import date
from threading import Lock
from typing import Optional, Protocol

from ..errors import ExternalSourceError, SourceErrorKind
from ..models.habit import GoalUnit, Habit, MetricKind, TrackingMode

EXERCISE_KEYWORDS = ("exercise", "workout")
MINDFUL_KEYWORDS = ("meditat",)


class MetricSource(Protocol):
    """Capability returning a day's value for a metric.

    Implementations raise ``ExternalSourceError`` for unavailable,
    unauthorized or missing data.
    """

    def fetch_metric(self, kind: MetricKind, day: date) -> float:  # pragma: no cover - interface
        ...


def supports_automatic(goal_unit: GoalUnit) -> bool:
    """Units the metric source can supply."""

    return goal_unit in (GoalUnit.STEPS, GoalUnit.MINUTES)


def infer_metric_kind(goal_unit: GoalUnit, name: str) -> Optional[MetricKind]:
    """Guess a metric from the unit and keywords in the habit name.

    Only used as the default when a habit is created without an explicit
    metric kind; minute goals fall back to exercise minutes.
    """

    if goal_unit == GoalUnit.STEPS:
        return MetricKind.STEPS
    if goal_unit == GoalUnit.MINUTES:
        lowered = name.lower()
        if any(word in lowered for word in EXERCISE_KEYWORDS):
            return MetricKind.EXERCISE_MINUTES
        if any(word in lowered for word in MINDFUL_KEYWORDS):
            return MetricKind.MINDFUL_MINUTES
        return MetricKind.EXERCISE_MINUTES
    return None


def resolve_metric_kind(habit: Habit) -> Optional[MetricKind]:
    """The metric an automatic habit syncs from, or None for manual habits."""

    if habit.tracking_mode != TrackingMode.AUTOMATIC:
        return None
    return habit.metric_kind or infer_metric_kind(habit.goal_unit, habit.name)


class StaticMetricSource:
    """In-memory metric source keyed by (kind, day).

    Used in development and tests; values can be pushed while the app runs to
    simulate new data arriving from the device.
    """

    def __init__(self, values: Optional[dict[tuple[MetricKind, date], float]] = None):
        self._values = dict(values or {})
        self._failures: dict[MetricKind, SourceErrorKind] = {}
        self._lock = Lock()
        self.calls: list[tuple[MetricKind, date]] = []

    def set_value(self, kind: MetricKind, day: date, value: float) -> None:
        with self._lock:
            self._values[(kind, day)] = value

    def fail(self, kind: MetricKind, error: SourceErrorKind) -> None:
        with self._lock:
            self._failures[kind] = error

    def clear_failure(self, kind: MetricKind) -> None:
        with self._lock:
            self._failures.pop(kind, None)

    def fetch_metric(self, kind: MetricKind, day: date) -> float:
        with self._lock:
            self.calls.append((kind, day))
            failure = self._failures.get(kind)
            value = self._values.get((kind, day))
        if failure is not None:
            raise ExternalSourceError(failure, f"{kind.value} fetch failed")
        if value is None:
            raise ExternalSourceError(SourceErrorKind.NOT_FOUND, f"no {kind.value} for {day}")
        return value


__all__ = [
    "MetricSource",
    "StaticMetricSource",
    "infer_metric_kind",
    "resolve_metric_kind",
    "supports_automatic",
]
