"""SQLModel table exports."""

from .habit import (
    GoalUnit,
    Habit,
    HabitEntry,
    HabitType,
    MetricKind,
    QuitHabitType,
    TrackingMode,
)
from .settings import AppSetting

__all__ = [
    "AppSetting",
    "GoalUnit",
    "Habit",
    "HabitEntry",
    "HabitType",
    "MetricKind",
    "QuitHabitType",
    "TrackingMode",
]
