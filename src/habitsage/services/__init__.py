"""Service module exports."""

from . import habit_engine, metrics, presets, reconciliation, reminders, streaks

__all__ = [
    "habit_engine",
    "metrics",
    "presets",
    "reconciliation",
    "reminders",
    "streaks",
]
