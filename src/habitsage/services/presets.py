"""Preset habits offered when adding a new habit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models.habit import GoalUnit, HabitType, QuitHabitType


@dataclass(frozen=True)
class PresetHabit:
    name: str
    habit_type: HabitType
    goal_target: float = 1.0
    goal_unit: GoalUnit = GoalUnit.NONE
    quit_habit_type: Optional[QuitHabitType] = None
    description: str = ""


BUILD_PRESETS: tuple[PresetHabit, ...] = (
    PresetHabit("Walk Daily", HabitType.BUILD, 8000, GoalUnit.STEPS, description="Walk 8,000 steps daily"),
    PresetHabit("Meditate", HabitType.BUILD, 10, GoalUnit.MINUTES, description="Meditate for 10 minutes daily"),
    PresetHabit("Drink Water", HabitType.BUILD, 2, GoalUnit.LITERS, description="Drink 2 liters of water daily"),
    PresetHabit("Read", HabitType.BUILD, 20, GoalUnit.MINUTES, description="Read for 20 minutes daily"),
    PresetHabit("Exercise", HabitType.BUILD, 30, GoalUnit.MINUTES, description="Exercise for 30 minutes daily"),
    PresetHabit("Journal", HabitType.BUILD, description="Write in journal daily"),
    PresetHabit("Sleep Early", HabitType.BUILD, description="Sleep before 11 PM daily"),
)

QUIT_PRESETS: tuple[PresetHabit, ...] = (
    PresetHabit(
        "Limit Social Media", HabitType.QUIT, 1, GoalUnit.HOURS, QuitHabitType.LIMIT,
        "Limit social media to 1 hour daily",
    ),
    PresetHabit(
        "Reduce Sugar", HabitType.QUIT, 25, GoalUnit.GRAMS, QuitHabitType.LIMIT,
        "Consume less than 25g sugar daily",
    ),
    PresetHabit(
        "Quit Smoking", HabitType.QUIT, 0, GoalUnit.COUNT, QuitHabitType.ABSTINENCE,
        "Smoke 0 cigarettes daily",
    ),
    PresetHabit(
        "Limit Junk Food", HabitType.QUIT, 1, GoalUnit.COUNT, QuitHabitType.LIMIT,
        "Limit junk food to 1 serving daily",
    ),
    PresetHabit(
        "Reduce Procrastination", HabitType.QUIT, quit_habit_type=QuitHabitType.ABSTINENCE,
        description="Avoid procrastination daily",
    ),
    PresetHabit(
        "Stop Negative Thinking", HabitType.QUIT, quit_habit_type=QuitHabitType.ABSTINENCE,
        description="Practice positive thinking daily",
    ),
    PresetHabit(
        "Limit Screen Time", HabitType.QUIT, 6, GoalUnit.HOURS, QuitHabitType.LIMIT,
        "Limit screen time to 6 hours daily",
    ),
)

ALL_PRESETS: tuple[PresetHabit, ...] = BUILD_PRESETS + QUIT_PRESETS


def find_preset(name: str) -> Optional[PresetHabit]:
    lowered = name.strip().lower()
    for preset in ALL_PRESETS:
        if preset.name.lower() == lowered:
            return preset
    return None


__all__ = ["ALL_PRESETS", "BUILD_PRESETS", "QUIT_PRESETS", "PresetHabit", "find_preset"]
