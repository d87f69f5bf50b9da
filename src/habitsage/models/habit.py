"""Habits tracking data structures."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel


class HabitType(str, Enum):
    BUILD = "build"
    QUIT = "quit"


class QuitHabitType(str, Enum):
    ABSTINENCE = "abstinence"
    LIMIT = "limit"


class GoalUnit(str, Enum):
    NONE = "none"  # binary habits (complete/incomplete)
    STEPS = "steps"
    MINUTES = "minutes"
    HOURS = "hours"
    LITERS = "liters"
    GLASSES = "glasses"
    GRAMS = "grams"
    COUNT = "count"

    @property
    def short_label(self) -> str:
        return _UNIT_LABELS[self]


_UNIT_LABELS = {
    GoalUnit.NONE: "",
    GoalUnit.STEPS: "steps",
    GoalUnit.MINUTES: "min",
    GoalUnit.HOURS: "hrs",
    GoalUnit.LITERS: "L",
    GoalUnit.GLASSES: "glasses",
    GoalUnit.GRAMS: "g",
    GoalUnit.COUNT: "times",
}


class TrackingMode(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class MetricKind(str, Enum):
    """Metrics the automatic source can supply."""

    STEPS = "steps"
    EXERCISE_MINUTES = "exercise_minutes"
    MINDFUL_MINUTES = "mindful_minutes"


def format_amount(value: float) -> str:
    """Render whole numbers without decimals, others with one place."""

    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


class Habit(SQLModel, table=True):
    """A habit the app tracks daily.

    ``current_progress``, ``is_completed`` and ``progress_on`` describe the live
    day only; ``streak`` and ``longest_streak`` are cached values derived from
    the entries and are only written by the state engine.
    """

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=50, index=True)
    description: str = Field(default="", max_length=255)
    habit_type: HabitType = Field(default=HabitType.BUILD, nullable=False)
    quit_habit_type: Optional[QuitHabitType] = Field(default=None)
    goal_target: float = Field(default=1.0, nullable=False)
    goal_unit: GoalUnit = Field(default=GoalUnit.NONE, nullable=False)
    tracking_mode: TrackingMode = Field(default=TrackingMode.MANUAL, nullable=False)
    metric_kind: Optional[MetricKind] = Field(default=None)
    is_active: bool = Field(default=True, nullable=False)
    created_at: datetime = Field(default_factory=datetime.now, nullable=False)

    # Live daily state
    current_progress: float = Field(default=0.0, nullable=False)
    is_completed: bool = Field(default=False, nullable=False)
    progress_on: Optional[date] = Field(default=None)
    last_completed_on: Optional[date] = Field(default=None)

    # Derived counters
    streak: int = Field(default=0, nullable=False)
    longest_streak: int = Field(default=0, nullable=False)

    # Entries are written explicitly by the store; only deletes cascade.
    entries: list["HabitEntry"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship("HabitEntry", back_populates="habit", cascade="delete"),
    )

    @property
    def is_goal_based(self) -> bool:
        return self.goal_unit != GoalUnit.NONE

    @property
    def is_quit_limit(self) -> bool:
        return self.habit_type == HabitType.QUIT and self.quit_habit_type == QuitHabitType.LIMIT

    @property
    def is_abstinence(self) -> bool:
        return self.habit_type == HabitType.QUIT and self.quit_habit_type != QuitHabitType.LIMIT

    @property
    def is_automatic(self) -> bool:
        return self.tracking_mode == TrackingMode.AUTOMATIC

    @property
    def progress_percentage(self) -> float:
        if not self.is_goal_based or self.goal_target <= 0:
            return 1.0 if self.is_completed else 0.0
        return min(self.current_progress / self.goal_target, 1.0)

    @property
    def display_progress(self) -> str:
        if not self.is_goal_based:
            return "Complete" if self.is_completed else "Not Complete"
        current = format_amount(self.current_progress)
        target = format_amount(self.goal_target)
        return f"{current} / {target} {self.goal_unit.short_label}".rstrip()


class HabitEntry(SQLModel, table=True):
    """Outcome record for a habit on one calendar day.

    The goal fields are a frozen copy of the habit's goal when the day was
    recorded, so later goal edits do not change what history means.
    """

    __tablename__: ClassVar[str] = "habit_entry"

    habit_id: int = Field(foreign_key="habit.id", primary_key=True)
    occurred_on: date = Field(primary_key=True, index=True)
    progress: float = Field(default=0.0, nullable=False)
    goal_target: float = Field(default=1.0, nullable=False)
    goal_unit: GoalUnit = Field(default=GoalUnit.NONE, nullable=False)
    habit_type: HabitType = Field(default=HabitType.BUILD, nullable=False)
    quit_habit_type: Optional[QuitHabitType] = Field(default=None)
    is_completed: bool = Field(default=False, nullable=False)
    notes: Optional[str] = Field(default=None, max_length=255)
    recorded_at: datetime = Field(default_factory=datetime.now, nullable=False)

    habit: Optional["Habit"] = Relationship(
        back_populates="entries",
        sa_relationship=relationship("Habit", back_populates="entries"),
    )

    @classmethod
    def snapshot(cls, habit: Habit, day: date, *, progress: float = 0.0) -> "HabitEntry":
        """Create an entry for ``day`` carrying the habit's current goal."""

        if habit.id is None:
            raise ValueError("habit must be persisted before recording entries")
        return cls(
            habit_id=habit.id,
            occurred_on=day,
            progress=progress,
            goal_target=habit.goal_target,
            goal_unit=habit.goal_unit,
            habit_type=habit.habit_type,
            quit_habit_type=habit.quit_habit_type,
            is_completed=False,
        )

    def copy_goal_from(self, habit: Habit) -> None:
        self.goal_target = habit.goal_target
        self.goal_unit = habit.goal_unit
        self.habit_type = habit.habit_type
        self.quit_habit_type = habit.quit_habit_type

    @property
    def display_progress(self) -> str:
        if self.habit_type == HabitType.QUIT and self.quit_habit_type != QuitHabitType.LIMIT:
            return "Stayed Clean" if self.is_completed else "Relapsed"
        if self.goal_unit == GoalUnit.NONE:
            return "Complete" if self.is_completed else "Incomplete"
        current = format_amount(self.progress)
        target = format_amount(self.goal_target)
        return f"{current} / {target} {self.goal_unit.short_label}".rstrip()
