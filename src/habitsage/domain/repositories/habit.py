"""Habit repository protocol."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol

from ...models.habit import Habit, HabitEntry


class HabitRepository(Protocol):
    """Durable store for habits and their daily entries.

    Every write is its own transaction. ``save`` is the commit boundary used by
    the state engine: the habit's fields and the given entries either all
    persist or none do. Implementations raise ``PersistenceError`` on failure.
    """

    def get_by_id(self, habit_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        ...

    def get_by_name(self, name: str) -> Optional[Habit]:
        """Retrieve a habit by name, ignoring case."""
        ...

    def list_all(self, include_inactive: bool = False) -> list[Habit]:
        """List habits, optionally including inactive ones."""
        ...

    def create(self, habit: Habit) -> Habit:
        """Insert a new habit and return it with its id assigned."""
        ...

    def upsert(self, habit: Habit) -> Habit:
        """Insert or update a habit's own fields."""
        ...

    def delete(self, habit_id: int) -> None:
        """Delete a habit and its entries."""
        ...

    # Habit entry operations
    def get_entry(self, habit_id: int, occurred_on: date) -> Optional[HabitEntry]:
        """Get the entry for one day."""
        ...

    def list_entries(self, habit_id: int) -> list[HabitEntry]:
        """All entries for a habit, oldest first."""
        ...

    def get_entries_for_habit(
        self, habit_id: int, start_date: date, end_date: date
    ) -> list[HabitEntry]:
        """Get entries for a habit within an inclusive date range."""
        ...

    def upsert_entry(self, entry: HabitEntry) -> HabitEntry:
        """Insert or update the entry for ``(habit_id, occurred_on)``."""
        ...

    def delete_entry(self, habit_id: int, occurred_on: date) -> None:
        """Delete a habit entry."""
        ...

    def save(self, habit: Habit, entries: Iterable[HabitEntry] = ()) -> Habit:
        """Atomically persist a habit together with changed entries."""
        ...
