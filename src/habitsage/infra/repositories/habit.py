"""SQLModel implementation of Habit repository."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Callable, Iterable, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...errors import PersistenceError
from ...models.habit import Habit, HabitEntry

logger = logging.getLogger("habitsage.store")


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation.

    Returned objects are detached from their session; mutate them freely and
    hand them back through ``save`` or ``upsert``.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store %s failed: %s", action, exc, exc_info=True)
            raise PersistenceError(f"{action} failed: {exc}") from exc

    def get_by_id(self, habit_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self._session("get habit") as session:
            obj = session.get(Habit, habit_id)
            if obj:
                session.expunge(obj)
            return obj

    def get_by_name(self, name: str) -> Optional[Habit]:
        """Retrieve a habit by name, ignoring case and surrounding whitespace."""
        with self._session("get habit by name") as session:
            statement = select(Habit).where(func.lower(Habit.name) == name.strip().lower())
            obj = session.exec(statement).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, include_inactive: bool = False) -> list[Habit]:
        """List habits in creation order, optionally including inactive ones."""
        with self._session("list habits") as session:
            statement = select(Habit).order_by(Habit.created_at, Habit.id)  # type: ignore[arg-type]
            if not include_inactive:
                statement = statement.where(Habit.is_active == True)  # noqa: E712
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def create(self, habit: Habit) -> Habit:
        """Insert a new habit."""
        with self._session("create habit") as session:
            session.add(habit)
            session.commit()
            session.expunge(habit)
            return habit

    def upsert(self, habit: Habit) -> Habit:
        """Insert or update a habit's own columns."""
        with self._session("update habit") as session:
            merged = session.merge(habit)
            session.commit()
            session.expunge(merged)
            return merged

    def delete(self, habit_id: int) -> None:
        """Delete a habit by ID; entries go with it."""
        with self._session("delete habit") as session:
            habit = session.get(Habit, habit_id)
            if habit:
                session.delete(habit)
                session.commit()

    # Habit entry operations
    def get_entry(self, habit_id: int, occurred_on: date) -> Optional[HabitEntry]:
        """Get a specific habit entry."""
        with self._session("get entry") as session:
            obj = session.get(HabitEntry, (habit_id, occurred_on))
            if obj:
                session.expunge(obj)
            return obj

    def list_entries(self, habit_id: int) -> list[HabitEntry]:
        """All entries for a habit, oldest first."""
        with self._session("list entries") as session:
            statement = (
                select(HabitEntry)
                .where(HabitEntry.habit_id == habit_id)
                .order_by(HabitEntry.occurred_on)  # type: ignore[arg-type]
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def get_entries_for_habit(
        self, habit_id: int, start_date: date, end_date: date
    ) -> list[HabitEntry]:
        """Get entries for a habit within a date range."""
        with self._session("list entries in range") as session:
            statement = (
                select(HabitEntry)
                .where(HabitEntry.habit_id == habit_id)
                .where(HabitEntry.occurred_on >= start_date)
                .where(HabitEntry.occurred_on <= end_date)
                .order_by(HabitEntry.occurred_on)  # type: ignore[arg-type]
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def upsert_entry(self, entry: HabitEntry) -> HabitEntry:
        """Insert or update a habit entry keyed by (habit_id, occurred_on)."""
        with self._session("upsert entry") as session:
            merged = session.merge(entry)
            session.commit()
            session.expunge(merged)
            return merged

    def delete_entry(self, habit_id: int, occurred_on: date) -> None:
        """Delete a habit entry."""
        with self._session("delete entry") as session:
            entry = session.get(HabitEntry, (habit_id, occurred_on))
            if entry:
                session.delete(entry)
                session.commit()

    def save(self, habit: Habit, entries: Iterable[HabitEntry] = ()) -> Habit:
        """Persist a habit and its changed entries in a single transaction."""
        with self._session("save habit state") as session:
            merged = session.merge(habit)
            for entry in entries:
                session.merge(entry)
            session.commit()
            session.expunge_all()
            return merged


__all__ = ["SQLModelHabitRepository"]
