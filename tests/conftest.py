"""Pytest configuration and shared fixtures for HabitSage tests.

This module provides database fixtures, a controllable clock, and habit
factories for testing the engine, repositories and services without touching
the real app database.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

import pytest

from habitsage.clock import DebugClock, FixedClock
from habitsage.config import TestingConfig
from habitsage.infra.database import create_db_engine, create_session_factory, init_database
from habitsage.infra.repositories import SQLModelHabitRepository, SQLModelSettingsRepository
from habitsage.models.habit import GoalUnit, Habit, HabitEntry, HabitType
from habitsage.services.habit_engine import HabitStateEngine

TODAY = date(2024, 3, 15)
NOON = datetime(2024, 3, 15, 12, 0)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_config(tmp_path) -> TestingConfig:
    return TestingConfig(tmp_path / "data")


@pytest.fixture(scope="function")
def db_engine(test_config):
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine with every table created
    """
    engine = create_db_engine(test_config)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one the application wires up."""
    return create_session_factory(db_engine)


@pytest.fixture
def habit_repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def settings_repo(session_factory) -> SQLModelSettingsRepository:
    return SQLModelSettingsRepository(session_factory)


# =============================================================================
# Clock and engine
# =============================================================================


@pytest.fixture
def clock() -> DebugClock:
    """Debug clock pinned to noon on 2024-03-15."""
    return DebugClock(FixedClock(NOON))


@pytest.fixture
def state_engine(habit_repo, clock) -> HabitStateEngine:
    return HabitStateEngine(habit_repo, clock)


@pytest.fixture
def habit_factory(state_engine):
    """Factory creating habits through the engine.

    Returns:
        Callable: Function that validates, persists and returns a Habit
    """

    def _create_habit(name: str = "Journal", **kwargs) -> Habit:
        update = state_engine.create_habit(name, **kwargs)
        assert update.ok, update.error
        return update.habit

    return _create_habit


@pytest.fixture
def make_entry():
    """Build detached HabitEntry rows for calculator tests."""

    def _make_entry(
        day: date,
        *,
        completed: bool = True,
        progress: float = 0.0,
        goal_target: float = 1.0,
        goal_unit: GoalUnit = GoalUnit.NONE,
        habit_type: HabitType = HabitType.BUILD,
        recorded_at: datetime | None = None,
        habit_id: int = 1,
    ) -> HabitEntry:
        return HabitEntry(
            habit_id=habit_id,
            occurred_on=day,
            progress=progress,
            goal_target=goal_target,
            goal_unit=goal_unit,
            habit_type=habit_type,
            is_completed=completed,
            recorded_at=recorded_at or datetime.combine(day, datetime.min.time()),
        )

    return _make_entry


@pytest.fixture(autouse=True)
def _reset_habitsage_logging():
    """Drop handlers installed by setup_logging so tests do not share streams."""
    yield
    logger = logging.getLogger("habitsage")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
