"""Unit tests for the SQLModel habit and settings repositories."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from habitsage.errors import PersistenceError
from habitsage.models.habit import GoalUnit, Habit, HabitEntry

TODAY = date(2024, 3, 15)


@pytest.fixture
def stored_habit(habit_repo) -> Habit:
    return habit_repo.create(Habit(name="Read", goal_target=20, goal_unit=GoalUnit.MINUTES))


def test_create_assigns_id(habit_repo):
    habit = habit_repo.create(Habit(name="Journal"))

    assert habit.id is not None
    assert habit_repo.get_by_id(habit.id).name == "Journal"


def test_get_by_name_ignores_case_and_whitespace(habit_repo, stored_habit):
    assert habit_repo.get_by_name("  READ ").id == stored_habit.id
    assert habit_repo.get_by_name("Write") is None


def test_list_all_in_creation_order_and_filters_inactive(habit_repo):
    first = habit_repo.create(Habit(name="First", created_at=datetime(2024, 1, 1)))
    second = habit_repo.create(Habit(name="Second", created_at=datetime(2024, 1, 2)))
    hidden = habit_repo.create(Habit(name="Hidden", is_active=False, created_at=datetime(2024, 1, 3)))

    assert [h.id for h in habit_repo.list_all()] == [first.id, second.id]
    assert [h.id for h in habit_repo.list_all(include_inactive=True)] == [
        first.id,
        second.id,
        hidden.id,
    ]


def test_upsert_entry_keeps_one_row_per_day(habit_repo, stored_habit):
    entry = HabitEntry.snapshot(stored_habit, TODAY, progress=5)
    habit_repo.upsert_entry(entry)

    entry.progress = 12
    habit_repo.upsert_entry(entry)

    entries = habit_repo.list_entries(stored_habit.id)
    assert len(entries) == 1
    assert entries[0].progress == 12
    assert entries[0].goal_target == 20


def test_entries_in_range(habit_repo, stored_habit):
    for offset in range(5):
        habit_repo.upsert_entry(HabitEntry.snapshot(stored_habit, TODAY - timedelta(days=offset)))

    rows = habit_repo.get_entries_for_habit(
        stored_habit.id, TODAY - timedelta(days=2), TODAY - timedelta(days=1)
    )

    assert [row.occurred_on for row in rows] == [TODAY - timedelta(days=2), TODAY - timedelta(days=1)]


def test_delete_entry(habit_repo, stored_habit):
    habit_repo.upsert_entry(HabitEntry.snapshot(stored_habit, TODAY))

    habit_repo.delete_entry(stored_habit.id, TODAY)

    assert habit_repo.get_entry(stored_habit.id, TODAY) is None


def test_save_writes_habit_and_entries_together(habit_repo, stored_habit):
    stored_habit.current_progress = 20
    stored_habit.is_completed = True
    entry = HabitEntry.snapshot(stored_habit, TODAY, progress=20)
    entry.is_completed = True

    habit_repo.save(stored_habit, [entry])

    reloaded = habit_repo.get_by_id(stored_habit.id)
    assert reloaded.is_completed
    assert habit_repo.get_entry(stored_habit.id, TODAY).is_completed


def test_failed_save_leaves_nothing_behind(habit_repo, stored_habit):
    stored_habit.streak = 42
    orphan = HabitEntry(habit_id=9999, occurred_on=TODAY)

    with pytest.raises(PersistenceError):
        habit_repo.save(stored_habit, [orphan])

    assert habit_repo.get_by_id(stored_habit.id).streak == 0
    assert habit_repo.list_entries(9999) == []


def test_delete_cascades_to_entries(habit_repo, stored_habit):
    habit_repo.upsert_entry(HabitEntry.snapshot(stored_habit, TODAY))
    habit_repo.upsert_entry(HabitEntry.snapshot(stored_habit, TODAY - timedelta(days=1)))

    habit_repo.delete(stored_habit.id)

    assert habit_repo.get_by_id(stored_habit.id) is None
    assert habit_repo.list_entries(stored_habit.id) == []


class TestSettingsRepository:
    def test_debug_date_roundtrip(self, settings_repo):
        assert settings_repo.get_debug_date() is None

        settings_repo.set_debug_date(TODAY)
        assert settings_repo.get_debug_date() == TODAY

        settings_repo.set_debug_date(None)
        assert settings_repo.get_debug_date() is None

    def test_garbage_debug_date_is_ignored(self, settings_repo):
        settings_repo.set("debug_current_date", "not-a-date")
        assert settings_repo.get_debug_date() is None

    def test_auto_sync_defaults_on(self, settings_repo):
        assert settings_repo.auto_sync_enabled()

        settings_repo.set_auto_sync_enabled(False)
        assert not settings_repo.auto_sync_enabled()

    def test_set_overwrites_value(self, settings_repo):
        settings_repo.set("theme", "dark")
        settings_repo.set("theme", "light", "UI theme")

        setting = settings_repo.get("theme")
        assert setting.value == "light"
        assert setting.description == "UI theme"
