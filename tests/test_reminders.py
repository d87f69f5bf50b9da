"""Tests for reminder planning and coalescing."""

from __future__ import annotations

import time
from datetime import datetime

import pytest

from habitsage.models.habit import GoalUnit
from habitsage.services.reminders import (
    LogReminderSink,
    ReminderPlanner,
    SummaryComposer,
    TIME_SLOTS,
)


@pytest.fixture
def sink() -> LogReminderSink:
    return LogReminderSink()


@pytest.fixture
def planner(state_engine, clock, sink):
    planner = ReminderPlanner(state_engine, clock, sink, debounce=0.05)
    yield planner
    planner.cancel()


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_past_slots_are_skipped(planner, sink, habit_factory):
    habit_factory("Journal")

    messages = planner.refresh()

    # Clock reads noon, so the 09:00 slot is gone.
    assert [message.slot.key for message in messages] == ["afternoon", "evening", "night"]
    assert messages[0].fire_at == datetime(2024, 3, 15, 14, 0)
    assert sink.scheduled == messages


def test_nothing_scheduled_when_all_complete(planner, sink, habit_factory, state_engine):
    habit = habit_factory("Journal")
    state_engine.record_completion(habit)

    assert planner.refresh() == []
    assert sink.scheduled == []


def test_unchanged_snapshot_skips_work(planner, habit_factory):
    habit_factory("Journal")

    assert planner.refresh() is not None
    assert planner.refresh() is None
    assert planner.refresh_count == 1


def test_force_replans_even_when_unchanged(planner, habit_factory):
    habit_factory("Journal")
    planner.refresh()

    assert planner.refresh(force=True) is not None
    assert planner.refresh_count == 2


def test_completing_a_habit_changes_the_plan(planner, sink, habit_factory, state_engine):
    journal = habit_factory("Journal")
    read = habit_factory("Read", goal_target=20, goal_unit=GoalUnit.MINUTES)
    planner.refresh()

    state_engine.record_completion(journal)
    messages = planner.refresh()

    assert messages is not None
    assert all(message.habit_ids == (read.id,) for message in messages)
    assert len(sink.scheduled) == len(messages)


def test_day_change_replans(planner, habit_factory, clock):
    habit_factory("Journal")
    planner.refresh()

    clock.move_forward()

    assert planner.refresh() is not None


def test_request_refresh_is_debounced(planner, habit_factory):
    habit_factory("Journal")

    for _ in range(5):
        planner.request_refresh()

    assert _wait_for(lambda: planner.refresh_count >= 1)
    time.sleep(0.15)
    assert planner.refresh_count == 1


def test_engine_changes_request_refresh(planner, state_engine, habit_factory):
    state_engine.subscribe(planner.on_habit_changed)

    habit_factory("Journal")

    assert _wait_for(lambda: planner.refresh_count == 1)


def test_summary_composer_lists_names(habit_factory):
    habits = [habit_factory(name) for name in ("Journal", "Read", "Stretch", "Walk")]

    title, body = SummaryComposer().compose(TIME_SLOTS[0], habits)

    assert title == "Good morning"
    assert body == "4 habits left today: Journal, Read, Stretch and 1 more"


def test_summary_composer_single_habit(habit_factory):
    habit = habit_factory("Journal")

    _, body = SummaryComposer().compose(TIME_SLOTS[-1], [habit])

    assert body == "1 habit left today: Journal"
