"""End-to-end day-by-day scenarios and date reconciliation."""

from __future__ import annotations

from datetime import date, timedelta

from habitsage.models.habit import GoalUnit, HabitType, QuitHabitType
from habitsage.services.habit_engine import UpdateStatus

DAY1 = date(2024, 3, 15)


def day(n: int) -> date:
    return DAY1 + timedelta(days=n - 1)


def test_steps_habit_across_days(state_engine, habit_factory, clock):
    habit = habit_factory("Walk Daily", goal_target=8000, goal_unit=GoalUnit.STEPS)

    update = state_engine.add_progress(habit, 5000)
    assert not update.habit.is_completed
    assert update.habit.streak == 0

    update = state_engine.add_progress(habit, 4000)
    assert update.habit.is_completed
    assert update.habit.current_progress == 9000
    assert update.habit.last_completed_on == day(1)
    assert update.habit.streak == 1

    clock.set_date(day(2))
    state_engine.reconcile_for_date(habit, day(2))
    update = state_engine.record_completion(habit)
    assert update.habit.streak == 2

    clock.set_date(day(4))
    update = state_engine.record_completion(habit)
    assert update.habit.streak == 1
    assert update.habit.longest_streak == 2


def test_abstinence_habit_with_a_lapse(state_engine, habit_factory, clock):
    habit = habit_factory("Quit Smoking", habit_type=HabitType.QUIT)

    assert state_engine.record_quit_success(habit).habit.streak == 1

    clock.set_date(day(2))
    update = state_engine.record_failure(habit)
    assert update.habit.streak == 0
    assert update.habit.longest_streak == 1

    clock.set_date(day(3))
    update = state_engine.record_quit_success(habit)
    assert update.habit.streak == 1
    assert update.habit.longest_streak == 1


def test_backward_travel_shows_recorded_day(state_engine, habit_factory, clock):
    habit = habit_factory("Journal")
    clock.set_date(day(3))
    state_engine.record_completion(habit)
    clock.set_date(day(5))
    state_engine.reconcile_for_date(habit, day(5))
    assert not state_engine.get_habit(habit).is_completed

    clock.set_date(day(3))
    update = state_engine.reconcile_for_date(habit, day(3))

    assert update.habit.is_completed
    assert update.habit.progress_on == day(3)
    assert update.habit.streak == 1


def test_rollover_archives_live_progress(state_engine, habit_factory, habit_repo, clock):
    habit = habit_factory("Read", goal_target=20, goal_unit=GoalUnit.MINUTES)
    state_engine.add_progress(habit, 12)

    # Simulate live progress that never reached the entry table.
    stored = habit_repo.get_by_id(habit.id)
    stored.current_progress = 18
    habit_repo.upsert(stored)

    clock.set_date(day(2))
    update = state_engine.reconcile_for_date(habit, day(2))

    assert update.status == UpdateStatus.APPLIED
    assert update.habit.current_progress == 0
    assert not update.habit.is_completed
    assert habit_repo.get_entry(habit.id, day(1)).progress == 18


def test_rollover_without_live_day_guesses_yesterday(state_engine, habit_factory, habit_repo, clock):
    habit = habit_factory("Read", goal_target=20, goal_unit=GoalUnit.MINUTES)
    stored = habit_repo.get_by_id(habit.id)
    stored.current_progress = 7
    stored.progress_on = None
    stored.last_completed_on = None
    habit_repo.upsert(stored)

    clock.set_date(day(3))
    state_engine.reconcile_for_date(habit, day(3))

    assert habit_repo.get_entry(habit.id, day(2)).progress == 7


def test_reconcile_same_day_is_noop(state_engine, habit_factory):
    habit = habit_factory("Journal")
    state_engine.record_completion(habit)

    update = state_engine.reconcile_for_date(habit, day(1))

    assert update.status == UpdateStatus.NOOP
    assert update.habit.is_completed


def test_reconcile_all_follows_clock_listener(state_engine, habit_factory, clock):
    journal = habit_factory("Journal")
    read = habit_factory("Read", goal_target=20, goal_unit=GoalUnit.MINUTES)
    state_engine.record_completion(journal)
    state_engine.add_progress(read, 5)
    clock.add_listener(lambda old, new: state_engine.reconcile_all(new))

    clock.move_forward()

    for habit in state_engine.list_habits():
        assert habit.progress_on == day(2)
        assert habit.current_progress == 0
        assert not habit.is_completed
    assert state_engine.get_habit(journal).streak == 1

    clock.move_backward()

    assert state_engine.get_habit(journal).is_completed
    assert state_engine.get_habit(read).current_progress == 5


def test_repair_twice_gives_same_counters(state_engine, habit_factory, clock):
    habit = habit_factory("Journal")
    for n in (1, 2, 4, 5, 6):
        clock.set_date(day(n))
        state_engine.record_completion(habit)

    first = state_engine.repair(habit).habit
    second = state_engine.repair(habit).habit

    assert (first.streak, first.longest_streak) == (second.streak, second.longest_streak) == (3, 3)


def test_progress_twice_keeps_one_entry_per_day(state_engine, habit_factory):
    habit = habit_factory("Walk", goal_target=8000, goal_unit=GoalUnit.STEPS)

    state_engine.add_progress(habit, 100)
    state_engine.add_progress(habit, 100)

    days = [entry.occurred_on for entry in state_engine.entries_for(habit)]
    assert days == [day(1)]


def test_grace_keeps_yesterdays_run_until_midnight(state_engine, habit_factory, clock):
    habit = habit_factory("Journal")
    state_engine.record_completion(habit)
    clock.set_date(day(2))

    update = state_engine.reconcile_for_date(habit, day(2))

    assert update.habit.streak == 1
    assert not update.habit.is_completed


def test_longest_never_drops(state_engine, habit_factory, clock):
    habit = habit_factory("Quit Sugar", habit_type=HabitType.QUIT)
    outcomes = ["ok", "ok", "ok", "fail", "ok", "fail", "ok", "ok"]
    best = 0
    for n, outcome in enumerate(outcomes, start=1):
        clock.set_date(day(n))
        if outcome == "ok":
            update = state_engine.record_quit_success(habit)
        else:
            update = state_engine.record_failure(habit)
        assert update.habit.longest_streak >= best
        best = update.habit.longest_streak
        assert update.habit.longest_streak >= update.habit.streak

    assert best == 3


def test_limit_habit_boundary(state_engine, habit_factory):
    habit = habit_factory(
        "Limit Junk Food",
        habit_type=HabitType.QUIT,
        quit_habit_type=QuitHabitType.LIMIT,
        goal_target=10,
        goal_unit=GoalUnit.COUNT,
    )
    state_engine.add_progress(habit, 11)
    assert not state_engine.record_quit_success(habit).ok

    state_engine.add_progress(habit, -1)
    assert state_engine.record_quit_success(habit).ok
