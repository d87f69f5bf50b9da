"""Tests for calendar-day helpers."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from habitsage.calendar_days import (
    days_between,
    end_of_day,
    is_same_day,
    iter_days_back,
    local_day,
    next_day,
    previous_day,
    start_of_day,
)


def test_day_boundaries():
    day = date(2024, 3, 15)
    assert start_of_day(day) == datetime(2024, 3, 15, 0, 0, 0)
    assert end_of_day(day) == datetime(2024, 3, 15, 23, 59, 59)


def test_days_between_is_signed():
    assert days_between(date(2024, 3, 1), date(2024, 3, 4)) == 3
    assert days_between(date(2024, 3, 4), date(2024, 3, 1)) == -3
    assert days_between(date(2024, 2, 28), date(2024, 3, 1)) == 2  # leap year


def test_neighbours_cross_month_and_year():
    assert previous_day(date(2024, 1, 1)) == date(2023, 12, 31)
    assert next_day(date(2024, 2, 29)) == date(2024, 3, 1)


def test_local_day_for_naive_and_aware_instants():
    naive = datetime(2024, 3, 15, 23, 30)
    assert local_day(naive) == date(2024, 3, 15)

    aware = datetime.now(timezone.utc)
    assert local_day(aware) == aware.astimezone().date()


def test_is_same_day_mixes_dates_and_datetimes():
    assert is_same_day(datetime(2024, 3, 15, 8), date(2024, 3, 15))
    assert not is_same_day(datetime(2024, 3, 15, 8), datetime(2024, 3, 16, 8))


def test_iter_days_back_newest_first():
    days = list(iter_days_back(date(2024, 3, 3), 4))
    assert days == [date(2024, 3, 3) - timedelta(days=i) for i in range(4)]
    assert list(iter_days_back(date(2024, 3, 3), 0)) == []
