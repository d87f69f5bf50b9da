"""Calendar-day helpers resolved in the host's local time zone."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator

END_OF_DAY = time(23, 59, 59)


def local_day(instant: datetime) -> date:
    """Return the local calendar day an instant falls on.

    Naive datetimes are taken to already be local wall-clock time.
    """

    if instant.tzinfo is not None:
        instant = instant.astimezone()
    return instant.date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Last second of the local day (23:59:59), matching the streak grace window."""

    return datetime.combine(day, END_OF_DAY)


def days_between(start: date, end: date) -> int:
    """Signed number of calendar days from ``start`` to ``end``."""

    return (end - start).days


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def next_day(day: date) -> date:
    return day + timedelta(days=1)


def is_same_day(first: datetime | date, second: datetime | date) -> bool:
    first_day = local_day(first) if isinstance(first, datetime) else first
    second_day = local_day(second) if isinstance(second, datetime) else second
    return first_day == second_day


def iter_days_back(day: date, count: int) -> Iterator[date]:
    """Yield ``count`` days ending at ``day``, newest first."""

    for offset in range(count):
        yield day - timedelta(days=offset)


__all__ = [
    "END_OF_DAY",
    "days_between",
    "end_of_day",
    "is_same_day",
    "iter_days_back",
    "local_day",
    "next_day",
    "previous_day",
    "start_of_day",
]
