"""Clock capability injected into the engine and scheduler.

``DebugClock`` replaces the global "current date" override used for time
travel while testing streaks. Listeners fire on every day change, forward or
backward, so callers can run date reconciliation.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Callable, Optional, Protocol

from .calendar_days import local_day

logger = logging.getLogger("habitsage.clock")

DateChangeListener = Callable[[date, date], None]


class Clock(Protocol):
    """Source of the authoritative current instant and calendar day."""

    def now(self) -> datetime:  # pragma: no cover - interface
        ...

    def today(self) -> date:  # pragma: no cover - interface
        ...


class SystemClock:
    """Wall-clock time in the host's local zone."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return local_day(self.now())


class DebugClock:
    """Clock whose calendar day can be overridden.

    ``now()`` keeps the real time of day but moves it onto the override day,
    which keeps the today-grace window behaving as it would on that day.
    """

    def __init__(self, base: Optional[Clock] = None, *, override: Optional[date] = None):
        self._base = base or SystemClock()
        self._override = override
        self._listeners: list[DateChangeListener] = []
        self._lock = Lock()

    @property
    def is_debugging(self) -> bool:
        return self._override is not None

    @property
    def override(self) -> Optional[date]:
        return self._override

    def now(self) -> datetime:
        real = self._base.now()
        override = self._override
        if override is None:
            return real
        return datetime.combine(override, real.time())

    def today(self) -> date:
        override = self._override
        return override if override is not None else self._base.today()

    def add_listener(self, listener: DateChangeListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: DateChangeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def set_date(self, day: date) -> None:
        self._change(day)

    def reset_to_today(self) -> None:
        self._change(None)

    def move_forward(self, days: int = 1) -> None:
        self._change(self.today() + timedelta(days=days))

    def move_backward(self, days: int = 1) -> None:
        self._change(self.today() - timedelta(days=days))

    def _change(self, override: Optional[date]) -> None:
        with self._lock:
            old_day = self.today()
            self._override = override
            new_day = self.today()
            listeners = list(self._listeners)

        logger.info(
            "Clock moved",
            extra={"from_day": old_day.isoformat(), "to_day": new_day.isoformat()},
        )
        if old_day == new_day:
            return
        for listener in listeners:
            listener(old_day, new_day)


class FixedClock:
    """Clock frozen at a single instant; handy for deterministic callers."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def today(self) -> date:
        return local_day(self.instant)


__all__ = ["Clock", "DateChangeListener", "DebugClock", "FixedClock", "SystemClock"]
