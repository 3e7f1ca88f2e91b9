"""
Clock abstraction for cache ages and breaker timeouts.
Allows faking time in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        ...


class SystemClock(Clock):
    """Real system clock."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)


class FakeClock(Clock):
    """
    Fake clock for testing.
    Time only moves when set or advanced.
    """

    def __init__(self, initial: datetime | None = None):
        if initial is None:
            initial = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        self._current = initial

    def now(self) -> datetime:
        return self._current

    def set(self, dt: datetime) -> None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        self._current = dt

    def advance(self, seconds: float) -> None:
        self._current += timedelta(seconds=seconds)
