"""
Clock -- where every kernel timestamp comes from.

Responsibility:
    Movements, counts, approvals and reference allocation are stamped with
    ``clock.now()``.  No kernel code calls ``datetime.now()`` itself, so a
    test can pin the shop's day and step through it.

Architecture position:
    Kernel > Domain -- zero I/O apart from ``SystemClock``.

Invariants enforced:
    - Every returned ``datetime`` is timezone-aware UTC.  Stock-take stats
      bucket by calendar month, which is only meaningful in one zone.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Injected source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Guarantees:
        - ``now()`` is stable between calls to ``advance()`` / ``set_time()``.
        - Starts at 2024-01-01 12:00 UTC unless given another start.

    Raises:
        ValueError: a naive ``datetime`` is passed in.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = self._utc(start or self.DEFAULT_START)

    @staticmethod
    def _utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._utc(value)

    def advance(self, seconds: int | None = None, *, hours: int = 0, days: int = 0) -> datetime:
        """Move forward and return the new time.  With no amount, one second."""
        if seconds is None:
            seconds = 0 if (hours or days) else 1
        self._current += timedelta(seconds=seconds, hours=hours, days=days)
        return self._current
