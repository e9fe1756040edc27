"""
Injectable time source.

Posting a journal entry, closing a fiscal year and freezing the closing
snapshot all stamp a time.  Services take a ``Clock`` for that instead of
reading the system time, so the ``posted_at`` served with a stored
statement can be pinned in tests.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Source of timezone-aware timestamps."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Fixed time for tests.

    Repeated ``now()`` calls return the same instant until the clock is
    moved with ``advance()`` or ``set_time()``.
    """

    DEFAULT_TIME = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.DEFAULT_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
