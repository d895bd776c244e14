"""
Clock -- injectable time source.

Posting services never call ``datetime.now()`` or ``date.today()``
directly: ``posted_at``, movement ``occurred_at`` and the default
transaction date of an event all come from a Clock, so tests can pin
them.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its UTC calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Fixed clock for tests. Defaults to 2024-01-01 12:00 UTC."""

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time
