"""
Injectable time source for decision, submission and resolution stamps.

Services take a ``Clock`` in their constructor and default to
``SystemClock``.  Tests pass a ``DeterministicClock`` so ``decided_at`` and
``resolved_at`` can be asserted exactly and listings ordered by
``created_at`` are stable.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that stands still until told to move.

    Repeated ``now()`` calls return the same instant, so every timestamp
    written inside one coordinator call is identical.
    """

    def __init__(self, start: datetime | None = None):
        if start is not None and start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new instant."""
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self._current += timedelta(seconds=seconds)
        return self._current
