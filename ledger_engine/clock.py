"""
Injectable clock.

Services never call datetime.now() directly; they receive a Clock so
tests can pin "now" and step it forward. Timestamps are naive UTC,
matching the DateTime columns.
"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Production clock returning the system time."""

    def now(self) -> datetime:
        return utcnow()


class FixedClock(Clock):
    """Clock frozen at a given instant until advanced."""

    def __init__(self, current: datetime):
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (minutes=5, days=1, ...)."""
        self._current = self._current + timedelta(**kwargs)
        return self._current


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are already UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
