"""Injectable time source.

Services never read the wall clock directly; they receive a ``Clock`` so
tests can pin "now" and token-expiry logic can be exercised without
sleeping.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can report the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def utc_naive(dt: datetime) -> datetime:
    """Strip tzinfo after converting to UTC (SQLite stores naive datetimes)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
