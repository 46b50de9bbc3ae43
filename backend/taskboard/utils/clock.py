"""Injectable time source."""

from datetime import datetime, timezone
from typing import Protocol


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime. Naive values are read as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(Protocol):
    """Supplies "now" for due-date, overdue and completion comparisons."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant. Used by tests and by replays."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant


system_clock = SystemClock()


def get_clock() -> Clock:
    """Dependency hook for the request's clock; tests override it."""
    return system_clock
