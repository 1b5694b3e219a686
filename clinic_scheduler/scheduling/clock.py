"""Clinic clock: the single place where "now" and "today" come from."""

from datetime import UTC, date, datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo

from clinic_scheduler.config import settings


class Clock(Protocol):
    """Source of the current instant in the clinic timezone."""

    tz: ZoneInfo

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock converted to the clinic timezone."""

    def __init__(self, tz: ZoneInfo | None = None):
        self.tz = tz or settings.clinic_tz

    def now(self) -> datetime:
        return datetime.now(UTC).astimezone(self.tz)


class FixedClock:
    """Clock pinned to a given instant. Used by tests and replay tooling."""

    def __init__(self, instant: datetime, tz: ZoneInfo | None = None):
        self.tz = tz or settings.clinic_tz
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant.astimezone(self.tz)

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self.instant = instant


def today(clock: Clock) -> date:
    """Current calendar date in the clinic timezone."""
    return clock.now().date()


def local_instant(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Combine a clinic-local date and time-of-day into an aware instant."""
    return datetime.combine(day, at, tzinfo=tz)
