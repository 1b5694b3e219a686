"""Holiday / blackout registry over an in-hand set of holiday records."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

WEEKEND = (5, 6)


@dataclass(frozen=True)
class Holiday:
    """A date range that may block scheduling."""

    id: UUID | None
    name: str
    start_date: date
    end_date: date
    type: str = "holiday"
    blocks_appointments: bool = True
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError("Holiday start_date must not be after end_date")

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def blocks(self, day: date) -> bool:
        return self.is_active and self.blocks_appointments and self.covers(day)


class HolidayCalendar:
    """
    Read-only queries over a set of holidays.

    The calendar never mutates its holidays; callers load the relevant records
    from the store and build a fresh calendar per request.
    """

    def __init__(self, holidays: Iterable[Holiday]):
        self.holidays = sorted(holidays, key=lambda h: (h.start_date, h.end_date, h.name))

    def is_blocked(self, day: date) -> bool:
        """Check whether any active blocking holiday covers the date."""
        return self.blocking_holiday(day) is not None

    def blocking_holiday(self, day: date) -> Holiday | None:
        """Return the first blocking holiday covering the date, by start date."""
        for holiday in self.holidays:
            if holiday.blocks(day):
                return holiday
        return None

    def blocking_holidays(self, day: date) -> list[Holiday]:
        """Return every blocking holiday covering the date."""
        return [holiday for holiday in self.holidays if holiday.blocks(day)]

    def iter_open_weekdays(self, start: date, horizon_days: int) -> Iterator[date]:
        """
        Yield non-weekend, non-blocked dates after ``start``, scanning forward.

        The scan stops after ``horizon_days`` calendar days, so the iterator is
        always finite. Calling it again restarts the scan from ``start``.
        """
        for offset in range(1, horizon_days + 1):
            candidate = start + timedelta(days=offset)
            if candidate.weekday() in WEEKEND:
                continue
            if self.is_blocked(candidate):
                continue
            yield candidate

    def suggest_alternatives(
        self,
        day: date,
        count: int = 3,
        horizon_days: int = 60,
    ) -> list[date]:
        """
        Suggest up to ``count`` nearby open weekdays after the requested date.

        Args:
            day: Requested (usually blocked) date
            count: Maximum number of suggestions
            horizon_days: How far forward to scan

        Returns:
            Ascending list of at most ``count`` dates
        """
        if count <= 0:
            return []
        suggestions: list[date] = []
        for candidate in self.iter_open_weekdays(day, horizon_days):
            suggestions.append(candidate)
            if len(suggestions) >= count:
                break
        return suggestions
