"""Availability resolution: which slots can still be booked on a date."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from uuid import UUID

from clinic_scheduler.scheduling.holidays import HolidayCalendar

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


class BlockedReason(str, Enum):
    """Why a date offers no slots at all."""

    HOLIDAY = "holiday"
    PAST_DATE = "past_date"
    DOCTOR_UNAVAILABLE = "doctor_unavailable"
    NOT_A_WORKING_DAY = "not_a_working_day"
    NO_DOCTORS = "no_doctors"


@dataclass(frozen=True)
class AvailabilityProfile:
    """When a doctor can be booked."""

    doctor_id: UUID
    available_days: frozenset[str]
    working_hours_start: time
    working_hours_end: time
    break_start: time | None = None
    break_end: time | None = None
    is_available: bool = True

    def __post_init__(self) -> None:
        if self.working_hours_start >= self.working_hours_end:
            raise ValueError("working_hours_start must be before working_hours_end")
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be set together")
        if self.break_start is not None and self.break_end is not None:
            if not (
                self.working_hours_start
                <= self.break_start
                < self.break_end
                <= self.working_hours_end
            ):
                raise ValueError("Break must lie within working hours and start before it ends")
        unknown = set(self.available_days) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday names: {sorted(unknown)}")

    def works_on(self, day: date) -> bool:
        return self.is_available and weekday_name(day) in self.available_days

    def candidate_slots(self, slot_minutes: int) -> list[time]:
        """
        Slot start times inside working hours, minus any slot touching the break.

        A slot occupies ``[start, start + slot_minutes)`` and must end by the
        end of working hours.
        """
        start = to_minutes(self.working_hours_start)
        end = to_minutes(self.working_hours_end)
        break_window = None
        if self.break_start is not None and self.break_end is not None:
            break_window = (to_minutes(self.break_start), to_minutes(self.break_end))

        slots = []
        current = start
        while current + slot_minutes <= end:
            slot_end = current + slot_minutes
            if break_window is None or not (
                current < break_window[1] and slot_end > break_window[0]
            ):
                slots.append(from_minutes(current))
            current += slot_minutes
        return slots


def default_profile(
    doctor_id: UUID,
    available_days: Iterable[str],
    working_hours_start: time,
    working_hours_end: time,
) -> AvailabilityProfile:
    """Profile used for a doctor with no stored working-hours configuration."""
    return AvailabilityProfile(
        doctor_id=doctor_id,
        available_days=frozenset(available_days),
        working_hours_start=working_hours_start,
        working_hours_end=working_hours_end,
    )


@dataclass(frozen=True)
class Availability:
    """Bookable slots on one date, for one doctor or for any doctor."""

    date: date
    doctor_id: UUID | None
    slots: list[time]
    blocked_reason: BlockedReason | None = None
    holiday_name: str | None = None
    free_doctors: dict[time, list[UUID]] = field(default_factory=dict)


class AvailabilityResolver:
    """
    Turns profiles, holidays and current bookings into an ordered slot list.

    The resolver is pure: it only sees what the caller loaded from the store.
    Its answer is advisory, the conflict guard has the final word at commit.
    """

    def __init__(self, calendar: HolidayCalendar, slot_minutes: int = 30):
        self.calendar = calendar
        self.slot_minutes = slot_minutes

    def _blocked(self, day: date, today: date | None) -> tuple[BlockedReason, str | None] | None:
        holiday = self.calendar.blocking_holiday(day)
        if holiday is not None:
            return BlockedReason.HOLIDAY, holiday.name
        if today is not None and day < today:
            return BlockedReason.PAST_DATE, None
        return None

    def offered_slots(self, profile: AvailabilityProfile, day: date) -> list[time]:
        """Slots the doctor's schedule offers on the date, ignoring bookings."""
        if not profile.works_on(day) or self.calendar.is_blocked(day):
            return []
        return profile.candidate_slots(self.slot_minutes)

    def for_doctor(
        self,
        profile: AvailabilityProfile,
        day: date,
        booked: Iterable[time],
        today: date | None = None,
    ) -> Availability:
        """Free slots for one doctor on a date."""
        blocked = self._blocked(day, today)
        if blocked is not None:
            reason, holiday_name = blocked
            return Availability(day, profile.doctor_id, [], reason, holiday_name)
        if not profile.is_available:
            return Availability(day, profile.doctor_id, [], BlockedReason.DOCTOR_UNAVAILABLE)
        if not profile.works_on(day):
            return Availability(day, profile.doctor_id, [], BlockedReason.NOT_A_WORKING_DAY)

        taken = set(booked)
        slots = [slot for slot in profile.candidate_slots(self.slot_minutes) if slot not in taken]
        return Availability(
            day,
            profile.doctor_id,
            sorted(slots),
            free_doctors={slot: [profile.doctor_id] for slot in slots},
        )

    def for_any(
        self,
        profiles: Iterable[AvailabilityProfile],
        day: date,
        booked_by_doctor: Mapping[UUID, Iterable[time]],
        today: date | None = None,
    ) -> Availability:
        """
        Slots where at least one doctor is still free.

        A slot disappears only when every doctor offering it is booked. The
        result keeps, per slot, the doctors still free at that time.
        """
        blocked = self._blocked(day, today)
        if blocked is not None:
            reason, holiday_name = blocked
            return Availability(day, None, [], reason, holiday_name)

        working = [p for p in profiles if p.works_on(day)]
        if not working:
            return Availability(day, None, [], BlockedReason.NO_DOCTORS)

        free: dict[time, list[UUID]] = {}
        for profile in sorted(working, key=lambda p: str(p.doctor_id)):
            taken = set(booked_by_doctor.get(profile.doctor_id, ()))
            for slot in profile.candidate_slots(self.slot_minutes):
                if slot not in taken:
                    free.setdefault(slot, []).append(profile.doctor_id)

        slots = sorted(free)
        return Availability(day, None, slots, free_doctors={slot: free[slot] for slot in slots})
