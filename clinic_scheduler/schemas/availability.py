"""Availability schemas."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.schemas.common import SlotTime
from clinic_scheduler.scheduling.availability import WEEKDAYS, BlockedReason


class SlotDoctors(BaseModel):
    """Doctors still free at one slot."""

    time: SlotTime
    doctor_ids: list[UUID]


class AvailabilityResponse(BaseModel):
    """Bookable slots for a date."""

    date: date
    doctor_id: UUID | None
    slots: list[SlotTime]
    blocked_reason: BlockedReason | None = None
    holiday_name: str | None = None
    free_doctors: list[SlotDoctors] = Field(default_factory=list)


class AvailabilityProfileUpdate(BaseModel):
    """Schema for setting a doctor's working days and hours."""

    available_days: list[str] = Field(..., min_length=1)
    working_hours_start: time
    working_hours_end: time
    break_start: time | None = None
    break_end: time | None = None
    is_available: bool = True

    @model_validator(mode="after")
    def validate_profile(self) -> "AvailabilityProfileUpdate":
        """Validate weekday names, hours ordering and the break window."""
        days = [day.strip().lower() for day in self.available_days]
        unknown = sorted(set(days) - set(WEEKDAYS))
        if unknown:
            raise ValueError(f"Unknown weekday names: {unknown}")
        self.available_days = sorted(set(days), key=WEEKDAYS.index)

        if self.working_hours_start >= self.working_hours_end:
            raise ValueError("working_hours_end must be after working_hours_start")
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be provided together")
        if self.break_start is not None and self.break_end is not None:
            if not (
                self.working_hours_start
                <= self.break_start
                < self.break_end
                <= self.working_hours_end
            ):
                raise ValueError("Break must start before it ends and lie within working hours")
        return self


class AvailabilityProfileResponse(BaseModel):
    """A doctor's effective availability profile."""

    doctor_id: UUID
    available_days: list[str]
    working_hours_start: SlotTime
    working_hours_end: SlotTime
    break_start: SlotTime | None = None
    break_end: SlotTime | None = None
    is_available: bool
    is_default: bool = False
