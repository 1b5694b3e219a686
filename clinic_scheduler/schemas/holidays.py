"""Holiday schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class HolidayBase(BaseModel):
    """Base holiday schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    start_date: date
    end_date: date
    type: str = Field(default="holiday", min_length=1, max_length=50)
    affects_staff_type: str = Field(default="all", max_length=50)
    blocks_appointments: bool = True

    @model_validator(mode="after")
    def validate_range(self) -> "HolidayBase":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class HolidayCreate(HolidayBase):
    """Schema for creating a holiday."""

    is_active: bool = True


class HolidayUpdate(BaseModel):
    """Schema for updating a holiday."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    start_date: date | None = None
    end_date: date | None = None
    type: str | None = Field(None, min_length=1, max_length=50)
    affects_staff_type: str | None = Field(None, max_length=50)
    blocks_appointments: bool | None = None
    is_active: bool | None = None


class HolidayResponse(HolidayBase):
    """Schema for holiday response."""

    id: UUID
    is_active: bool
    academic_year: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class HolidayListResponse(BaseModel):
    holidays: list[HolidayResponse]


class HolidaySummary(BaseModel):
    """Blocking holiday as reported by the availability check."""

    id: UUID
    name: str
    type: str
    start_date: date
    end_date: date


class HolidayAvailabilityResponse(BaseModel):
    """Whether a date can be booked, and what to offer instead."""

    date: date
    is_available: bool
    blocking_holidays: list[HolidaySummary]
    alternative_dates: list[date]
