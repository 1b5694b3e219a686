"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.schemas.common import SlotTime
from clinic_scheduler.scheduling.priority import AppointmentPriority
from clinic_scheduler.scheduling.state_machine import AppointmentStatus
from clinic_scheduler.scheduling.time_gate import ClinicalAction


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    # Filled from the caller's identity when a patient books for themselves
    patient_id: UUID | None = None
    # None means "any available doctor"; the request waits for staff assignment
    doctor_id: UUID | None = None
    date: date
    time: SlotTime
    reason: str = Field(..., max_length=500)
    priority: AppointmentPriority = AppointmentPriority.NORMAL


class AppointmentAssign(BaseModel):
    """Schema for assigning a doctor to a pending appointment."""

    doctor_id: UUID | None = None


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new slot."""

    date: date
    time: SlotTime
    reason: str = Field(..., max_length=500)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(..., max_length=500)
    notify_staff: bool = False


class CompletionReport(BaseModel):
    """Structured encounter outcome recorded on completion."""

    diagnosis: str = Field(..., max_length=2000)
    treatment_provided: str = Field(..., max_length=2000)
    medications_prescribed: str | None = Field(None, max_length=2000)
    recommendations: str | None = Field(None, max_length=2000)
    follow_up_required: bool = False
    follow_up_date: date | None = None
    notes: str | None = Field(None, max_length=2000)


class AppointmentComplete(BaseModel):
    """Schema for completing an appointment."""

    completion_report: CompletionReport


class AppointmentPriorityUpdate(BaseModel):
    """Schema for changing an active appointment's priority."""

    priority: AppointmentPriority


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID | None
    date: date
    time: SlotTime
    duration_minutes: int
    status: AppointmentStatus
    priority: AppointmentPriority
    reason: str
    cancellation_reason: str | None = None
    reschedule_reason: str | None = None
    completion_report: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    assigned_at: datetime | None = None
    confirmed_at: datetime | None = None
    rescheduled_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def validate_range(self) -> "AppointmentFilters":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("from_date must not be after to_date")
        return self


class QueueResponse(BaseModel):
    """Active appointments in priority order."""

    date: date
    doctor_id: UUID | None
    items: list[AppointmentResponse]


class ClinicalWindowResponse(BaseModel):
    """Whether a clinical action is open for an appointment right now."""

    appointment_id: UUID
    action: ClinicalAction
    allowed: bool
    scheduled_at: datetime
    earliest_allowed_at: datetime
