"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.core import permissions
from clinic_scheduler.core.exceptions import ForbiddenException, ValidationException
from clinic_scheduler.dependencies import AppointmentServiceDep, CurrentIdentity
from clinic_scheduler.scheduling.errors import unwrap
from clinic_scheduler.scheduling.state_machine import AppointmentStatus
from clinic_scheduler.scheduling.time_gate import ClinicalAction
from clinic_scheduler.schemas.appointments import (
    AppointmentAssign,
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentPriorityUpdate,
    AppointmentReschedule,
    AppointmentResponse,
    ClinicalWindowResponse,
    QueueResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Book an appointment.

    With ``doctor_id`` the appointment is ``scheduled`` immediately; without it
    the request is ``pending`` until staff assign a doctor.

    Args:
        data: Appointment creation data
        current_identity: Authenticated caller
        service: Appointment service

    Returns:
        Created appointment
    """
    patient_id = permissions.resolve_patient(current_identity, data.patient_id)
    return unwrap(await service.create_appointment(patient_id, data))


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller, earliest first.

    Patients see their own appointments and doctors the ones assigned to them;
    clinic staff see everything.

    Returns:
        Paginated list of appointments
    """
    if from_date and to_date and from_date > to_date:
        raise ValidationException("from_date must not be after to_date")

    if current_identity.is_patient:
        patient_id = current_identity.user_id
    elif current_identity.is_doctor:
        doctor_id = current_identity.user_id

    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(filters)


@router.get(
    "/queue",
    response_model=QueueResponse,
    status_code=status.HTTP_200_OK,
    summary="Priority queue for a date",
)
async def get_queue(
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
    day: date = Query(..., alias="date"),
    doctor_id: UUID | None = Query(None),
) -> QueueResponse:
    """
    Active appointments on a date, urgent first, then high, then normal.

    Doctors only see their own queue.
    """
    if current_identity.is_patient:
        raise ForbiddenException("Only doctors and clinic staff can view the queue")
    if current_identity.is_doctor:
        doctor_id = current_identity.user_id
    return await service.get_queue(day, doctor_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        SchedulingException: If appointment not found
        ForbiddenException: If the caller may not see it
    """
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_can_view(current_identity, appointment)
    return appointment


@router.post(
    "/{appointment_id}/assign",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Assign a doctor to a pending appointment",
)
async def assign_doctor(
    appointment_id: UUID,
    data: AppointmentAssign,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Bind a doctor to a pending request; omit ``doctor_id`` to let the
    configured assignment strategy pick a free doctor.
    """
    permissions.ensure_staff(current_identity)
    return unwrap(await service.assign_doctor(appointment_id, data.doctor_id))


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_can_confirm(current_identity, appointment)
    return unwrap(await service.confirm_appointment(appointment_id))


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Move appointment to a new slot",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Reschedule a scheduled or confirmed appointment.

    On any failure the appointment keeps its original slot.
    """
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_can_modify(current_identity, appointment)
    return unwrap(
        await service.reschedule_appointment(appointment_id, data.date, data.time, data.reason)
    )


@router.put(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_can_modify(current_identity, appointment)
    return unwrap(
        await service.cancel_appointment(appointment_id, data.reason, data.notify_staff)
    )


@router.put(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment with an encounter report",
)
async def complete_appointment(
    appointment_id: UUID,
    data: AppointmentComplete,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Record the encounter outcome and close the appointment.

    Refused with 403 before the scheduled start time.
    """
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_assigned_doctor(current_identity, appointment)
    return unwrap(await service.complete_appointment(appointment_id, data.completion_report))


@router.patch(
    "/{appointment_id}/priority",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Change appointment priority",
)
async def update_priority(
    appointment_id: UUID,
    data: AppointmentPriorityUpdate,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    permissions.ensure_staff(current_identity)
    return unwrap(await service.update_priority(appointment_id, data.priority))


@router.get(
    "/{appointment_id}/clinical-window",
    response_model=ClinicalWindowResponse,
    status_code=status.HTTP_200_OK,
    summary="Whether a clinical action is open now",
)
async def get_clinical_window(
    appointment_id: UUID,
    current_identity: CurrentIdentity,
    service: AppointmentServiceDep,
    action: ClinicalAction = Query(ClinicalAction.COMPLETE),
) -> ClinicalWindowResponse:
    """
    Report the time gate decision for completing, prescribing or writing the
    medical record of an appointment.
    """
    appointment = unwrap(await service.get_appointment(appointment_id))
    permissions.ensure_assigned_doctor(current_identity, appointment)
    return unwrap(await service.clinical_window(appointment_id, action))
