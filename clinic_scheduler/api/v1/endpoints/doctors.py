"""Doctor availability profile endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from clinic_scheduler.core.permissions import ensure_can_edit_profile
from clinic_scheduler.dependencies import CurrentIdentity, DoctorServiceDep
from clinic_scheduler.schemas.availability import (
    AvailabilityProfileResponse,
    AvailabilityProfileUpdate,
)

router = APIRouter()


@router.get(
    "/{doctor_id}/availability-profile",
    response_model=AvailabilityProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Get doctor availability profile",
)
async def get_availability_profile(
    doctor_id: UUID,
    current_identity: CurrentIdentity,
    service: DoctorServiceDep,
) -> AvailabilityProfileResponse:
    """
    Get a doctor's working days and hours.

    Doctors without a stored profile get the clinic default hours, flagged
    with ``is_default``.
    """
    return await service.get_profile(doctor_id)


@router.put(
    "/{doctor_id}/availability-profile",
    response_model=AvailabilityProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Set doctor availability profile",
)
async def put_availability_profile(
    doctor_id: UUID,
    data: AvailabilityProfileUpdate,
    current_identity: CurrentIdentity,
    service: DoctorServiceDep,
) -> AvailabilityProfileResponse:
    """
    Create or replace a doctor's availability profile.

    Args:
        doctor_id: Doctor ID
        data: Working days, hours and optional break
        current_identity: The doctor themself or an administrator
        service: Doctor availability service

    Returns:
        Stored profile
    """
    ensure_can_edit_profile(current_identity, doctor_id)
    return await service.upsert_profile(doctor_id, data)
