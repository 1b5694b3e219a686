"""Availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.dependencies import AvailabilityServiceDep, CurrentIdentity
from clinic_scheduler.schemas.availability import AvailabilityResponse

router = APIRouter()


@router.get(
    "",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Free slots for a date",
)
async def get_availability(
    current_identity: CurrentIdentity,
    service: AvailabilityServiceDep,
    day: date = Query(..., alias="date"),
    doctor_id: UUID | None = Query(None),
) -> AvailabilityResponse:
    """
    List bookable slots for a doctor, or for any doctor, on a date.

    A blocked day returns no slots and a ``blocked_reason``. Without a doctor,
    each slot also lists the doctors still free at it.

    Args:
        current_identity: Authenticated caller
        service: Availability service
        day: Requested date (clinic-local)
        doctor_id: Specific doctor; omit for "any available doctor"

    Returns:
        Ordered free slots
    """
    return await service.get_slots(doctor_id, day)
