"""Holiday endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_scheduler.core.permissions import ensure_admin
from clinic_scheduler.dependencies import CurrentIdentity, HolidayServiceDep
from clinic_scheduler.schemas.holidays import (
    HolidayAvailabilityResponse,
    HolidayCreate,
    HolidayListResponse,
    HolidayResponse,
    HolidayUpdate,
)

router = APIRouter()


@router.get(
    "",
    response_model=HolidayListResponse,
    status_code=status.HTTP_200_OK,
    summary="List holidays",
)
async def list_holidays(
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
) -> HolidayListResponse:
    return HolidayListResponse(holidays=await service.list_holidays())


@router.get(
    "/check-availability",
    response_model=HolidayAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Check whether a date is open for booking",
)
async def check_availability(
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
    day: date = Query(..., alias="date"),
) -> HolidayAvailabilityResponse:
    """
    Check a date against blocking holidays.

    When the date is blocked, up to ``ALTERNATIVE_DATES_COUNT`` nearby open
    weekdays are suggested, scanning forward only.

    Args:
        current_identity: Authenticated caller
        service: Holiday service
        day: Date to check

    Returns:
        Availability with blocking holidays and alternative dates
    """
    return await service.check_availability(day)


@router.get(
    "/{holiday_id}",
    response_model=HolidayResponse,
    status_code=status.HTTP_200_OK,
    summary="Get holiday by ID",
)
async def get_holiday(
    holiday_id: UUID,
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
) -> HolidayResponse:
    return await service.get_holiday(holiday_id)


@router.post(
    "",
    response_model=HolidayResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create holiday",
)
async def create_holiday(
    data: HolidayCreate,
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
) -> HolidayResponse:
    """
    Create a holiday (admin only).

    Existing appointments inside the new range are left as they are.
    """
    ensure_admin(current_identity)
    return await service.create_holiday(data)


@router.put(
    "/{holiday_id}",
    response_model=HolidayResponse,
    status_code=status.HTTP_200_OK,
    summary="Update holiday",
)
async def update_holiday(
    holiday_id: UUID,
    data: HolidayUpdate,
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
) -> HolidayResponse:
    ensure_admin(current_identity)
    return await service.update_holiday(holiday_id, data)


@router.delete(
    "/{holiday_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete holiday",
)
async def delete_holiday(
    holiday_id: UUID,
    current_identity: CurrentIdentity,
    service: HolidayServiceDep,
) -> None:
    ensure_admin(current_identity)
    await service.delete_holiday(holiday_id)
