"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import SlotLockManager, get_slot_lock_manager
from clinic_scheduler.core.security import Identity, decode_access_token, identity_from_payload
from clinic_scheduler.database import get_db
from clinic_scheduler.scheduling.assignment import AssignmentStrategy, get_strategy
from clinic_scheduler.scheduling.clock import Clock, SystemClock
from clinic_scheduler.services.appointment_service import AppointmentService
from clinic_scheduler.services.availability_service import AvailabilityService
from clinic_scheduler.services.doctor_service import DoctorAvailabilityService
from clinic_scheduler.services.holiday_service import HolidayService
from clinic_scheduler.services.notification_service import (
    NotificationDispatcher,
    get_notification_dispatcher,
)

# Security
security = HTTPBearer()


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Identity:
    """
    Extract and validate the caller identity from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller identity (user id and role)

    Raises:
        HTTPException: If token is invalid, expired or missing claims
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = identity_from_payload(payload)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


def get_clock() -> Clock:
    """Clinic clock; overridden with a fixed clock in tests."""
    return SystemClock()


def get_dispatcher() -> NotificationDispatcher:
    return get_notification_dispatcher()


def get_lock_manager() -> SlotLockManager:
    return get_slot_lock_manager()


def get_assignment_strategy() -> AssignmentStrategy:
    return get_strategy(settings.assignment_strategy)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
ClinicClock = Annotated[Clock, Depends(get_clock)]


def get_appointment_service(
    db: DatabaseSession,
    clock: ClinicClock,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    locks: Annotated[SlotLockManager, Depends(get_lock_manager)],
    strategy: Annotated[AssignmentStrategy, Depends(get_assignment_strategy)],
) -> AppointmentService:
    return AppointmentService(db, clock, dispatcher=dispatcher, locks=locks, strategy=strategy)


def get_availability_service(db: DatabaseSession, clock: ClinicClock) -> AvailabilityService:
    return AvailabilityService(db, clock)


def get_holiday_service(db: DatabaseSession, clock: ClinicClock) -> HolidayService:
    return HolidayService(db, clock)


def get_doctor_service(db: DatabaseSession, clock: ClinicClock) -> DoctorAvailabilityService:
    return DoctorAvailabilityService(db, clock)


AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
AvailabilityServiceDep = Annotated[AvailabilityService, Depends(get_availability_service)]
HolidayServiceDep = Annotated[HolidayService, Depends(get_holiday_service)]
DoctorServiceDep = Annotated[DoctorAvailabilityService, Depends(get_doctor_service)]
