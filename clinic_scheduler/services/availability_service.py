"""Availability service: loads scheduling facts and resolves bookable slots."""

from collections import defaultdict
from datetime import date, time
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.database import store_unit
from clinic_scheduler.models.appointments import appointments
from clinic_scheduler.scheduling.availability import Availability, AvailabilityResolver
from clinic_scheduler.scheduling.clock import Clock, today
from clinic_scheduler.scheduling.state_machine import ACTIVE_STATUSES
from clinic_scheduler.schemas.availability import AvailabilityResponse, SlotDoctors
from clinic_scheduler.services.doctor_service import DoctorAvailabilityService
from clinic_scheduler.services.holiday_service import HolidayService

ACTIVE_STATUS_VALUES = [status.value for status in ACTIVE_STATUSES]


class AvailabilityService:
    """Service answering "which slots are free" queries."""

    def __init__(self, db: AsyncSession, clock: Clock):
        """Initialize service with database session and clinic clock."""
        self.db = db
        self.clock = clock
        self.holidays = HolidayService(db, clock)
        self.doctors = DoctorAvailabilityService(db, clock)

    async def booked_slots(
        self,
        doctor_id: UUID,
        day: date,
        exclude_id: UUID | None = None,
    ) -> set[time]:
        """Times held by active appointments of one doctor on a date."""
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.date == day,
            appointments.c.status.in_(ACTIVE_STATUS_VALUES),
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)
        result = await self.db.execute(select(appointments.c.time).where(and_(*conditions)))
        return {row.time for row in result.fetchall()}

    async def booked_by_doctor(
        self,
        day: date,
        exclude_id: UUID | None = None,
    ) -> dict[UUID, set[time]]:
        """Times held by active appointments on a date, grouped by doctor."""
        conditions = [
            appointments.c.doctor_id.is_not(None),
            appointments.c.date == day,
            appointments.c.status.in_(ACTIVE_STATUS_VALUES),
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)
        stmt = select(appointments.c.doctor_id, appointments.c.time).where(and_(*conditions))
        result = await self.db.execute(stmt)

        booked: dict[UUID, set[time]] = defaultdict(set)
        for row in result.fetchall():
            booked[row.doctor_id].add(row.time)
        return booked

    async def resolve(
        self,
        doctor_id: UUID | None,
        day: date,
        exclude_id: UUID | None = None,
    ) -> Availability:
        """
        Resolve availability on the caller's unit of work.

        Args:
            doctor_id: Specific doctor, or None for "any available doctor"
            day: Requested date
            exclude_id: Appointment whose own slot should count as free

        Returns:
            Ordered free slots
        """
        calendar = await self.holidays.load_calendar(day, day)
        resolver = AvailabilityResolver(calendar, settings.slot_minutes)
        current_day = today(self.clock)

        if doctor_id is not None:
            profile = await self.doctors.effective_profile(doctor_id)
            booked = await self.booked_slots(doctor_id, day, exclude_id)
            return resolver.for_doctor(profile, day, booked, today=current_day)

        profiles = await self.doctors.list_profiles()
        booked_by_doctor = await self.booked_by_doctor(day, exclude_id)
        return resolver.for_any(profiles, day, booked_by_doctor, today=current_day)

    async def get_slots(self, doctor_id: UUID | None, day: date) -> AvailabilityResponse:
        """
        Get bookable slots for a doctor, or for any doctor, on a date.

        The answer is advisory: a slot shown free can still be lost at commit.
        """
        async with store_unit(self.db):
            availability = await self.resolve(doctor_id, day)

        return AvailabilityResponse(
            date=availability.date,
            doctor_id=availability.doctor_id,
            slots=availability.slots,
            blocked_reason=availability.blocked_reason,
            holiday_name=availability.holiday_name,
            free_doctors=[
                SlotDoctors(time=slot, doctor_ids=doctor_ids)
                for slot, doctor_ids in availability.free_doctors.items()
            ],
        )
