"""Doctor availability profile service."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.database import store_unit
from clinic_scheduler.models.doctor_availability import doctor_availability
from clinic_scheduler.scheduling.availability import (
    WEEKDAYS,
    AvailabilityProfile,
    default_profile,
)
from clinic_scheduler.scheduling.clock import Clock
from clinic_scheduler.schemas.availability import (
    AvailabilityProfileResponse,
    AvailabilityProfileUpdate,
)

logger = structlog.get_logger(__name__)


def to_profile(row: Row[Any]) -> AvailabilityProfile:
    return AvailabilityProfile(
        doctor_id=row.doctor_id,
        available_days=frozenset(day.lower() for day in row.available_days or ()),
        working_hours_start=row.working_hours_start,
        working_hours_end=row.working_hours_end,
        break_start=row.break_start,
        break_end=row.break_end,
        is_available=row.is_available,
    )


def fallback_profile(doctor_id: UUID) -> AvailabilityProfile:
    """Clinic default hours for a doctor with no stored configuration."""
    return default_profile(
        doctor_id,
        settings.default_available_days,
        settings.default_working_hours_start,
        settings.default_working_hours_end,
    )


def profile_response(profile: AvailabilityProfile, is_default: bool) -> AvailabilityProfileResponse:
    return AvailabilityProfileResponse(
        doctor_id=profile.doctor_id,
        available_days=sorted(profile.available_days, key=WEEKDAYS.index),
        working_hours_start=profile.working_hours_start,
        working_hours_end=profile.working_hours_end,
        break_start=profile.break_start,
        break_end=profile.break_end,
        is_available=profile.is_available,
        is_default=is_default,
    )


class DoctorAvailabilityService:
    """Service for reading and storing doctor availability profiles."""

    def __init__(self, db: AsyncSession, clock: Clock):
        """Initialize service with database session and clinic clock."""
        self.db = db
        self.clock = clock

    async def find_profile(self, doctor_id: UUID) -> AvailabilityProfile | None:
        """Stored profile, or None. Runs on the caller's unit of work."""
        stmt = select(doctor_availability).where(doctor_availability.c.doctor_id == doctor_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return to_profile(row) if row else None

    async def effective_profile(self, doctor_id: UUID) -> AvailabilityProfile:
        """Stored profile, falling back to clinic default hours with no break."""
        return await self.find_profile(doctor_id) or fallback_profile(doctor_id)

    async def list_profiles(self) -> list[AvailabilityProfile]:
        """Every stored profile, ordered by doctor id. Runs on the caller's unit of work."""
        stmt = select(doctor_availability).order_by(doctor_availability.c.doctor_id)
        result = await self.db.execute(stmt)
        return [to_profile(row) for row in result.fetchall()]

    async def get_profile(self, doctor_id: UUID) -> AvailabilityProfileResponse:
        """
        Get a doctor's effective availability profile.

        Args:
            doctor_id: Doctor ID

        Returns:
            Stored profile, or the clinic default flagged ``is_default``
        """
        async with store_unit(self.db):
            stored = await self.find_profile(doctor_id)
        if stored is None:
            return profile_response(fallback_profile(doctor_id), is_default=True)
        return profile_response(stored, is_default=False)

    async def upsert_profile(
        self,
        doctor_id: UUID,
        data: AvailabilityProfileUpdate,
    ) -> AvailabilityProfileResponse:
        """
        Create or replace a doctor's availability profile.

        Existing appointments are left untouched; the new hours only shape
        future availability queries.

        Args:
            doctor_id: Doctor ID
            data: Validated profile

        Returns:
            Stored profile
        """
        now = self.clock.now()
        values = {**data.model_dump(), "updated_at": now}

        async with store_unit(self.db):
            exists = await self.find_profile(doctor_id)
            if exists is None:
                stmt = (
                    insert(doctor_availability)
                    .values(doctor_id=doctor_id, created_at=now, **values)
                    .returning(doctor_availability)
                )
            else:
                stmt = (
                    update(doctor_availability)
                    .where(doctor_availability.c.doctor_id == doctor_id)
                    .values(**values)
                    .returning(doctor_availability)
                )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()

        logger.info(
            "availability_profile_saved",
            doctor_id=str(doctor_id),
            available_days=data.available_days,
            working_hours_start=data.working_hours_start.isoformat(),
            working_hours_end=data.working_hours_end.isoformat(),
            created=exists is None,
        )
        return profile_response(to_profile(row), is_default=False)
