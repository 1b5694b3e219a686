"""Holiday service: blackout periods and date availability checks."""

from datetime import date, timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.core.exceptions import NotFoundException, ValidationException
from clinic_scheduler.database import store_unit
from clinic_scheduler.models.holidays import holidays
from clinic_scheduler.scheduling.clock import Clock
from clinic_scheduler.scheduling.holidays import Holiday, HolidayCalendar
from clinic_scheduler.schemas.holidays import (
    HolidayAvailabilityResponse,
    HolidayCreate,
    HolidayResponse,
    HolidaySummary,
    HolidayUpdate,
)

logger = structlog.get_logger(__name__)


def to_holiday(row: Row[Any]) -> Holiday:
    """Convert a holidays row into the registry's value type."""
    return Holiday(
        id=row.id,
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        type=row.type,
        blocks_appointments=row.blocks_appointments,
        is_active=row.is_active,
    )


class HolidayService:
    """Service for managing holidays and answering blackout queries."""

    def __init__(self, db: AsyncSession, clock: Clock):
        """Initialize service with database session and clinic clock."""
        self.db = db
        self.clock = clock

    async def load_calendar(self, start: date, end: date) -> HolidayCalendar:
        """
        Load every holiday overlapping ``[start, end]`` into a calendar.

        Runs on the caller's session so it can take part in a larger unit of work.
        """
        stmt = select(holidays).where(
            and_(
                holidays.c.start_date <= end,
                holidays.c.end_date >= start,
            )
        )
        result = await self.db.execute(stmt)
        return HolidayCalendar(to_holiday(row) for row in result.fetchall())

    async def list_holidays(self) -> list[HolidayResponse]:
        """List all holidays, most recent first."""
        async with store_unit(self.db):
            stmt = select(holidays).order_by(holidays.c.start_date.desc(), holidays.c.name)
            result = await self.db.execute(stmt)
            rows = result.fetchall()
        return [HolidayResponse.model_validate(dict(row._mapping)) for row in rows]

    async def get_holiday(self, holiday_id: UUID) -> HolidayResponse:
        """
        Get holiday by ID.

        Raises:
            NotFoundException: If holiday not found
        """
        async with store_unit(self.db):
            result = await self.db.execute(select(holidays).where(holidays.c.id == holiday_id))
            row = result.fetchone()
        if not row:
            raise NotFoundException("Holiday not found")
        return HolidayResponse.model_validate(dict(row._mapping))

    async def create_holiday(self, data: HolidayCreate) -> HolidayResponse:
        """
        Create a new holiday.

        Args:
            data: Holiday creation data

        Returns:
            Created holiday
        """
        now = self.clock.now()
        values = {
            "id": uuid4(),
            **data.model_dump(),
            "academic_year": data.start_date.year,
            "created_at": now,
            "updated_at": now,
        }

        async with store_unit(self.db):
            stmt = insert(holidays).values(**values).returning(holidays)
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()

        logger.info(
            "holiday_created",
            holiday_id=str(values["id"]),
            name=data.name,
            start_date=str(data.start_date),
            end_date=str(data.end_date),
            blocks_appointments=data.blocks_appointments,
        )
        return HolidayResponse.model_validate(dict(row._mapping))

    async def update_holiday(self, holiday_id: UUID, data: HolidayUpdate) -> HolidayResponse:
        """
        Update an existing holiday.

        Raises:
            NotFoundException: If holiday not found
            ValidationException: If the resulting date range is inverted
        """
        current = await self.get_holiday(holiday_id)

        update_values: dict[str, Any] = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if not update_values:
            return current

        start_date = update_values.get("start_date", current.start_date)
        end_date = update_values.get("end_date", current.end_date)
        if end_date < start_date:
            raise ValidationException("end_date must be on or after start_date")
        if "start_date" in update_values:
            update_values["academic_year"] = start_date.year
        update_values["updated_at"] = self.clock.now()

        async with store_unit(self.db):
            stmt = (
                update(holidays)
                .where(holidays.c.id == holiday_id)
                .values(**update_values)
                .returning(holidays)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()

        logger.info("holiday_updated", holiday_id=str(holiday_id), fields=sorted(update_values))
        return HolidayResponse.model_validate(dict(row._mapping))

    async def delete_holiday(self, holiday_id: UUID) -> None:
        """
        Delete a holiday.

        Raises:
            NotFoundException: If holiday not found
        """
        await self.get_holiday(holiday_id)

        async with store_unit(self.db):
            await self.db.execute(delete(holidays).where(holidays.c.id == holiday_id))
            await self.db.commit()

        logger.info("holiday_deleted", holiday_id=str(holiday_id))

    async def check_availability(self, day: date) -> HolidayAvailabilityResponse:
        """
        Check whether a date is open for booking and suggest nearby open dates.

        Args:
            day: Requested date

        Returns:
            Blocking holidays covering the date and alternative dates when blocked
        """
        horizon = settings.alternative_scan_days
        async with store_unit(self.db):
            calendar = await self.load_calendar(day, day + timedelta(days=horizon))

        blocking = calendar.blocking_holidays(day)
        alternatives: list[date] = []
        if blocking:
            alternatives = calendar.suggest_alternatives(
                day,
                count=settings.alternative_dates_count,
                horizon_days=horizon,
            )

        return HolidayAvailabilityResponse(
            date=day,
            is_available=not blocking,
            blocking_holidays=[
                HolidaySummary(
                    id=holiday.id,
                    name=holiday.name,
                    type=holiday.type,
                    start_date=holiday.start_date,
                    end_date=holiday.end_date,
                )
                for holiday in blocking
            ],
            alternative_dates=alternatives,
        )
