"""Appointment service: the lifecycle state machine over the durable store."""

from collections.abc import Awaitable, Callable
from datetime import date, time, timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.config import settings
from clinic_scheduler.core.redis_client import SlotLockManager, SlotLockUnavailable
from clinic_scheduler.database import StoreUnavailable, store_unit
from clinic_scheduler.models.appointments import appointments
from clinic_scheduler.scheduling import guard
from clinic_scheduler.scheduling.assignment import (
    Assigned,
    AssignmentStrategy,
    assignment_of,
    get_strategy,
)
from clinic_scheduler.scheduling.availability import AvailabilityResolver
from clinic_scheduler.scheduling.clock import Clock, today
from clinic_scheduler.scheduling.errors import (
    AppointmentNotFoundError,
    ConflictReason,
    HolidayBlockedError,
    InvalidStateTransitionError,
    PastDateError,
    SchedulingError,
    SlotConflictError,
    StoreUnavailableError,
    TimeGateDeniedError,
    ValidationError,
)
from clinic_scheduler.scheduling.priority import AppointmentPriority, order_queue
from clinic_scheduler.scheduling.state_machine import (
    TRANSITIONS,
    AppointmentAction,
    AppointmentStatus,
    can_apply,
    initial_status,
    next_status,
)
from clinic_scheduler.scheduling.time_gate import ClinicalAction, Denied, can_act_now
from clinic_scheduler.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    ClinicalWindowResponse,
    CompletionReport,
    QueueResponse,
)
from clinic_scheduler.services.availability_service import (
    ACTIVE_STATUS_VALUES,
    AvailabilityService,
)
from clinic_scheduler.services.notification_service import (
    AppointmentEvent,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    notify,
)

logger = structlog.get_logger(__name__)

Result = AppointmentResponse | SchedulingError


def _respond(row: Row[Any]) -> AppointmentResponse:
    return AppointmentResponse.model_validate(dict(row._mapping))


def _required_text(value: str | None, field: str) -> str | ValidationError:
    cleaned = (value or "").strip()
    if not cleaned:
        return ValidationError(f"{field} is required", field=field)
    return cleaned


def _unique_violation_reason(error: IntegrityError) -> ConflictReason | None:
    """Map a unique-index violation on appointments to a conflict reason."""
    message = str(error.orig).lower()
    if "uq_appointments_active_patient_day" in message or "appointments.patient_id" in message:
        return ConflictReason.PATIENT_DOUBLE_BOOKED
    if "uq_appointments_active_slot" in message or "appointments.doctor_id" in message:
        return ConflictReason.SLOT_TAKEN
    return None


class AppointmentService:
    """Service for creating appointments and moving them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        dispatcher: NotificationDispatcher | None = None,
        locks: SlotLockManager | None = None,
        strategy: AssignmentStrategy | None = None,
    ):
        """Initialize service with session, clock and collaborators."""
        self.db = db
        self.clock = clock
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()
        self.locks = locks or SlotLockManager()
        self.strategy = strategy or get_strategy(settings.assignment_strategy)
        self.availability = AvailabilityService(db, clock)

    async def _fetch(self, appointment_id: UUID) -> Row[Any] | None:
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        return result.fetchone()

    async def get_appointment(self, appointment_id: UUID) -> Result:
        """
        Get appointment by ID.

        Args:
            appointment_id: Appointment ID

        Returns:
            Appointment details, or AppointmentNotFoundError
        """
        try:
            async with store_unit(self.db):
                row = await self._fetch(appointment_id)
        except StoreUnavailable as e:
            return StoreUnavailableError(f"Appointment store unavailable: {e}")

        if not row:
            return AppointmentNotFoundError(
                "Appointment not found", appointment_id=str(appointment_id)
            )
        return _respond(row)

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination, earliest first.

        Args:
            filters: Filter and pagination parameters; callers scope them to what
                the requesting user may see

        Returns:
            Paginated list of appointments
        """
        conditions = []
        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)
        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)
        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)
        if filters.from_date:
            conditions.append(appointments.c.date >= filters.from_date)
        if filters.to_date:
            conditions.append(appointments.c.date <= filters.to_date)

        offset = (filters.page - 1) * filters.page_size
        async with store_unit(self.db):
            count_stmt = select(func.count()).select_from(appointments).where(and_(True, *conditions))
            total = (await self.db.execute(count_stmt)).scalar() or 0

            stmt = (
                select(appointments)
                .where(and_(True, *conditions))
                .order_by(appointments.c.date, appointments.c.time, appointments.c.created_at)
                .limit(filters.page_size)
                .offset(offset)
            )
            rows = (await self.db.execute(stmt)).fetchall()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[_respond(row) for row in rows],
        )

    async def get_queue(self, day: date, doctor_id: UUID | None = None) -> QueueResponse:
        """
        Active appointments on a date in priority order (urgent, high, normal).

        Args:
            day: Queue date
            doctor_id: Restrict to one doctor's queue

        Returns:
            Ordered queue
        """
        conditions = [
            appointments.c.date == day,
            appointments.c.status.in_(ACTIVE_STATUS_VALUES),
        ]
        if doctor_id is not None:
            conditions.append(appointments.c.doctor_id == doctor_id)

        async with store_unit(self.db):
            result = await self.db.execute(select(appointments).where(and_(*conditions)))
            rows = [dict(row._mapping) for row in result.fetchall()]

        return QueueResponse(
            date=day,
            doctor_id=doctor_id,
            items=[AppointmentResponse.model_validate(row) for row in order_queue(rows)],
        )

    async def clinical_window(
        self,
        appointment_id: UUID,
        action: ClinicalAction = ClinicalAction.COMPLETE,
    ) -> ClinicalWindowResponse | SchedulingError:
        """
        Report whether a clinical action is currently open for an appointment.

        Args:
            appointment_id: Appointment ID
            action: Clinical action being considered

        Returns:
            The gate decision with the scheduled and earliest allowed instants
        """
        appointment = await self.get_appointment(appointment_id)
        if isinstance(appointment, SchedulingError):
            return appointment

        decision = can_act_now(appointment.date, appointment.time, self.clock.now(), self.clock.tz)
        earliest = decision.earliest_allowed_at if isinstance(decision, Denied) else decision.scheduled_at
        return ClinicalWindowResponse(
            appointment_id=appointment.id,
            action=action,
            allowed=not isinstance(decision, Denied),
            scheduled_at=decision.scheduled_at,
            earliest_allowed_at=earliest,
        )

    async def _gather_facts(
        self,
        request: guard.ReservationRequest,
        exclude_id: UUID | None,
    ) -> tuple[guard.ReservationFacts, Any]:
        horizon = settings.alternative_scan_days
        calendar = await self.availability.holidays.load_calendar(
            request.date, request.date + timedelta(days=horizon)
        )
        resolver = AvailabilityResolver(calendar, settings.slot_minutes)

        assignment = request.assignment
        if isinstance(assignment, Assigned):
            profile = await self.availability.doctors.effective_profile(assignment.doctor_id)
            offered = request.time in resolver.offered_slots(profile, request.date)
            booked = await self.availability.booked_slots(
                assignment.doctor_id, request.date, exclude_id
            )
            slot_taken = request.time in booked
        else:
            profiles = await self.availability.doctors.list_profiles()
            offered = any(request.time in resolver.offered_slots(p, request.date) for p in profiles)
            booked_by_doctor = await self.availability.booked_by_doctor(request.date, exclude_id)
            free = resolver.for_any(profiles, request.date, booked_by_doctor)
            slot_taken = offered and request.time not in free.free_doctors

        stmt = select(appointments.c.id).where(
            and_(
                appointments.c.patient_id == request.patient_id,
                appointments.c.date == request.date,
                appointments.c.status.in_(ACTIVE_STATUS_VALUES),
                *([appointments.c.id != exclude_id] if exclude_id is not None else []),
            )
        )
        patient_booked = (await self.db.execute(stmt)).first() is not None

        facts = guard.ReservationFacts(
            today=today(self.clock),
            blocking_holiday=calendar.blocking_holiday(request.date),
            offered=offered,
            slot_taken=slot_taken,
            patient_booked_that_day=patient_booked,
        )
        return facts, calendar

    def _conflict_error(
        self,
        request: guard.ReservationRequest,
        conflict: guard.Conflict,
        calendar: Any,
    ) -> SchedulingError:
        if conflict.reason is ConflictReason.HOLIDAY and conflict.holiday is not None:
            return HolidayBlockedError(
                f"{request.date.isoformat()} falls within {conflict.holiday.name}",
                holiday_name=conflict.holiday.name,
                requested_date=request.date,
                alternative_dates=calendar.suggest_alternatives(
                    request.date,
                    count=settings.alternative_dates_count,
                    horizon_days=settings.alternative_scan_days,
                ),
            )
        if conflict.reason is ConflictReason.PAST_DATE:
            return PastDateError(
                "Appointments cannot be booked in the past",
                requested_date=request.date,
                today=today(self.clock),
            )
        if conflict.reason is ConflictReason.OUTSIDE_SCHEDULE:
            return ValidationError(
                f"{request.time.strftime('%H:%M')} is not an offered slot on "
                f"{request.date.isoformat()}",
                field="time",
            )
        if conflict.reason is ConflictReason.PATIENT_DOUBLE_BOOKED:
            return SlotConflictError(
                "Patient already has an appointment on this date",
                reason=ConflictReason.PATIENT_DOUBLE_BOOKED,
            )
        return SlotConflictError("This time slot is already booked", reason=ConflictReason.SLOT_TAKEN)

    async def _reserve(
        self,
        request: guard.ReservationRequest,
        write: Callable[[], Awaitable[Row[Any] | None | SchedulingError]],
        exclude_id: UUID | None = None,
    ) -> Row[Any] | SchedulingError:
        """
        Check the slot and write the reservation as one all-or-nothing unit.

        The per-key locks (when configured) are held across the check and the
        write; the partial unique indexes reject whatever slips past them.
        """
        keys = [f"patient-lock:{request.patient_id}:{request.date.isoformat()}"]
        if isinstance(request.assignment, Assigned):
            keys.append(guard.lock_key(request.assignment.doctor_id, request.date, request.time))

        try:
            async with self.locks.hold(*keys), store_unit(self.db):
                facts, calendar = await self._gather_facts(request, exclude_id)
                decision = guard.evaluate(request, facts)
                if isinstance(decision, guard.Conflict):
                    await self.db.rollback()
                    logger.info(
                        "slot_conflict",
                        reason=decision.reason.value,
                        doctor_id=str(request.doctor_id) if request.doctor_id else None,
                        patient_id=str(request.patient_id),
                        date=request.date.isoformat(),
                        time=request.time.strftime("%H:%M"),
                    )
                    return self._conflict_error(request, decision, calendar)

                written = await write()
                if written is None or isinstance(written, SchedulingError):
                    await self.db.rollback()
                    return written or StoreUnavailableError("Reservation was not written")
                await self.db.commit()
                return written
        except IntegrityError as e:
            reason = _unique_violation_reason(e)
            if reason is None:
                raise
            logger.info("slot_conflict_at_commit", reason=reason.value, date=request.date.isoformat())
            message = (
                "Patient already has an appointment on this date"
                if reason is ConflictReason.PATIENT_DOUBLE_BOOKED
                else "This time slot is already booked"
            )
            return SlotConflictError(message, reason=reason)
        except (StoreUnavailable, SlotLockUnavailable) as e:
            return StoreUnavailableError(f"Scheduling store unavailable, retry later: {e}")

    async def _transition_error(
        self,
        appointment_id: UUID,
        action: AppointmentAction,
        row: Row[Any] | None = None,
    ) -> SchedulingError:
        """Explain why a conditional update matched nothing."""
        if row is None:
            row = await self._fetch(appointment_id)
        if row is None:
            return AppointmentNotFoundError("Appointment not found", appointment_id=str(appointment_id))
        return InvalidStateTransitionError(
            f"Cannot {action.value} an appointment that is {row.status}",
            current_status=row.status,
            action=action.value,
        )

    async def _conditional_update(
        self,
        appointment_id: UUID,
        action: AppointmentAction,
        values: dict[str, Any],
    ) -> Row[Any] | SchedulingError:
        """Apply an update only while the row is still in a legal source status."""
        allowed, _ = TRANSITIONS[action]
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status.in_([status.value for status in allowed]),
                )
            )
            .values(**values)
            .returning(appointments)
        )
        row = (await self.db.execute(stmt)).fetchone()
        if row is None:
            return await self._transition_error(appointment_id, action)
        return row

    async def _simple_transition(
        self,
        appointment_id: UUID,
        action: AppointmentAction,
        values: dict[str, Any],
    ) -> Row[Any] | SchedulingError:
        try:
            async with store_unit(self.db):
                row = await self._conditional_update(appointment_id, action, values)
                if isinstance(row, SchedulingError):
                    await self.db.rollback()
                    return row
                await self.db.commit()
                return row
        except StoreUnavailable as e:
            return StoreUnavailableError(f"Scheduling store unavailable, retry later: {e}")

    async def _load_for(
        self,
        appointment_id: UUID,
        action: AppointmentAction,
    ) -> Row[Any] | SchedulingError:
        try:
            async with store_unit(self.db):
                row = await self._fetch(appointment_id)
        except StoreUnavailable as e:
            return StoreUnavailableError(f"Scheduling store unavailable, retry later: {e}")
        if row is None:
            return AppointmentNotFoundError("Appointment not found", appointment_id=str(appointment_id))
        if not can_apply(row.status, action):
            return await self._transition_error(appointment_id, action, row)
        return row

    async def create_appointment(self, patient_id: UUID, data: AppointmentCreate) -> Result:
        """
        Create a new appointment.

        With a doctor the appointment starts ``scheduled``; without one it is a
        ``pending`` request waiting for staff assignment.

        Args:
            patient_id: Patient the appointment is for
            data: Appointment creation data

        Returns:
            Created appointment, or the reason it could not be booked
        """
        reason = _required_text(data.reason, "reason")
        if isinstance(reason, ValidationError):
            return reason

        assignment = assignment_of(data.doctor_id)
        request = guard.ReservationRequest(
            assignment=assignment,
            patient_id=patient_id,
            date=data.date,
            time=data.time,
        )
        now = self.clock.now()
        values = {
            "id": uuid4(),
            "patient_id": patient_id,
            "doctor_id": data.doctor_id,
            "date": data.date,
            "time": data.time,
            "duration_minutes": settings.slot_minutes,
            "status": initial_status(assignment).value,
            "priority": data.priority.value,
            "reason": reason,
            "created_at": now,
            "updated_at": now,
            "assigned_at": now if isinstance(assignment, Assigned) else None,
        }

        async def write() -> Row[Any] | None:
            stmt = insert(appointments).values(**values).returning(appointments)
            return (await self.db.execute(stmt)).fetchone()

        row = await self._reserve(request, write)
        if isinstance(row, SchedulingError):
            return row

        logger.info(
            "appointment_created",
            appointment_id=str(row.id),
            patient_id=str(patient_id),
            doctor_id=str(row.doctor_id) if row.doctor_id else None,
            date=row.date.isoformat(),
            time=row.time.strftime("%H:%M"),
            status=row.status,
            priority=row.priority,
        )
        await notify(self.dispatcher, AppointmentEvent.CREATED, dict(row._mapping))
        return _respond(row)

    async def _pick_doctor(self, row: Row[Any]) -> UUID | SchedulingError:
        """Choose a free doctor for a pending appointment's slot."""
        try:
            async with store_unit(self.db):
                availability = await self.availability.resolve(None, row.date, exclude_id=row.id)
                load = await self._active_load(row.date)
        except StoreUnavailable as e:
            return StoreUnavailableError(f"Scheduling store unavailable, retry later: {e}")

        doctor_id = self.strategy.choose(availability.free_doctors.get(row.time, []), load)
        if doctor_id is None:
            return SlotConflictError(
                "No doctor is free at this time", reason=ConflictReason.SLOT_TAKEN
            )
        return doctor_id

    async def _active_load(self, day: date) -> dict[UUID, int]:
        stmt = (
            select(appointments.c.doctor_id, func.count())
            .where(
                and_(
                    appointments.c.date == day,
                    appointments.c.doctor_id.is_not(None),
                    appointments.c.status.in_(ACTIVE_STATUS_VALUES),
                )
            )
            .group_by(appointments.c.doctor_id)
        )
        return {doctor_id: count for doctor_id, count in (await self.db.execute(stmt)).all()}

    async def assign_doctor(self, appointment_id: UUID, doctor_id: UUID | None = None) -> Result:
        """
        Bind a doctor to a pending appointment (pending -> scheduled).

        The full guard runs again for the chosen doctor, including the
        patient's one-booking-per-day rule.

        Args:
            appointment_id: Appointment ID
            doctor_id: Doctor to assign; None lets the assignment strategy pick

        Returns:
            Updated appointment
        """
        current = await self._load_for(appointment_id, AppointmentAction.ASSIGN)
        if isinstance(current, SchedulingError):
            return current

        if doctor_id is None:
            picked = await self._pick_doctor(current)
            if isinstance(picked, SchedulingError):
                return picked
            doctor_id = picked

        request = guard.ReservationRequest(
            assignment=Assigned(doctor_id),
            patient_id=current.patient_id,
            date=current.date,
            time=current.time,
        )
        now = self.clock.now()

        async def write() -> Row[Any] | SchedulingError:
            return await self._conditional_update(
                appointment_id,
                AppointmentAction.ASSIGN,
                {
                    "doctor_id": doctor_id,
                    "status": next_status(current.status, AppointmentAction.ASSIGN).value,
                    "assigned_at": now,
                    "updated_at": now,
                },
            )

        row = await self._reserve(request, write, exclude_id=appointment_id)
        if isinstance(row, SchedulingError):
            return row

        logger.info(
            "appointment_assigned",
            appointment_id=str(appointment_id),
            doctor_id=str(doctor_id),
            strategy=self.strategy.name,
        )
        await notify(self.dispatcher, AppointmentEvent.ASSIGNED, dict(row._mapping))
        return _respond(row)

    async def confirm_appointment(self, appointment_id: UUID) -> Result:
        """
        Doctor acknowledgment (scheduled -> confirmed).

        Args:
            appointment_id: Appointment ID

        Returns:
            Updated appointment
        """
        now = self.clock.now()
        row = await self._simple_transition(
            appointment_id,
            AppointmentAction.CONFIRM,
            {"status": AppointmentStatus.CONFIRMED.value, "confirmed_at": now, "updated_at": now},
        )
        if isinstance(row, SchedulingError):
            return row

        logger.info("appointment_confirmed", appointment_id=str(appointment_id))
        await notify(self.dispatcher, AppointmentEvent.CONFIRMED, dict(row._mapping))
        return _respond(row)

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: time,
        reason: str,
    ) -> Result:
        """
        Move a scheduled or confirmed appointment to a new slot.

        The old slot is released by the same write that takes the new one, so
        there is no moment where both or neither are held.

        Args:
            appointment_id: Appointment ID
            new_date: New date
            new_time: New start time
            reason: Why the appointment moves

        Returns:
            Updated appointment, back in ``scheduled``
        """
        cleaned = _required_text(reason, "reason")
        if isinstance(cleaned, ValidationError):
            return cleaned

        current = await self._load_for(appointment_id, AppointmentAction.RESCHEDULE)
        if isinstance(current, SchedulingError):
            return current

        request = guard.ReservationRequest(
            assignment=assignment_of(current.doctor_id),
            patient_id=current.patient_id,
            date=new_date,
            time=new_time,
        )
        now = self.clock.now()

        async def write() -> Row[Any] | SchedulingError:
            return await self._conditional_update(
                appointment_id,
                AppointmentAction.RESCHEDULE,
                {
                    "date": new_date,
                    "time": new_time,
                    "status": AppointmentStatus.SCHEDULED.value,
                    "reschedule_reason": cleaned,
                    "rescheduled_at": now,
                    "updated_at": now,
                },
            )

        row = await self._reserve(request, write, exclude_id=appointment_id)
        if isinstance(row, SchedulingError):
            return row

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            old_date=current.date.isoformat(),
            old_time=current.time.strftime("%H:%M"),
            new_date=new_date.isoformat(),
            new_time=new_time.strftime("%H:%M"),
        )
        await notify(
            self.dispatcher,
            AppointmentEvent.RESCHEDULED,
            dict(row._mapping),
            previous_date=current.date.isoformat(),
            previous_time=current.time.strftime("%H:%M"),
            reason=cleaned,
        )
        return _respond(row)

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        reason: str,
        notify_staff: bool = False,
    ) -> Result:
        """
        Cancel an active appointment and release its slot immediately.

        Cancelling twice is an error, not a no-op.

        Args:
            appointment_id: Appointment ID
            reason: Cancellation reason
            notify_staff: Ask the notification collaborators to alert clinic staff

        Returns:
            Cancelled appointment
        """
        cleaned = _required_text(reason, "reason")
        if isinstance(cleaned, ValidationError):
            return cleaned

        now = self.clock.now()
        row = await self._simple_transition(
            appointment_id,
            AppointmentAction.CANCEL,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancellation_reason": cleaned,
                "cancelled_at": now,
                "updated_at": now,
            },
        )
        if isinstance(row, SchedulingError):
            return row

        logger.info("appointment_cancelled", appointment_id=str(appointment_id), notify_staff=notify_staff)
        await notify(
            self.dispatcher,
            AppointmentEvent.CANCELLED,
            dict(row._mapping),
            reason=cleaned,
            notify_staff=notify_staff,
        )
        return _respond(row)

    def _validate_report(self, report: CompletionReport) -> CompletionReport | ValidationError:
        for field in ("diagnosis", "treatment_provided"):
            checked = _required_text(getattr(report, field), field)
            if isinstance(checked, ValidationError):
                return checked
        if report.follow_up_required:
            if report.follow_up_date is None:
                return ValidationError(
                    "follow_up_date is required when a follow-up is required",
                    field="follow_up_date",
                )
            if report.follow_up_date < today(self.clock):
                return ValidationError(
                    "follow_up_date cannot be in the past", field="follow_up_date"
                )
        return report

    async def complete_appointment(self, appointment_id: UUID, report: CompletionReport) -> Result:
        """
        Complete a confirmed appointment with its encounter report.

        Only allowed from the scheduled start onward; there is no upper bound,
        so a clinic running late can still close the visit.

        Args:
            appointment_id: Appointment ID
            report: Diagnosis, treatment and follow-up details

        Returns:
            Completed appointment, or TimeGateDeniedError before the start
        """
        current = await self._load_for(appointment_id, AppointmentAction.COMPLETE)
        if isinstance(current, SchedulingError):
            return current

        checked = self._validate_report(report)
        if isinstance(checked, ValidationError):
            return checked

        now = self.clock.now()
        decision = can_act_now(current.date, current.time, now, self.clock.tz)
        if isinstance(decision, Denied):
            logger.info(
                "time_gate_denied",
                appointment_id=str(appointment_id),
                scheduled_at=decision.scheduled_at.isoformat(),
                attempted_at=now.isoformat(),
            )
            return TimeGateDeniedError(
                f"This appointment can be completed from "
                f"{decision.earliest_allowed_at.strftime('%H:%M')} on "
                f"{decision.earliest_allowed_at.date().isoformat()}",
                scheduled_at=decision.scheduled_at,
                earliest_allowed_at=decision.earliest_allowed_at,
            )

        row = await self._simple_transition(
            appointment_id,
            AppointmentAction.COMPLETE,
            {
                "status": AppointmentStatus.COMPLETED.value,
                "completion_report": report.model_dump(mode="json"),
                "completed_at": now,
                "updated_at": now,
            },
        )
        if isinstance(row, SchedulingError):
            return row

        logger.info(
            "appointment_completed",
            appointment_id=str(appointment_id),
            follow_up_required=report.follow_up_required,
        )
        await notify(self.dispatcher, AppointmentEvent.COMPLETED, dict(row._mapping))
        return _respond(row)

    async def update_priority(self, appointment_id: UUID, priority: AppointmentPriority) -> Result:
        """
        Change the priority of an active appointment.

        Args:
            appointment_id: Appointment ID
            priority: New priority

        Returns:
            Updated appointment
        """
        row = await self._simple_transition(
            appointment_id,
            AppointmentAction.REPRIORITIZE,
            {"priority": priority.value, "updated_at": self.clock.now()},
        )
        if isinstance(row, SchedulingError):
            return row

        logger.info("appointment_priority_changed", appointment_id=str(appointment_id), priority=priority.value)
        return _respond(row)
