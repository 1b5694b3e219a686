"""Tests for the appointment lifecycle service against the database."""

import asyncio
from datetime import date, datetime, time
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from clinic_scheduler.config import settings
from clinic_scheduler.models import appointments
from clinic_scheduler.scheduling.assignment import LeastLoaded
from clinic_scheduler.scheduling.errors import (
    AppointmentNotFoundError,
    ConflictReason,
    HolidayBlockedError,
    InvalidStateTransitionError,
    PastDateError,
    SlotConflictError,
    StoreUnavailableError,
    TimeGateDeniedError,
    ValidationError,
)
from clinic_scheduler.scheduling.guard import ReservationFacts
from clinic_scheduler.scheduling.holidays import HolidayCalendar
from clinic_scheduler.scheduling.priority import AppointmentPriority
from clinic_scheduler.scheduling.time_gate import ClinicalAction
from clinic_scheduler.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentResponse,
    CompletionReport,
)
from clinic_scheduler.schemas.holidays import HolidayCreate
from clinic_scheduler.services.appointment_service import AppointmentService
from clinic_scheduler.services.availability_service import AvailabilityService
from clinic_scheduler.services.holiday_service import HolidayService
from clinic_scheduler.services.notification_service import AppointmentEvent

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
WEDNESDAY = date(2026, 3, 4)
ISTANBUL = ZoneInfo("Europe/Istanbul")


def booking(
    doctor_id: UUID | None,
    day: date = TUESDAY,
    at: time = time(10, 0),
    reason: str = "Persistent cough",
    priority: AppointmentPriority = AppointmentPriority.NORMAL,
) -> AppointmentCreate:
    return AppointmentCreate(doctor_id=doctor_id, date=day, time=at, reason=reason, priority=priority)


def report(**kwargs) -> CompletionReport:
    values = {"diagnosis": "Upper respiratory infection", "treatment_provided": "Rest and fluids"}
    values.update(kwargs)
    return CompletionReport(**values)


async def book(service: AppointmentService, patient_id: UUID, data: AppointmentCreate) -> AppointmentResponse:
    result = await service.create_appointment(patient_id, data)
    assert isinstance(result, AppointmentResponse), result
    return result


async def active_count(service: AppointmentService) -> int:
    stmt = select(func.count()).select_from(appointments).where(
        appointments.c.status.in_(["pending", "scheduled", "confirmed"])
    )
    return (await service.db.execute(stmt)).scalar()


# ============================================================================
# Appointment Creation Tests
# ============================================================================


@pytest.mark.asyncio
async def test_create_with_doctor_is_scheduled(service, patient_id, doctor_id, dispatcher) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))

    assert appointment.status == "scheduled"
    assert appointment.doctor_id == doctor_id
    assert appointment.patient_id == patient_id
    assert appointment.time == time(10, 0)
    assert appointment.duration_minutes == settings.slot_minutes
    assert appointment.assigned_at is not None

    event, payload = dispatcher.dispatch.await_args.args
    assert event is AppointmentEvent.CREATED
    assert payload["id"] == appointment.id


@pytest.mark.asyncio
async def test_create_without_doctor_is_pending(service, patient_id, doctor_profiles) -> None:
    appointment = await book(service, patient_id, booking(None))

    assert appointment.status == "pending"
    assert appointment.doctor_id is None
    assert appointment.assigned_at is None


@pytest.mark.asyncio
async def test_blank_reason_rejected(service, patient_id, doctor_id) -> None:
    result = await service.create_appointment(patient_id, booking(doctor_id, reason="   "))

    assert isinstance(result, ValidationError)
    assert result.field == "reason"


@pytest.mark.asyncio
async def test_past_date_rejected(service, patient_id, doctor_id) -> None:
    result = await service.create_appointment(patient_id, booking(doctor_id, day=date(2026, 2, 27)))

    assert isinstance(result, PastDateError)
    assert result.today == MONDAY


@pytest.mark.asyncio
async def test_today_is_bookable(service, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, day=MONDAY))

    assert appointment.date == MONDAY


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("day", "at"),
    [
        (TUESDAY, time(12, 0)),  # lunch break
        (TUESDAY, time(10, 15)),  # not on the slot grid
        (TUESDAY, time(17, 0)),  # after working hours
        (date(2026, 3, 7), time(10, 0)),  # Saturday
    ],
)
async def test_slot_outside_schedule_rejected(
    service, patient_id, doctor_id, doctor_profiles, day, at
) -> None:
    result = await service.create_appointment(patient_id, booking(doctor_id, day=day, at=at))

    assert isinstance(result, ValidationError)
    assert result.field == "time"


@pytest.mark.asyncio
async def test_slot_taken(service, patient_id, other_patient_id, doctor_id) -> None:
    await book(service, patient_id, booking(doctor_id))

    result = await service.create_appointment(other_patient_id, booking(doctor_id))

    assert isinstance(result, SlotConflictError)
    assert result.reason is ConflictReason.SLOT_TAKEN
    assert await active_count(service) == 1


@pytest.mark.asyncio
async def test_patient_double_booked(service, patient_id, doctor_id, other_doctor_id) -> None:
    await book(service, patient_id, booking(doctor_id, at=time(10, 0)))

    result = await service.create_appointment(patient_id, booking(other_doctor_id, at=time(14, 0)))

    assert isinstance(result, SlotConflictError)
    assert result.reason is ConflictReason.PATIENT_DOUBLE_BOOKED


@pytest.mark.asyncio
async def test_holiday_blocks_with_alternatives(service, db_session, clock, patient_id, doctor_id) -> None:
    await HolidayService(db_session, clock).create_holiday(
        HolidayCreate(name="Spring Break", start_date=TUESDAY, end_date=date(2026, 3, 5))
    )

    result = await service.create_appointment(patient_id, booking(doctor_id, day=WEDNESDAY))

    assert isinstance(result, HolidayBlockedError)
    assert result.holiday_name == "Spring Break"
    assert result.alternative_dates == [date(2026, 3, 6), date(2026, 3, 9), date(2026, 3, 10)]
    assert await active_count(service) == 0


@pytest.mark.asyncio
async def test_any_doctor_request_rejected_when_everyone_is_booked(
    service, patient_id, other_patient_id, doctor_id, other_doctor_id, doctor_profiles
) -> None:
    await book(service, uuid4(), booking(doctor_id))
    await book(service, other_patient_id, booking(other_doctor_id))

    result = await service.create_appointment(patient_id, booking(None))

    assert isinstance(result, SlotConflictError)
    assert result.reason is ConflictReason.SLOT_TAKEN


@pytest.mark.asyncio
async def test_any_doctor_request_without_profiles_is_outside_schedule(service, patient_id) -> None:
    result = await service.create_appointment(patient_id, booking(None))

    assert isinstance(result, ValidationError)
    assert result.field == "time"


# ============================================================================
# Concurrency and Store Failure Tests
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_creates_for_one_slot(make_service, patient_id, other_patient_id, doctor_id) -> None:
    results = await asyncio.gather(
        make_service().create_appointment(patient_id, booking(doctor_id)),
        make_service().create_appointment(other_patient_id, booking(doctor_id)),
    )

    winners = [r for r in results if isinstance(r, AppointmentResponse)]
    losers = [r for r in results if not isinstance(r, AppointmentResponse)]
    assert len(winners) == 1
    # SQLite may refuse the losing writer with a lock error before the index does
    assert isinstance(losers[0], SlotConflictError | StoreUnavailableError)
    assert await active_count(make_service()) == 1


@pytest.mark.asyncio
async def test_concurrent_creates_for_one_patient_day(
    make_service, patient_id, doctor_id, other_doctor_id
) -> None:
    results = await asyncio.gather(
        make_service().create_appointment(patient_id, booking(doctor_id, at=time(9, 0))),
        make_service().create_appointment(patient_id, booking(other_doctor_id, at=time(15, 0))),
    )

    assert sum(isinstance(r, AppointmentResponse) for r in results) == 1
    assert await active_count(make_service()) == 1


@pytest.mark.asyncio
async def test_unique_index_catches_what_the_check_missed(
    service, monkeypatch, patient_id, other_patient_id, doctor_id
) -> None:
    await book(service, patient_id, booking(doctor_id))

    async def stale_facts(request, exclude_id):
        # What a racing writer saw before the first commit landed
        return ReservationFacts(today=MONDAY), HolidayCalendar([])

    monkeypatch.setattr(service, "_gather_facts", stale_facts)

    result = await service.create_appointment(other_patient_id, booking(doctor_id))

    assert isinstance(result, SlotConflictError)
    assert result.reason is ConflictReason.SLOT_TAKEN
    assert await active_count(service) == 1


@pytest.mark.asyncio
async def test_store_timeout_is_retryable_and_writes_nothing(
    service, monkeypatch, patient_id, doctor_id
) -> None:
    async def slow_facts(request, exclude_id):
        await asyncio.sleep(1)

    monkeypatch.setattr(settings, "store_timeout_seconds", 0.05)
    monkeypatch.setattr(service, "_gather_facts", slow_facts)

    result = await service.create_appointment(patient_id, booking(doctor_id))

    assert isinstance(result, StoreUnavailableError)
    assert result.retryable
    monkeypatch.undo()
    assert await active_count(service) == 0


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_create(service, dispatcher, patient_id, doctor_id) -> None:
    dispatcher.dispatch.side_effect = RuntimeError("push gateway down")

    appointment = await book(service, patient_id, booking(doctor_id))

    assert appointment.status == "scheduled"
    dispatcher.dispatch.assert_awaited_once()


# ============================================================================
# Doctor Assignment Tests
# ============================================================================


@pytest.mark.asyncio
async def test_assign_explicit_doctor(service, patient_id, doctor_id, doctor_profiles, dispatcher) -> None:
    pending = await book(service, patient_id, booking(None))

    result = await service.assign_doctor(pending.id, doctor_id)

    assert isinstance(result, AppointmentResponse)
    assert result.status == "scheduled"
    assert result.doctor_id == doctor_id
    assert result.assigned_at is not None
    assert dispatcher.dispatch.await_args.args[0] is AppointmentEvent.ASSIGNED


@pytest.mark.asyncio
async def test_assign_picks_first_free_doctor(
    service, patient_id, other_patient_id, doctor_id, other_doctor_id, doctor_profiles
) -> None:
    pending = await book(service, patient_id, booking(None))
    await book(service, other_patient_id, booking(doctor_id))

    result = await service.assign_doctor(pending.id)

    assert isinstance(result, AppointmentResponse)
    assert result.doctor_id == other_doctor_id


@pytest.mark.asyncio
async def test_assign_least_loaded(
    db_session, clock, dispatcher, patient_id, doctor_id, other_doctor_id, doctor_profiles
) -> None:
    service = AppointmentService(db_session, clock, dispatcher=dispatcher, strategy=LeastLoaded())
    await book(service, uuid4(), booking(doctor_id, at=time(9, 0)))
    pending = await book(service, patient_id, booking(None, at=time(10, 0)))

    result = await service.assign_doctor(pending.id)

    assert isinstance(result, AppointmentResponse)
    assert result.doctor_id == other_doctor_id


@pytest.mark.asyncio
async def test_assign_busy_doctor_rejected(
    service, patient_id, other_patient_id, doctor_id, doctor_profiles
) -> None:
    pending = await book(service, patient_id, booking(None))
    await book(service, other_patient_id, booking(doctor_id))

    result = await service.assign_doctor(pending.id, doctor_id)

    assert isinstance(result, SlotConflictError)
    unchanged = await service.get_appointment(pending.id)
    assert unchanged.status == "pending"


@pytest.mark.asyncio
async def test_assign_requires_pending(service, patient_id, doctor_id, other_doctor_id) -> None:
    scheduled = await book(service, patient_id, booking(doctor_id))

    result = await service.assign_doctor(scheduled.id, other_doctor_id)

    assert isinstance(result, InvalidStateTransitionError)
    assert result.current_status == "scheduled"


# ============================================================================
# Confirm, Reschedule and Cancel Tests
# ============================================================================


@pytest.mark.asyncio
async def test_confirm(service, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))

    result = await service.confirm_appointment(appointment.id)

    assert result.status == "confirmed"
    assert result.confirmed_at is not None

    again = await service.confirm_appointment(appointment.id)
    assert isinstance(again, InvalidStateTransitionError)


@pytest.mark.asyncio
async def test_reschedule_conflict_keeps_original_slot(
    service, clock, patient_id, other_patient_id, doctor_id
) -> None:
    mine = await book(service, patient_id, booking(doctor_id, at=time(10, 0)))
    await book(service, other_patient_id, booking(doctor_id, at=time(11, 0)))

    result = await service.reschedule_appointment(mine.id, TUESDAY, time(11, 0), "Clashes with a lab")

    assert isinstance(result, SlotConflictError)
    unchanged = await service.get_appointment(mine.id)
    assert unchanged.time == time(10, 0)
    assert unchanged.status == "scheduled"


@pytest.mark.asyncio
async def test_reschedule_moves_and_frees_old_slot(service, clock, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))
    await service.confirm_appointment(appointment.id)

    result = await service.reschedule_appointment(appointment.id, WEDNESDAY, time(14, 0), "Exam moved")

    assert isinstance(result, AppointmentResponse)
    assert (result.date, result.time) == (WEDNESDAY, time(14, 0))
    assert result.status == "scheduled"
    assert result.reschedule_reason == "Exam moved"
    assert result.rescheduled_at is not None

    free = await AvailabilityService(service.db, clock).get_slots(doctor_id, TUESDAY)
    assert time(10, 0) in free.slots


@pytest.mark.asyncio
async def test_reschedule_within_same_day_is_not_a_double_booking(service, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, at=time(10, 0)))

    result = await service.reschedule_appointment(appointment.id, TUESDAY, time(14, 0), "Later please")

    assert isinstance(result, AppointmentResponse)
    assert result.time == time(14, 0)


@pytest.mark.asyncio
async def test_reschedule_requires_reason_and_active_booking(
    service, patient_id, doctor_id, doctor_profiles
) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))
    pending = await book(service, uuid4(), booking(None, day=WEDNESDAY))

    no_reason = await service.reschedule_appointment(appointment.id, WEDNESDAY, time(9, 0), "")
    from_pending = await service.reschedule_appointment(pending.id, WEDNESDAY, time(9, 0), "Moved")

    assert isinstance(no_reason, ValidationError)
    assert isinstance(from_pending, InvalidStateTransitionError)
    assert from_pending.current_status == "pending"


@pytest.mark.asyncio
async def test_cancel_releases_slot_and_is_not_idempotent(
    service, dispatcher, patient_id, other_patient_id, doctor_id
) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))

    cancelled = await service.cancel_appointment(appointment.id, "Feeling better", notify_staff=True)

    assert cancelled.status == "cancelled"
    assert cancelled.cancellation_reason == "Feeling better"
    assert dispatcher.dispatch.await_args.kwargs["notify_staff"] is True

    again = await service.cancel_appointment(appointment.id, "Feeling better")
    assert isinstance(again, InvalidStateTransitionError)
    assert again.current_status == "cancelled"

    # Slot and the patient's day are free again
    await book(service, other_patient_id, booking(doctor_id))
    await book(service, patient_id, booking(doctor_id, at=time(15, 0)))


@pytest.mark.asyncio
async def test_cancel_requires_reason(service, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))

    result = await service.cancel_appointment(appointment.id, " ")

    assert isinstance(result, ValidationError)
    assert (await service.get_appointment(appointment.id)).status == "scheduled"


@pytest.mark.asyncio
async def test_unknown_appointment(service) -> None:
    missing = uuid4()

    assert isinstance(await service.get_appointment(missing), AppointmentNotFoundError)
    assert isinstance(await service.confirm_appointment(missing), AppointmentNotFoundError)
    assert isinstance(await service.cancel_appointment(missing, "x"), AppointmentNotFoundError)


# ============================================================================
# Completion and Time Gate Tests
# ============================================================================


@pytest.mark.asyncio
async def test_complete_is_gated_by_start_time(service, clock, patient_id, doctor_id, dispatcher) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, day=MONDAY, at=time(10, 0)))
    await service.confirm_appointment(appointment.id)

    early = await service.complete_appointment(appointment.id, report())

    assert isinstance(early, TimeGateDeniedError)
    assert early.earliest_allowed_at == datetime(2026, 3, 2, 10, 0, tzinfo=ISTANBUL)
    assert (await service.get_appointment(appointment.id)).status == "confirmed"

    clock.set(datetime(2026, 3, 2, 10, 0))
    done = await service.complete_appointment(appointment.id, report(follow_up_required=False))

    assert isinstance(done, AppointmentResponse)
    assert done.status == "completed"
    assert done.completed_at is not None
    assert done.completion_report["diagnosis"] == "Upper respiratory infection"
    assert dispatcher.dispatch.await_args.args[0] is AppointmentEvent.COMPLETED


@pytest.mark.asyncio
async def test_complete_requires_confirmation(service, clock, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, day=MONDAY))
    clock.set(datetime(2026, 3, 2, 11, 0))

    result = await service.complete_appointment(appointment.id, report())

    assert isinstance(result, InvalidStateTransitionError)
    assert result.current_status == "scheduled"


@pytest.mark.asyncio
async def test_complete_validates_report(service, clock, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, day=MONDAY))
    await service.confirm_appointment(appointment.id)
    clock.set(datetime(2026, 3, 2, 11, 0))

    blank = await service.complete_appointment(appointment.id, report(diagnosis=" "))
    no_date = await service.complete_appointment(appointment.id, report(follow_up_required=True))
    past_date = await service.complete_appointment(
        appointment.id, report(follow_up_required=True, follow_up_date=date(2026, 3, 1))
    )

    assert isinstance(blank, ValidationError) and blank.field == "diagnosis"
    assert isinstance(no_date, ValidationError) and no_date.field == "follow_up_date"
    assert isinstance(past_date, ValidationError) and past_date.field == "follow_up_date"
    assert (await service.get_appointment(appointment.id)).status == "confirmed"


@pytest.mark.asyncio
async def test_clinical_window(service, clock, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id, day=MONDAY, at=time(10, 0)))

    before = await service.clinical_window(appointment.id, ClinicalAction.PRESCRIBE)
    clock.set(datetime(2026, 3, 2, 10, 30))
    after = await service.clinical_window(appointment.id, ClinicalAction.PRESCRIBE)

    assert before.allowed is False
    assert before.earliest_allowed_at == datetime(2026, 3, 2, 10, 0, tzinfo=ISTANBUL)
    assert after.allowed is True


# ============================================================================
# Listing, Queue and Priority Tests
# ============================================================================


@pytest.mark.asyncio
async def test_queue_orders_by_priority_then_time(service, doctor_id) -> None:
    normal = await book(service, uuid4(), booking(doctor_id, at=time(9, 0)))
    urgent = await book(
        service, uuid4(), booking(doctor_id, at=time(10, 0), priority=AppointmentPriority.URGENT)
    )
    high = await book(
        service, uuid4(), booking(doctor_id, at=time(11, 0), priority=AppointmentPriority.HIGH)
    )

    queue = await service.get_queue(TUESDAY, doctor_id)
    assert [item.id for item in queue.items] == [urgent.id, high.id, normal.id]

    await service.update_priority(normal.id, AppointmentPriority.URGENT)
    queue = await service.get_queue(TUESDAY, doctor_id)
    assert [item.id for item in queue.items] == [normal.id, urgent.id, high.id]


@pytest.mark.asyncio
async def test_priority_change_requires_active_appointment(service, patient_id, doctor_id) -> None:
    appointment = await book(service, patient_id, booking(doctor_id))
    await service.cancel_appointment(appointment.id, "No longer needed")

    result = await service.update_priority(appointment.id, AppointmentPriority.HIGH)

    assert isinstance(result, InvalidStateTransitionError)


@pytest.mark.asyncio
async def test_list_appointments_filters_and_orders(
    service, patient_id, other_patient_id, doctor_id, other_doctor_id
) -> None:
    later = await book(service, patient_id, booking(doctor_id, day=WEDNESDAY))
    earlier = await book(service, patient_id, booking(doctor_id, day=TUESDAY))
    await book(service, other_patient_id, booking(other_doctor_id, day=TUESDAY))

    mine = await service.list_appointments(AppointmentFilters(patient_id=patient_id))
    tuesday = await service.list_appointments(AppointmentFilters(from_date=TUESDAY, to_date=TUESDAY))

    assert mine.total == 2
    assert [item.id for item in mine.items] == [earlier.id, later.id]
    assert tuesday.total == 2
