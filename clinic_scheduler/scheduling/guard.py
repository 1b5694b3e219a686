"""Slot conflict guard.

The guard decides whether a reservation may be written, given the facts read
inside the same unit of work that will write it. The service layer is
responsible for reading those facts and writing the row atomically; the
partial unique indexes on ``appointments`` back the decision up when two
writers race on different nodes.
"""

from dataclasses import dataclass
from datetime import date, time
from uuid import UUID

from clinic_scheduler.scheduling.assignment import DoctorAssignment, assigned_doctor
from clinic_scheduler.scheduling.errors import ConflictReason
from clinic_scheduler.scheduling.holidays import Holiday


@dataclass(frozen=True)
class ReservationRequest:
    assignment: DoctorAssignment
    patient_id: UUID
    date: date
    time: time

    @property
    def doctor_id(self) -> UUID | None:
        return assigned_doctor(self.assignment)


@dataclass(frozen=True)
class ReservationFacts:
    """What the store said about the requested slot at commit time."""

    today: date
    blocking_holiday: Holiday | None = None
    offered: bool = True
    slot_taken: bool = False
    patient_booked_that_day: bool = False


@dataclass(frozen=True)
class Ok:
    request: ReservationRequest


@dataclass(frozen=True)
class Conflict:
    reason: ConflictReason
    holiday: Holiday | None = None


def evaluate(request: ReservationRequest, facts: ReservationFacts) -> Ok | Conflict:
    """
    Run the guard checks in order and return the first failure.

    Order: holiday, past date, outside the doctor's schedule, slot taken,
    patient already booked that day.
    """
    if facts.blocking_holiday is not None:
        return Conflict(ConflictReason.HOLIDAY, holiday=facts.blocking_holiday)
    if request.date < facts.today:
        return Conflict(ConflictReason.PAST_DATE)
    if not facts.offered:
        return Conflict(ConflictReason.OUTSIDE_SCHEDULE)
    if facts.slot_taken:
        return Conflict(ConflictReason.SLOT_TAKEN)
    if facts.patient_booked_that_day:
        return Conflict(ConflictReason.PATIENT_DOUBLE_BOOKED)
    return Ok(request)


def lock_key(doctor_id: UUID | None, day: date, at: time) -> str:
    """Serialization key for a (doctor, date, time) reservation."""
    doctor = str(doctor_id) if doctor_id is not None else "any"
    return f"slot-lock:{doctor}:{day.isoformat()}:{at.strftime('%H:%M')}"
