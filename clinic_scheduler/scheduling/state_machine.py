"""Appointment lifecycle: statuses, actions and which transitions are legal."""

from enum import Enum

from clinic_scheduler.scheduling.assignment import Assigned, DoctorAssignment


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentAction(str, Enum):
    """Mutations that can be applied to an existing appointment."""

    ASSIGN = "assign"
    CONFIRM = "confirm"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    COMPLETE = "complete"
    REPRIORITIZE = "reprioritize"


ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}
)
TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

# action -> (allowed source statuses, resulting status); None keeps the status
TRANSITIONS: dict[AppointmentAction, tuple[frozenset[AppointmentStatus], AppointmentStatus | None]] = {
    AppointmentAction.ASSIGN: (
        frozenset({AppointmentStatus.PENDING}),
        AppointmentStatus.SCHEDULED,
    ),
    AppointmentAction.CONFIRM: (
        frozenset({AppointmentStatus.SCHEDULED}),
        AppointmentStatus.CONFIRMED,
    ),
    AppointmentAction.RESCHEDULE: (
        frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}),
        AppointmentStatus.SCHEDULED,
    ),
    AppointmentAction.CANCEL: (ACTIVE_STATUSES, AppointmentStatus.CANCELLED),
    AppointmentAction.COMPLETE: (
        frozenset({AppointmentStatus.CONFIRMED}),
        AppointmentStatus.COMPLETED,
    ),
    AppointmentAction.REPRIORITIZE: (ACTIVE_STATUSES, None),
}


def initial_status(assignment: DoctorAssignment) -> AppointmentStatus:
    """Requests for "any available doctor" wait for staff assignment."""
    if isinstance(assignment, Assigned):
        return AppointmentStatus.SCHEDULED
    return AppointmentStatus.PENDING


def can_apply(status: AppointmentStatus | str, action: AppointmentAction) -> bool:
    allowed, _ = TRANSITIONS[action]
    return AppointmentStatus(status) in allowed


def next_status(status: AppointmentStatus | str, action: AppointmentAction) -> AppointmentStatus:
    """
    Status after applying ``action``.

    Raises:
        ValueError: If the transition is illegal; check ``can_apply`` first
    """
    current = AppointmentStatus(status)
    allowed, target = TRANSITIONS[action]
    if current not in allowed:
        raise ValueError(f"Cannot {action.value} an appointment that is {current.value}")
    return target or current
