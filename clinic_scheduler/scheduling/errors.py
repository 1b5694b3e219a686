"""Typed error values returned by scheduling operations.

Expected business outcomes (conflicts, gate denials, bad input) are returned to
the caller as instances of these classes rather than raised. The HTTP layer
turns them into responses through ``unwrap``.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, ClassVar, TypeVar

from clinic_scheduler.core.exceptions import SchedulingException

T = TypeVar("T")


class ConflictReason(str, Enum):
    """Why the slot conflict guard refused a reservation."""

    HOLIDAY = "holiday"
    PAST_DATE = "past_date"
    OUTSIDE_SCHEDULE = "outside_schedule"
    SLOT_TAKEN = "slot_taken"
    PATIENT_DOUBLE_BOOKED = "patient_double_booked"


def _jsonable(value: Any) -> Any:
    if isinstance(value, date | datetime | time):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class SchedulingError:
    """Base class for scheduling error values."""

    code: ClassVar[str] = "scheduling_error"
    status_code: ClassVar[int] = 400
    retryable: ClassVar[bool] = False

    message: str

    @property
    def details(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("message")
        return _jsonable(data)

    def to_payload(self) -> dict[str, Any]:
        """Serialize for an API response body."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class ValidationError(SchedulingError):
    """A required field is missing or invalid."""

    code: ClassVar[str] = "validation_error"
    status_code: ClassVar[int] = 422

    field: str | None = None


@dataclass(frozen=True)
class PastDateError(SchedulingError):
    """The requested date is earlier than today in the clinic timezone."""

    code: ClassVar[str] = "past_date"
    status_code: ClassVar[int] = 422

    requested_date: date | None = None
    today: date | None = None


@dataclass(frozen=True)
class HolidayBlockedError(SchedulingError):
    """The requested date falls in a blocking holiday."""

    code: ClassVar[str] = "holiday_blocked"
    status_code: ClassVar[int] = 409

    holiday_name: str = ""
    requested_date: date | None = None
    alternative_dates: list[date] = field(default_factory=list)


@dataclass(frozen=True)
class SlotConflictError(SchedulingError):
    """The slot is held by someone else, or the patient already booked that day."""

    code: ClassVar[str] = "slot_conflict"
    status_code: ClassVar[int] = 409

    reason: ConflictReason = ConflictReason.SLOT_TAKEN


@dataclass(frozen=True)
class InvalidStateTransitionError(SchedulingError):
    """The appointment's status does not allow the requested action."""

    code: ClassVar[str] = "invalid_state_transition"
    status_code: ClassVar[int] = 409

    current_status: str = ""
    action: str = ""


@dataclass(frozen=True)
class TimeGateDeniedError(SchedulingError):
    """A clinical action was attempted before the appointment started."""

    code: ClassVar[str] = "time_gate_denied"
    status_code: ClassVar[int] = 403

    scheduled_at: datetime | None = None
    earliest_allowed_at: datetime | None = None


@dataclass(frozen=True)
class AppointmentNotFoundError(SchedulingError):
    code: ClassVar[str] = "appointment_not_found"
    status_code: ClassVar[int] = 404

    appointment_id: str = ""


@dataclass(frozen=True)
class StoreUnavailableError(SchedulingError):
    """Transient store failure. Safe to retry, nothing was written."""

    code: ClassVar[str] = "store_unavailable"
    status_code: ClassVar[int] = 503
    retryable: ClassVar[bool] = True


def unwrap(result: T | SchedulingError) -> T:
    """
    Return the value of a scheduling result, or raise its error for the HTTP layer.

    Raises:
        SchedulingException: If the result is an error value
    """
    if isinstance(result, SchedulingError):
        raise SchedulingException(result)
    return result
