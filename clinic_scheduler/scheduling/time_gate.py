"""Time gate for clinical actions tied to an encounter."""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from zoneinfo import ZoneInfo

from clinic_scheduler.scheduling.clock import local_instant


class ClinicalAction(str, Enum):
    COMPLETE = "complete"
    PRESCRIBE = "prescribe"
    MEDICAL_RECORD = "medical_record"


@dataclass(frozen=True)
class Allowed:
    scheduled_at: datetime


@dataclass(frozen=True)
class Denied:
    reason: str
    scheduled_at: datetime
    earliest_allowed_at: datetime


def can_act_now(
    appointment_date: date,
    appointment_time: time,
    now: datetime,
    tz: ZoneInfo,
) -> Allowed | Denied:
    """
    Allow clinical actions from the scheduled start onward, with no upper bound.

    Args:
        appointment_date: Scheduled date (clinic-local)
        appointment_time: Scheduled start time (clinic-local)
        now: Current aware instant
        tz: Clinic timezone

    Returns:
        Allowed, or Denied carrying the instant the action opens
    """
    scheduled_at = local_instant(appointment_date, appointment_time, tz)
    if now < scheduled_at:
        return Denied(
            reason="before_scheduled_start",
            scheduled_at=scheduled_at,
            earliest_allowed_at=scheduled_at,
        )
    return Allowed(scheduled_at=scheduled_at)
