"""Appointment priority and queue ordering."""

from collections.abc import Iterable, Mapping
from datetime import date, time
from enum import Enum
from functools import cmp_to_key
from typing import Any, TypeVar

T = TypeVar("T", bound=Mapping[str, Any])


class AppointmentPriority(str, Enum):
    """Appointment priority enumeration."""

    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_RANK = {
    AppointmentPriority.URGENT: 0,
    AppointmentPriority.HIGH: 1,
    AppointmentPriority.NORMAL: 2,
}


def queue_key(priority: AppointmentPriority | str, day: date, at: time) -> tuple[int, date, time]:
    """Sort key: urgent first, then high, then normal; ties by earliest date and time."""
    return PRIORITY_RANK[AppointmentPriority(priority)], day, at


def compare(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
    """Three-way comparator over appointment mappings."""
    key_a = queue_key(a["priority"], a["date"], a["time"])
    key_b = queue_key(b["priority"], b["date"], b["time"])
    return (key_a > key_b) - (key_a < key_b)


def order_queue(appointments: Iterable[T]) -> list[T]:
    """Stable priority ordering for queue views."""
    return sorted(appointments, key=cmp_to_key(compare))
