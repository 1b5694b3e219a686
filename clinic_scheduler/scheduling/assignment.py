"""Doctor assignment: who an appointment is bound to, and how "any available" is resolved."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class Assigned:
    """Booked with a specific doctor."""

    doctor_id: UUID


@dataclass(frozen=True)
class Unassigned:
    """Requested for "any available doctor"; staff assign one later."""


DoctorAssignment = Assigned | Unassigned


def assignment_of(doctor_id: UUID | None) -> DoctorAssignment:
    """Lift an optional doctor id from the API or the store into an assignment."""
    return Unassigned() if doctor_id is None else Assigned(doctor_id)


def assigned_doctor(assignment: DoctorAssignment) -> UUID | None:
    """Doctor id for storage and queries, None while unassigned."""
    return assignment.doctor_id if isinstance(assignment, Assigned) else None


class AssignmentStrategy(Protocol):
    name: str

    def choose(self, free_doctors: Sequence[UUID], load: Mapping[UUID, int]) -> UUID | None: ...


class FirstAvailable:
    """Lowest doctor id among those free at the slot."""

    name = "first_available"

    def choose(self, free_doctors: Sequence[UUID], load: Mapping[UUID, int]) -> UUID | None:
        if not free_doctors:
            return None
        return min(free_doctors, key=str)


class LeastLoaded:
    """Doctor with the fewest active appointments that day; ties by id."""

    name = "least_loaded"

    def choose(self, free_doctors: Sequence[UUID], load: Mapping[UUID, int]) -> UUID | None:
        if not free_doctors:
            return None
        return min(free_doctors, key=lambda doctor_id: (load.get(doctor_id, 0), str(doctor_id)))


STRATEGIES: dict[str, AssignmentStrategy] = {
    FirstAvailable.name: FirstAvailable(),
    LeastLoaded.name: LeastLoaded(),
}


def get_strategy(name: str) -> AssignmentStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown assignment strategy: {name}") from None
