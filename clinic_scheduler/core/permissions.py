"""Who may do what to an appointment."""

from uuid import UUID

from clinic_scheduler.core.exceptions import ForbiddenException
from clinic_scheduler.core.security import Identity, Role
from clinic_scheduler.schemas.appointments import AppointmentResponse


def is_owner(identity: Identity, appointment: AppointmentResponse) -> bool:
    return identity.is_patient and appointment.patient_id == identity.user_id


def is_assigned_doctor(identity: Identity, appointment: AppointmentResponse) -> bool:
    return identity.is_doctor and appointment.doctor_id == identity.user_id


def resolve_patient(identity: Identity, patient_id: UUID | None) -> UUID:
    """
    Patient an appointment is created for.

    Patients book for themselves; staff book on behalf of a named patient.

    Raises:
        ForbiddenException: If the caller may not book for that patient
    """
    if identity.is_patient:
        if patient_id is not None and patient_id != identity.user_id:
            raise ForbiddenException("Patients can only book appointments for themselves")
        return identity.user_id
    if identity.is_staff:
        if patient_id is None:
            raise ForbiddenException("patient_id is required when booking on behalf of a patient")
        return patient_id
    raise ForbiddenException("Only patients and clinic staff can book appointments")


def ensure_can_view(identity: Identity, appointment: AppointmentResponse) -> None:
    if identity.is_staff or is_owner(identity, appointment) or is_assigned_doctor(identity, appointment):
        return
    raise ForbiddenException("Not authorized to view this appointment")


def ensure_staff(identity: Identity) -> None:
    if not identity.is_staff:
        raise ForbiddenException("Only clinic staff can perform this action")


def ensure_admin(identity: Identity) -> None:
    if identity.role != Role.ADMIN:
        raise ForbiddenException("Only administrators can perform this action")


def ensure_can_confirm(identity: Identity, appointment: AppointmentResponse) -> None:
    if identity.is_staff or is_assigned_doctor(identity, appointment):
        return
    raise ForbiddenException("Only the assigned doctor or clinic staff can confirm")


def ensure_can_modify(identity: Identity, appointment: AppointmentResponse) -> None:
    """Reschedule and cancel: the patient, the assigned doctor, or staff."""
    if identity.is_staff or is_owner(identity, appointment) or is_assigned_doctor(identity, appointment):
        return
    raise ForbiddenException("Not authorized to modify this appointment")


def ensure_assigned_doctor(identity: Identity, appointment: AppointmentResponse) -> None:
    if not is_assigned_doctor(identity, appointment):
        raise ForbiddenException("Only the assigned doctor can perform clinical actions")


def ensure_can_edit_profile(identity: Identity, doctor_id: UUID) -> None:
    if identity.role == Role.ADMIN or (identity.is_doctor and identity.user_id == doctor_id):
        return
    raise ForbiddenException("Only the doctor or an administrator can change availability")
