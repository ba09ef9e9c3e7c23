"""Who may read an appointment and which fields each party may change."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from careguardian.models.appointment import Appointment
from careguardian.models.user import Role


class AppointmentField(str, Enum):
    STATUS = 'status'
    DATE = 'date'
    TIME = 'time'
    REASON = 'reason'
    SYMPTOMS = 'symptoms'
    NOTES = 'notes'
    DOCTOR_NOTES = 'doctor_notes'
    PRESCRIPTION = 'prescription'
    PAYMENT_STATUS = 'payment_status'


RESCHEDULE_FIELDS = frozenset({AppointmentField.DATE, AppointmentField.TIME})

ADMIN_FIELDS = frozenset(AppointmentField)
DOCTOR_OWNER_FIELDS = frozenset({
    AppointmentField.STATUS,
    AppointmentField.DOCTOR_NOTES,
    AppointmentField.PRESCRIPTION,
})
PATIENT_OWNER_FIELDS = frozenset({
    AppointmentField.REASON,
    AppointmentField.SYMPTOMS,
    AppointmentField.NOTES,
    AppointmentField.DATE,
    AppointmentField.TIME,
})


@dataclass(frozen=True)
class Actor:
    """Authenticated caller. ``doctor_id`` is set when the user is a doctor."""
    id: int
    role: Role
    doctor_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def is_patient_owner(actor: Actor, appointment: Appointment) -> bool:
    return actor.role == Role.PATIENT and appointment.patient_id == actor.id


def is_doctor_owner(actor: Actor, appointment: Appointment) -> bool:
    return (
        actor.role == Role.DOCTOR
        and actor.doctor_id is not None
        and appointment.doctor_id == actor.doctor_id
    )


def can_access(actor: Actor, appointment: Appointment) -> bool:
    return actor.is_admin or is_patient_owner(actor, appointment) or is_doctor_owner(actor, appointment)


def allowed_fields(role: Role, patient_owner: bool, doctor_owner: bool) -> frozenset[AppointmentField]:
    if role == Role.ADMIN:
        return ADMIN_FIELDS
    if doctor_owner:
        return DOCTOR_OWNER_FIELDS
    if patient_owner:
        return PATIENT_OWNER_FIELDS
    return frozenset()


def allowed_fields_for(actor: Actor, appointment: Appointment) -> frozenset[AppointmentField]:
    return allowed_fields(
        actor.role,
        is_patient_owner(actor, appointment),
        is_doctor_owner(actor, appointment),
    )


def filter_patch(patch: Mapping, allowed: frozenset[AppointmentField]) -> dict[AppointmentField, object]:
    """Keep only the entries of ``patch`` the actor may set; others are dropped."""
    filtered: dict[AppointmentField, object] = {}
    for key, value in patch.items():
        try:
            field = AppointmentField(key)
        except ValueError:
            continue
        if field in allowed:
            filtered[field] = value
    return filtered
