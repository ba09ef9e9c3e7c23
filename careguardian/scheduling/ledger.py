"""Storage queries over the appointments table."""

from datetime import date

from sqlalchemy import or_
from sqlalchemy.orm import Session

from careguardian.models.appointment import RELEASED_STATUSES, TERMINAL_STATUSES, Appointment

LIST_SCOPES = ('all', 'upcoming', 'past')


def booked_times(db: Session, doctor_id: int, slot_date: date, exclude_id: int | None = None) -> set[str]:
    """Slot times held by live appointments for a doctor on one date."""
    query = db.query(Appointment.time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == slot_date,
        Appointment.status.notin_(RELEASED_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)

    return {booked_time for (booked_time,) in query.all()}


def get_appointment(db: Session, appointment_id: int) -> Appointment | None:
    return db.query(Appointment).filter(Appointment.id == appointment_id).first()


def find_by_idempotency_key(db: Session, patient_id: int, idempotency_key: str) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.patient_id == patient_id,
        Appointment.idempotency_key == idempotency_key,
    ).first()


def list_appointments(
    db: Session,
    *,
    patient_id: int | None = None,
    doctor_id: int | None = None,
    scope: str = 'all',
    today: date | None = None,
) -> list[Appointment]:
    """List appointments, optionally narrowed to a patient or doctor.

    ``upcoming`` holds future-dated appointments that are still open, and
    ``past`` holds everything else.
    """
    if scope not in LIST_SCOPES:
        raise ValueError(f'Unknown scope {scope!r}.')

    query = db.query(Appointment)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)

    today = today or date.today()
    if scope == 'upcoming':
        return query.filter(
            Appointment.date >= today,
            Appointment.status.notin_(TERMINAL_STATUSES),
        ).order_by(Appointment.date.asc(), Appointment.time.asc()).all()

    if scope == 'past':
        return query.filter(
            or_(Appointment.date < today, Appointment.status.in_(TERMINAL_STATUSES)),
        ).order_by(Appointment.date.desc(), Appointment.time.desc()).all()

    return query.order_by(Appointment.date.desc(), Appointment.time.asc()).all()
