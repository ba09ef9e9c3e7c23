"""Create, update, cancel and delete appointments.

Every write that occupies a slot is backed by the partial unique index on
``appointments(doctor_id, date, time)`` over live statuses. The reads done
beforehand only give a clearer error. When two requests race for the same
slot, the loser's commit fails on the index and is reported as
``SlotUnavailable``.
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careguardian.core.exceptions import Forbidden, InvalidField, InvalidState, NoOp, NotFound, SlotUnavailable
from careguardian.models.appointment import TERMINAL_STATUSES, Appointment, AppointmentStatus
from careguardian.models.doctor import Doctor
from careguardian.models.user import Role
from careguardian.scheduling import directory, ledger, slots
from careguardian.scheduling.availability import normalize_slot_time
from careguardian.scheduling.notifications import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_CREATED,
    LoggingNotifier,
    Notifier,
    appointment_payload,
)
from careguardian.scheduling.policy import Actor, AppointmentField, allowed_fields_for, can_access, filter_patch

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS = {
    AppointmentStatus.PENDING.value: {
        AppointmentStatus.SCHEDULED.value,
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.REJECTED.value,
        AppointmentStatus.CANCELLED.value,
    },
    AppointmentStatus.SCHEDULED.value: {
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.REJECTED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.COMPLETED.value,
    },
    AppointmentStatus.CONFIRMED.value: {
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.REJECTED.value,
        AppointmentStatus.CANCELLED.value,
    },
    AppointmentStatus.COMPLETED.value: set(),
    AppointmentStatus.CANCELLED.value: set(),
    AppointmentStatus.REJECTED.value: set(),
}


def default_cancellation_reason(role: Role) -> str:
    return f'Cancelled by {role.value}'


def _coerce_change(field: AppointmentField, value):
    """Convert a patch value to its stored form; raises ``ValueError`` when it cannot."""
    if field == AppointmentField.STATUS:
        try:
            return AppointmentStatus(value).value
        except ValueError:
            raise ValueError(f'{value!r} is not a valid status.') from None
    if field == AppointmentField.DATE:
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError:
                raise ValueError(f'{value!r} is not a valid date.') from None
        raise ValueError('Date must be an ISO date.')
    if field == AppointmentField.TIME:
        if not isinstance(value, str):
            raise ValueError('Time must be formatted as HH:MM.')
        try:
            return normalize_slot_time(value)
        except ValueError:
            raise ValueError(f'{value!r} is not a valid time.') from None
    return value


class AppointmentLifecycleManager:
    """The only writer of appointment rows."""

    def __init__(self, db: Session, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or LoggingNotifier()

    def create(
        self,
        patient_id: int,
        doctor_id: int,
        slot_date: date,
        slot_time: str,
        reason: str | None = None,
        notes: str | None = None,
        symptoms: str | None = None,
        idempotency_key: str | None = None,
    ) -> Appointment:
        if idempotency_key:
            existing = ledger.find_by_idempotency_key(self.db, patient_id, idempotency_key)
            if existing is not None:
                logger.info('Replaying booking %s for idempotency key %r', existing.id, idempotency_key)
                return existing

        slot_time = normalize_slot_time(slot_time)
        directory.get_patient(self.db, patient_id)
        doctor = directory.get_doctor(self.db, doctor_id)
        self._ensure_slot_free(doctor, slot_date, slot_time)

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor.id,
            date=slot_date,
            time=slot_time,
            reason=reason,
            notes=notes,
            symptoms=symptoms,
            status=AppointmentStatus.PENDING.value,
            payment_status='pending',
            idempotency_key=idempotency_key,
        )
        self.db.add(appointment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if idempotency_key:
                existing = ledger.find_by_idempotency_key(self.db, patient_id, idempotency_key)
                if existing is not None:
                    return existing
            self._raise_if_slot_taken(doctor.id, slot_date, slot_time, exc)
            raise

        self.db.refresh(appointment)
        logger.info('Booked appointment %s: doctor=%s date=%s time=%s patient=%s',
                    appointment.id, doctor.id, slot_date, slot_time, patient_id)
        self._notify(APPOINTMENT_CREATED, appointment)
        return appointment

    def get(self, appointment_id: int, actor: Actor) -> Appointment:
        appointment = self._load(appointment_id)
        if not can_access(actor, appointment):
            raise Forbidden('You are not allowed to view this appointment.')
        return appointment

    def list_for_actor(self, actor: Actor, scope: str = 'all', today: date | None = None) -> list[Appointment]:
        if actor.is_admin:
            return ledger.list_appointments(self.db, scope=scope, today=today)
        if actor.role == Role.DOCTOR:
            if actor.doctor_id is None:
                return []
            return ledger.list_appointments(self.db, doctor_id=actor.doctor_id, scope=scope, today=today)
        return ledger.list_appointments(self.db, patient_id=actor.id, scope=scope, today=today)

    def update(self, appointment_id: int, actor: Actor, patch: Mapping) -> Appointment:
        appointment = self._load(appointment_id)
        if not can_access(actor, appointment):
            raise Forbidden('You are not allowed to update this appointment.')

        changes = filter_patch(patch, allowed_fields_for(actor, appointment))
        if not changes:
            raise NoOp()

        try:
            changes = {field: _coerce_change(field, value) for field, value in changes.items()}
        except ValueError as exc:
            raise InvalidField(str(exc)) from exc

        new_date = changes.get(AppointmentField.DATE, appointment.date)
        new_time = changes.get(AppointmentField.TIME, appointment.time)
        rescheduling = (new_date, new_time) != (appointment.date, appointment.time)

        if rescheduling:
            if appointment.status != AppointmentStatus.PENDING.value:
                raise InvalidState('Only pending appointments can be rescheduled.')
            doctor = directory.get_doctor(self.db, appointment.doctor_id)
            self._ensure_slot_free(doctor, new_date, new_time, exclude_id=appointment.id)

        cancelling = False
        new_status = changes.get(AppointmentField.STATUS, appointment.status)
        if new_status != appointment.status:
            if new_status not in STATUS_TRANSITIONS.get(appointment.status, set()):
                raise InvalidState(f'Cannot change status from {appointment.status} to {new_status}.')
            if new_status == AppointmentStatus.CANCELLED.value:
                appointment.cancellation_reason = default_cancellation_reason(actor.role)
                cancelling = True

        for field, value in changes.items():
            setattr(appointment, field.value, value)

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if rescheduling:
                self._raise_if_slot_taken(appointment.doctor_id, new_date, new_time, exc)
            raise

        self.db.refresh(appointment)
        logger.info('Updated appointment %s fields=%s by %s %s',
                    appointment.id, sorted(field.value for field in changes), actor.role.value, actor.id)
        if cancelling:
            self._notify(APPOINTMENT_CANCELLED, appointment)
        return appointment

    def cancel(self, appointment_id: int, actor: Actor, reason: str | None = None) -> Appointment:
        appointment = self._load(appointment_id)
        if not can_access(actor, appointment):
            raise Forbidden('You are not allowed to cancel this appointment.')

        if appointment.status in TERMINAL_STATUSES:
            raise InvalidState(f'Cannot cancel an appointment that is already {appointment.status}.')

        appointment.status = AppointmentStatus.CANCELLED.value
        appointment.cancellation_reason = (reason or '').strip() or default_cancellation_reason(actor.role)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Cancelled appointment %s by %s %s', appointment.id, actor.role.value, actor.id)
        self._notify(APPOINTMENT_CANCELLED, appointment)
        return appointment

    def delete(self, appointment_id: int, actor: Actor) -> None:
        if not actor.is_admin:
            raise Forbidden('Only admins can delete appointments.')

        appointment = self._load(appointment_id)
        self.db.delete(appointment)
        self.db.commit()
        logger.info('Deleted appointment %s by admin %s', appointment_id, actor.id)

    def _load(self, appointment_id: int) -> Appointment:
        appointment = ledger.get_appointment(self.db, appointment_id)
        if appointment is None:
            raise NotFound('Appointment not found.')
        return appointment

    def _ensure_slot_free(self, doctor: Doctor, slot_date: date, slot_time: str, exclude_id: int | None = None) -> None:
        if slot_time not in slots.pattern_slots(doctor, slot_date):
            raise SlotUnavailable('The doctor is not available at this time.')
        if slot_time in ledger.booked_times(self.db, doctor.id, slot_date, exclude_id=exclude_id):
            raise SlotUnavailable()

    def _raise_if_slot_taken(self, doctor_id: int, slot_date: date, slot_time: str, exc: IntegrityError) -> None:
        if slot_time in ledger.booked_times(self.db, doctor_id, slot_date):
            logger.info('Slot %s %s for doctor %s was taken by a concurrent booking', slot_date, slot_time, doctor_id)
            raise SlotUnavailable() from exc

    def _notify(self, event: str, appointment: Appointment) -> None:
        try:
            self.notifier.notify(event, appointment_payload(appointment))
        except Exception:
            logger.exception('Notification hook failed for %s on appointment %s', event, appointment.id)
