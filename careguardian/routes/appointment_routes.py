import datetime as dt
from datetime import date, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careguardian.auth.dependencies import get_current_actor, get_db
from careguardian.core.exceptions import Forbidden, SchedulingError
from careguardian.database import ensure_scheduling_schema
from careguardian.models.appointment import AppointmentStatus
from careguardian.models.user import Role
from careguardian.scheduling import directory, slots
from careguardian.scheduling.availability import normalize_slot_time
from careguardian.scheduling.lifecycle import AppointmentLifecycleManager
from careguardian.scheduling.notifications import BackgroundNotifier
from careguardian.scheduling.policy import Actor

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_TEXT_LENGTH = 600
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'

# Text fields a caller may clear by sending null.
CLEARABLE_FIELDS = {'reason', 'symptoms', 'notes', 'doctor_notes', 'prescription'}


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_TEXT_LENGTH:
        raise ValueError(f'Text fields must be {MAX_APPOINTMENT_TEXT_LENGTH} characters or fewer.')

    return normalized


def _normalize_time(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return normalize_slot_time(value)
    except ValueError as exc:
        raise ValueError('Time must be formatted as HH:MM.') from exc


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    time: str
    reason: str | None = None
    symptoms: str | None = None
    notes: str | None = None
    patient_id: int | None = None
    idempotency_key: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _normalize_time(value)

    @field_validator('reason', 'symptoms', 'notes')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)

    @field_validator('idempotency_key')
    @classmethod
    def validate_idempotency_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class UpdateAppointmentRequest(BaseModel):
    status: AppointmentStatus | None = None
    date: dt.date | None = None
    time: str | None = None
    reason: str | None = None
    symptoms: str | None = None
    notes: str | None = None
    doctor_notes: str | None = None
    prescription: str | None = None
    payment_status: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        return _normalize_time(value)

    @field_validator('reason', 'symptoms', 'notes', 'doctor_notes', 'prescription')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)

    def to_patch(self) -> dict:
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in CLEARABLE_FIELDS
        }


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: date
    time: str
    status: str
    reason: str | None = None
    symptoms: str | None = None
    notes: str | None = None
    doctor_notes: str | None = None
    prescription: str | None = None
    cancellation_reason: str | None = None
    payment_status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable(db: Session) -> HTTPException:
    db.rollback()
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def get_manager(db: Session, background_tasks: BackgroundTasks | None) -> AppointmentLifecycleManager:
    notifier = BackgroundNotifier(background_tasks) if background_tasks is not None else None
    return AppointmentLifecycleManager(db, notifier=notifier)


def resolve_patient_id(data: CreateAppointmentRequest, actor: Actor) -> int:
    if actor.role == Role.PATIENT:
        if data.patient_id is not None and data.patient_id != actor.id:
            raise Forbidden('Patients can only book appointments for themselves.')
        return actor.id

    if actor.is_admin:
        if data.patient_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='patient_id is required when booking on behalf of a patient.',
            )
        return data.patient_id

    raise Forbidden('Doctors cannot book appointments.')


@router.get('/slots/{doctor_id}/{slot_date}', response_model=list[str])
def list_free_slots(
    doctor_id: int,
    slot_date: date,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    ensure_database_ready()

    try:
        doctor = directory.get_doctor(db, doctor_id)
        return slots.free_slots(db, doctor, slot_date)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    scope: str = Query(default='all', pattern='^(all|upcoming|past)$'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_manager(db, None).list_for_actor(actor, scope=scope)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        patient_id = resolve_patient_id(data, actor)
        return get_manager(db, background_tasks).create(
            patient_id=patient_id,
            doctor_id=data.doctor_id,
            slot_date=data.date,
            slot_time=data.time,
            reason=data.reason,
            notes=data.notes,
            symptoms=data.symptoms,
            idempotency_key=data.idempotency_key,
        )
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_manager(db, None).get(appointment_id, actor)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_manager(db, None).update(appointment_id, actor, data.to_patch())
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    data: CancelAppointmentRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reason = data.reason if data is not None else None
        return get_manager(db, background_tasks).cancel(appointment_id, actor, reason=reason)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        get_manager(db, None).delete(appointment_id, actor)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
