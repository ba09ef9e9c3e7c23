"""Appointment model definitions."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from careguardian.database import Base, LIVE_SLOT_INDEX_NAME, LIVE_SLOT_INDEX_WHERE


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    REJECTED = 'rejected'


# Statuses that release the slot back to the pool.
RELEASED_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.REJECTED.value)

TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.REJECTED.value,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """Represents a booked appointment."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String)
    symptoms = Column(String)
    notes = Column(String)
    doctor_notes = Column(String)
    prescription = Column(String)
    cancellation_reason = Column(String)
    payment_status = Column(String, nullable=False, default='pending')
    idempotency_key = Column(String)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index(
            LIVE_SLOT_INDEX_NAME,
            'doctor_id',
            'date',
            'time',
            unique=True,
            postgresql_where=text(LIVE_SLOT_INDEX_WHERE),
            sqlite_where=text(LIVE_SLOT_INDEX_WHERE),
        ),
        Index('uq_appointments_patient_idempotency_key', 'patient_id', 'idempotency_key', unique=True),
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
    )

    @property
    def is_live(self) -> bool:
        return self.status not in RELEASED_STATUSES
