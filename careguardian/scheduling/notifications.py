"""Fire-and-forget hooks run after an appointment is booked or cancelled.

Delivery (email, SMS, push) lives outside this service. The default notifier
only logs; ``BackgroundNotifier`` defers a notifier until the response is sent.
"""

import logging
from typing import Protocol

from fastapi import BackgroundTasks

from careguardian.models.appointment import Appointment

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = 'appointment.created'
APPOINTMENT_CANCELLED = 'appointment.cancelled'


class Notifier(Protocol):
    def notify(self, event: str, payload: dict) -> None:
        ...


class LoggingNotifier:
    def notify(self, event: str, payload: dict) -> None:
        logger.info('%s for appointment %s (doctor=%s, date=%s, time=%s)',
                    event, payload.get('id'), payload.get('doctor_id'),
                    payload.get('date'), payload.get('time'))


class BackgroundNotifier:
    def __init__(self, background_tasks: BackgroundTasks, delegate: Notifier | None = None):
        self.background_tasks = background_tasks
        self.delegate = delegate or LoggingNotifier()

    def notify(self, event: str, payload: dict) -> None:
        self.background_tasks.add_task(self.delegate.notify, event, payload)


def appointment_payload(appointment: Appointment) -> dict:
    return {
        'id': appointment.id,
        'patient_id': appointment.patient_id,
        'doctor_id': appointment.doctor_id,
        'date': appointment.date.isoformat() if appointment.date else None,
        'time': appointment.time,
        'status': appointment.status,
        'cancellation_reason': appointment.cancellation_reason,
    }
