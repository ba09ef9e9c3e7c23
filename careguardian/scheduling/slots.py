"""Free slots: the doctor's pattern minus what is already booked."""

from datetime import date

from sqlalchemy.orm import Session

from careguardian.models.doctor import Doctor
from careguardian.scheduling import ledger
from careguardian.scheduling.availability import resolve_slots


def pattern_slots(doctor: Doctor, slot_date: date) -> list[str]:
    return resolve_slots(doctor.available_days, doctor.available_time_ranges, slot_date)


def subtract_booked(candidates: list[str], booked: set[str]) -> list[str]:
    """Drop booked and repeated slots while keeping the candidates' order."""
    free: list[str] = []
    seen: set[str] = set()
    for slot in candidates:
        if slot in booked or slot in seen:
            continue
        seen.add(slot)
        free.append(slot)
    return free


def free_slots(db: Session, doctor: Doctor | None, slot_date: date, exclude_id: int | None = None) -> list[str]:
    if doctor is None:
        return []

    candidates = pattern_slots(doctor, slot_date)
    if not candidates:
        return []

    booked = ledger.booked_times(db, doctor.id, slot_date, exclude_id=exclude_id)
    return subtract_booked(candidates, booked)
