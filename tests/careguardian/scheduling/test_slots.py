from datetime import date

from careguardian.models.appointment import Appointment
from careguardian.scheduling import ledger
from careguardian.scheduling.slots import free_slots, subtract_booked

MONDAY = date(2025, 6, 2)


def _book(db, doctor_id: int, slot_time: str, status: str = 'pending', patient_id: int = 1) -> Appointment:
    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        date=MONDAY,
        time=slot_time,
        status=status,
    )
    db.add(appointment)
    db.commit()
    return appointment


def test_subtract_booked_keeps_candidate_order() -> None:
    assert subtract_booked(['09:00', '09:30', '10:00'], {'09:30'}) == ['09:00', '10:00']


def test_subtract_booked_removes_duplicates_from_overlapping_ranges() -> None:
    assert subtract_booked(['13:00', '13:30', '09:00', '13:30'], set()) == ['13:00', '13:30', '09:00']


def test_free_slots_for_missing_doctor_is_empty(appointment_db) -> None:
    assert free_slots(appointment_db, None, MONDAY) == []


def test_free_slots_hides_live_bookings_only(appointment_db, make_doctor) -> None:
    doctor = make_doctor(available_days=[1], available_time_ranges=['09:00-10:30'])
    _book(appointment_db, doctor.id, '09:30', patient_id=1)
    _book(appointment_db, doctor.id, '10:00', status='cancelled', patient_id=2)
    _book(appointment_db, doctor.id, '09:00', status='rejected', patient_id=3)

    assert free_slots(appointment_db, doctor, MONDAY) == ['09:00', '10:00']
    assert ledger.booked_times(appointment_db, doctor.id, MONDAY) == {'09:30'}


def test_free_slots_ignores_other_doctors_and_dates(appointment_db, make_doctor) -> None:
    doctor = make_doctor(available_time_ranges=['09:00-10:00'])
    other = make_doctor(available_time_ranges=['09:00-10:00'])
    _book(appointment_db, other.id, '09:00')

    assert free_slots(appointment_db, doctor, MONDAY) == ['09:00', '09:30']


def test_free_slots_on_day_off_is_empty(appointment_db, make_doctor) -> None:
    doctor = make_doctor(available_days=[2, 4], available_time_ranges=['09:00-10:00'])

    assert free_slots(appointment_db, doctor, MONDAY) == []
