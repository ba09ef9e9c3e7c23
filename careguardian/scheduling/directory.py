from sqlalchemy.orm import Session

from careguardian.core.exceptions import NotFound
from careguardian.models.doctor import Doctor
from careguardian.models.user import User


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise NotFound('Doctor not found.')
    return doctor


def get_doctor_for_user(db: Session, user_id: int) -> Doctor | None:
    return db.query(Doctor).filter(Doctor.user_id == user_id).first()


def get_patient(db: Session, patient_id: int) -> User:
    patient = db.query(User).filter(User.id == patient_id).first()
    if patient is None:
        raise NotFound('Patient not found.')
    return patient
