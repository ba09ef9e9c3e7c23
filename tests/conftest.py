import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from careguardian.database import Base, ensure_scheduling_schema  # noqa: E402
from careguardian.models.appointment import Appointment  # noqa: E402
from careguardian.models.doctor import Doctor  # noqa: E402
from careguardian.models.user import Role, User  # noqa: E402
from careguardian.scheduling.policy import Actor  # noqa: E402


@pytest.fixture
def scheduling_engine():
    engine = create_engine('sqlite:///:memory:')
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Doctor.__table__, Appointment.__table__])
    ensure_scheduling_schema(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Doctor.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def appointment_db(scheduling_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=scheduling_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(appointment_db):
    def _make_user(role: Role = Role.PATIENT, email: str | None = None) -> User:
        user = User(
            email=email or f'{role.value}-{appointment_db.query(User).count() + 1}@example.com',
            hashed_password='',
            role=role.value,
        )
        appointment_db.add(user)
        appointment_db.commit()
        appointment_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(appointment_db):
    def _make_doctor(available_days=None, available_time_ranges=None, user_id=None, doctor_id=None) -> Doctor:
        doctor = Doctor(
            id=doctor_id,
            user_id=user_id,
            name='Dr. Rivera',
            specialty='Cardiology',
            available_days=available_days or [],
            available_time_ranges=available_time_ranges or [],
            consulting_fee=500,
        )
        appointment_db.add(doctor)
        appointment_db.commit()
        appointment_db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(id=900, role=Role.ADMIN)


@pytest.fixture
def patients(appointment_db) -> list[User]:
    users = [
        User(id=patient_id, email=f'patient-{patient_id}@example.com', hashed_password='', role=Role.PATIENT.value)
        for patient_id in (1, 2, 3)
    ]
    appointment_db.add_all(users)
    appointment_db.commit()
    return users
