import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from careguardian.auth import jwt_handler
from careguardian.auth.dependencies import get_db
from careguardian.database import Base, ensure_scheduling_schema
from careguardian.main import app
from careguardian.models.doctor import Doctor
from careguardian.models.user import Role, User


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    ensure_scheduling_schema(engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = testing_session_local()
    db.add_all([
        User(id=1, email='ana@example.com', hashed_password='', role=Role.PATIENT.value),
        User(id=2, email='ben@example.com', hashed_password='', role=Role.PATIENT.value),
        User(id=3, email='root@example.com', hashed_password='', role=Role.ADMIN.value),
        Doctor(id=5, name='Dr. Rivera', available_days=[1, 3, 5], available_time_ranges=['09:00-10:00']),
    ])
    db.commit()
    db.close()

    def override_get_db():
        session = testing_session_local()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr('careguardian.routes.appointment_routes.ensure_database_ready', lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _auth(user_id: int, role: Role) -> dict:
    token = jwt_handler.create_access_token(subject=str(user_id), role=role.value)
    return {'Authorization': f'Bearer {token}'}


def test_health_check(client) -> None:
    assert client.get('/').json() == {'status': 'CareGuardian Scheduling API Running'}


def test_me_reports_role(client) -> None:
    response = client.get('/auth/me', headers=_auth(3, Role.ADMIN))

    assert response.status_code == 200
    assert response.json() == {'id': 3, 'role': 'admin', 'doctor_id': None}


def test_booking_flow_prevents_double_booking(client) -> None:
    assert client.get('/appointments/slots/5/2025-06-02', headers=_auth(2, Role.PATIENT)).json() == ['09:00', '09:30']

    created = client.post(
        '/appointments',
        json={'doctor_id': 5, 'date': '2025-06-02', 'time': '09:00', 'reason': 'Checkup'},
        headers=_auth(1, Role.PATIENT),
    )
    assert created.status_code == 201
    assert created.json()['status'] == 'pending'

    duplicate = client.post(
        '/appointments',
        json={'doctor_id': 5, 'date': '2025-06-02', 'time': '09:00'},
        headers=_auth(2, Role.PATIENT),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()['detail']['code'] == 'slot_unavailable'

    assert client.get('/appointments/slots/5/2025-06-02', headers=_auth(2, Role.PATIENT)).json() == ['09:30']

    cancelled = client.post(
        f"/appointments/{created.json()['id']}/cancel",
        json={'reason': 'Travelling'},
        headers=_auth(1, Role.PATIENT),
    )
    assert cancelled.status_code == 200
    assert cancelled.json()['cancellation_reason'] == 'Travelling'
    assert client.get('/appointments/slots/5/2025-06-02', headers=_auth(2, Role.PATIENT)).json() == ['09:00', '09:30']


def test_requests_without_token_are_rejected(client) -> None:
    response = client.post('/appointments', json={'doctor_id': 5, 'date': '2025-06-02', 'time': '09:00'})

    assert response.status_code in (401, 403)

    slots_response = client.get('/appointments/slots/5/2025-06-02')

    assert slots_response.status_code in (401, 403)


def test_admin_booking_for_unknown_patient_is_404(client) -> None:
    response = client.post(
        '/appointments',
        json={'doctor_id': 5, 'date': '2025-06-02', 'time': '09:00', 'patient_id': 999},
        headers=_auth(3, Role.ADMIN),
    )

    assert response.status_code == 404
    assert response.json()['detail'] == {'code': 'not_found', 'message': 'Patient not found.'}


def test_invalid_time_is_422(client) -> None:
    response = client.post(
        '/appointments',
        json={'doctor_id': 5, 'date': '2025-06-02', 'time': 'noon'},
        headers=_auth(1, Role.PATIENT),
    )

    assert response.status_code == 422
