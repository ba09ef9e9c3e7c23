import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from careguardian.auth import jwt_handler
from careguardian.database import SessionLocal
from careguardian.models.user import Role, User
from careguardian.scheduling.directory import get_doctor_for_user
from careguardian.scheduling.policy import Actor

security = HTTPBearer()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_actor(token: str, db: Session) -> Actor:
    """Map a bearer token to the acting user.

    The role comes from the ``users`` row, not from the token, so a role change
    takes effect on the next request.
    """
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    try:
        role = Role(user.role)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Unknown user role") from exc

    doctor_id = None
    if role == Role.DOCTOR:
        doctor = get_doctor_for_user(db, user.id)
        doctor_id = doctor.id if doctor else None

    return Actor(id=user.id, role=role, doctor_id=doctor_id)


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Actor:
    return resolve_actor(credentials.credentials, db)
