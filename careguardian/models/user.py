"""User model definitions."""

from enum import Enum

from sqlalchemy import Column, Integer, String
from careguardian.database import Base


class Role(str, Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'
    ADMIN = 'admin'


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    full_name = Column(String)
    role = Column(String, nullable=False, default=Role.PATIENT.value)
