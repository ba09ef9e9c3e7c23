"""Doctor model definitions."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from careguardian.database import Base


class Doctor(Base):
    """Directory entry for a doctor, including the weekly availability pattern.

    ``available_days`` holds weekday numbers (0=Sunday..6=Saturday) and
    ``available_time_ranges`` holds ``"HH:MM-HH:MM"`` strings. Leaving either
    empty falls back to the default business-hours schedule.
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    specialty = Column(String)
    available_days = Column(JSON, default=list)
    available_time_ranges = Column(JSON, default=list)
    consulting_fee = Column(Integer)
