"""Availability profile model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Time
from agenda.database import Base


class Profile(Base):
    """Working days, working hours and booking rules for one owner."""
    __tablename__ = "availability_profiles"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    working_days = Column(JSON, nullable=False)  # Sunday=0
    work_start = Column(Time, nullable=False)
    work_end = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False)
    booking_lead_hours = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
