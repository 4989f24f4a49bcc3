"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from agenda.database import Base


class Appointment(Base):
    """Represents a booked appointment.

    Freeform client contact fields and notes hold ciphertext; they are
    decoded by the storage adapter, never read directly.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"))
    service_id = Column(Integer, ForeignKey("services.id"))
    client_name = Column(String)
    client_email = Column(String)
    client_phone = Column(String)
    service_name = Column(String, nullable=False)
    service_price = Column(Numeric(10, 2))
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="SCHEDULED")
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)
    deleted_at = Column(DateTime)
