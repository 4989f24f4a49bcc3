"""Client model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from agenda.database import Base


class Client(Base):
    """Represents a customer registered by an owner."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)  # encrypted
    notes = Column(String)  # encrypted
    created_at = Column(DateTime, default=datetime.now)
    deleted_at = Column(DateTime)
