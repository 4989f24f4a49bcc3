"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from agenda.database import Base


class User(Base):
    """Represents a professional account that owns a schedule."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    created_at = Column(DateTime, default=datetime.now)
