"""Audit log model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String
from agenda.database import Base


class AuditLog(Base):
    """Append-only record of an action taken on an owner's data."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, index=True)
    action = Column(String, nullable=False)
    resource = Column(String, nullable=False)
    resource_id = Column(String, index=True)
    details = Column(JSON)
    created_at = Column(DateTime, default=datetime.now, index=True)
