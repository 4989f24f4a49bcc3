"""Audit trail for changes to an owner's schedule.

Audit records are fire-and-forget: a failing sink is logged and never
surfaces as the error of the operation that produced the record.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from agenda.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

REDACTED = '[REDACTED]'
SECRET_FIELDS = {'password', 'password_hash', 'two_factor_secret', 'backup_codes'}
NAME_FIELDS = {'client_name', 'name', 'notes'}
EMAIL_FIELDS = {'email', 'client_email'}
PHONE_FIELDS = {'phone', 'client_phone'}


@dataclass
class AuditEvent:
    actor: int
    action: str
    resource: str
    resource_id: str | None
    timestamp: datetime
    details: dict = field(default_factory=dict)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


def mask_email(value: str) -> str:
    return re.sub(r'^(.{2}).*(@.*)$', r'\1***\2', value)


def mask_phone(value: str) -> str:
    return re.sub(r'^(\d{2}).*(\d{4})$', r'\1****\2', re.sub(r'\D', '', value))


def _to_json(value):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json(item) for item in value]
    return value


def redact(data: dict) -> dict:
    """Copy ``data`` with PII masked and values made JSON-safe."""
    redacted = {}
    for key, value in data.items():
        if isinstance(value, dict):
            redacted[key] = redact(value)
        elif value is None or value == '':
            redacted[key] = value
        elif key in SECRET_FIELDS or key in NAME_FIELDS:
            redacted[key] = REDACTED
        elif key in EMAIL_FIELDS:
            redacted[key] = mask_email(str(value))
        elif key in PHONE_FIELDS:
            redacted[key] = mask_phone(str(value))
        else:
            redacted[key] = _to_json(value)
    return redacted


def emit_audit(sink: AuditSink | None, event: AuditEvent) -> None:
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:
        logger.exception(
            'Failed to record audit event %s %s/%s',
            event.action,
            event.resource,
            event.resource_id,
        )


class DatabaseAuditSink:
    """Writes audit events through a session of its own.

    The primary operation has already committed by the time an event is
    recorded, so a failed write here cannot roll it back.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(self, event: AuditEvent) -> None:
        db: Session = self.session_factory()
        try:
            db.add(
                AuditLog(
                    owner_id=event.actor,
                    action=event.action,
                    resource=event.resource,
                    resource_id=event.resource_id,
                    details=_to_json(event.details),
                    created_at=event.timestamp,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
