from functools import lru_cache

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.database import SessionLocal, ensure_appointment_schema, ensure_client_schema
from agenda.scheduling.audit import AuditEvent, AuditSink, DatabaseAuditSink, emit_audit, redact
from agenda.scheduling.clock import Clock, SystemClock
from agenda.scheduling.codec import FieldCodec, build_codec
from agenda.scheduling.errors import SchedulingError
from agenda.scheduling.storage import SqlAlchemyStorage


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
        ensure_client_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@lru_cache(maxsize=1)
def get_codec() -> FieldCodec:
    return build_codec()


def get_clock() -> Clock:
    return SystemClock()


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink(SessionLocal)


def build_storage(db: Session) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(db, get_codec())


def to_http_exception(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_payload())


def record_audit(
    audit: AuditSink | None,
    clock: Clock,
    owner_id: int,
    action: str,
    resource: str,
    resource_id: int | None,
    details: dict | None = None,
) -> None:
    emit_audit(
        audit,
        AuditEvent(
            actor=owner_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            timestamp=clock.now(),
            details=redact(details or {}),
        ),
    )
