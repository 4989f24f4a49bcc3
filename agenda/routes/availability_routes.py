from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user, get_db
from agenda.models.user import User
from agenda.routes.common import (
    build_storage,
    ensure_database_ready,
    get_audit_sink,
    get_clock,
    to_http_exception,
)
from agenda.scheduling.audit import AuditSink
from agenda.scheduling.availability import AvailabilityResolver
from agenda.scheduling.clock import Clock
from agenda.scheduling.errors import SchedulingError

router = APIRouter(tags=['availability'])


@router.get('/slots')
def list_available_slots(
    day: date = Query(..., alias='date'),
    service_id: int | None = Query(default=None),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    resolver = AvailabilityResolver(build_storage(db), clock, audit)
    try:
        result = resolver.resolve(current_user.id, day, service_id=service_id, exclude_id=exclude_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return result.to_payload()
