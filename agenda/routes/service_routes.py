from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user, get_db
from agenda.models.user import User
from agenda.routes.common import (
    build_storage,
    ensure_database_ready,
    get_audit_sink,
    get_clock,
    record_audit,
    to_http_exception,
)
from agenda.scheduling.audit import AuditSink
from agenda.scheduling.clock import Clock
from agenda.scheduling.errors import SchedulingError
from agenda.scheduling.records import ServiceRecord
from agenda.scheduling.schemas import sanitize_input

router = APIRouter(tags=['services'])


class CreateServiceRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    duration_minutes: int = Field(ge=15, le=480)
    price: Decimal | None = Field(default=None, ge=0, le=10000)

    @field_validator('name', mode='before')
    @classmethod
    def sanitize_name(cls, value):
        if isinstance(value, str):
            return sanitize_input(value)
        return value


class UpdateServiceRequest(CreateServiceRequest):
    is_active: bool = True


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price: Decimal | None = None
    is_active: bool

    class Config:
        from_attributes = True


class DeleteServiceResponse(BaseModel):
    id: int
    outcome: str


def service_details(service: ServiceRecord) -> dict:
    return {
        'service_name': service.name,
        'duration_minutes': service.duration_minutes,
        'price': service.price,
        'is_active': service.is_active,
    }


def service_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail='Service not found.',
    )


@router.get('', response_model=list[ServiceResponse])
def list_services(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        services = build_storage(db).list_services(current_user.id, include_inactive=include_inactive)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [ServiceResponse.model_validate(service) for service in services]


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        service = build_storage(db).create_service(
            current_user.id,
            name=data.name,
            duration_minutes=data.duration_minutes,
            price=data.price,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    record_audit(audit, clock, current_user.id, 'CREATE', 'services', service.id, service_details(service))
    return ServiceResponse.model_validate(service)


@router.get('/{service_id}', response_model=ServiceResponse)
def get_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        service = build_storage(db).find_service(current_user.id, service_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if service is None:
        raise service_not_found()

    record_audit(audit, clock, current_user.id, 'READ', 'services', service.id, {'service_name': service.name})
    return ServiceResponse.model_validate(service)


@router.put('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: UpdateServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    storage = build_storage(db)
    try:
        existing = storage.find_service(current_user.id, service_id)
        if existing is None:
            raise service_not_found()
        service = storage.update_service(
            current_user.id,
            service_id,
            name=data.name,
            duration_minutes=data.duration_minutes,
            price=data.price,
            is_active=data.is_active,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    record_audit(
        audit,
        clock,
        current_user.id,
        'UPDATE',
        'services',
        service_id,
        {'before': service_details(existing), 'after': service_details(service)},
    )
    return ServiceResponse.model_validate(service)


@router.delete('/{service_id}', response_model=DeleteServiceResponse)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        outcome = build_storage(db).delete_service(current_user.id, service_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if outcome is None:
        raise service_not_found()

    record_audit(audit, clock, current_user.id, 'DELETE', 'services', service_id, {'outcome': outcome})
    return DeleteServiceResponse(id=service_id, outcome=outcome)
