from fastapi import APIRouter, Depends, HTTPException, status
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
from agenda.scheduling.records import ClientRecord
from agenda.scheduling.schemas import EMAIL_PATTERN, PHONE_PATTERN, sanitize_input

router = APIRouter(tags=['clients'])


class CreateClientRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator('name', 'email', 'phone', 'notes', mode='before')
    @classmethod
    def sanitize_text(cls, value):
        if isinstance(value, str):
            return sanitize_input(value) or None
        return value

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email address.')
        return normalized

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is not None and not PHONE_PATTERN.match(value):
            raise ValueError('Invalid phone number.')
        return value


class ClientResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


def client_details(client: ClientRecord) -> dict:
    return {
        'client_name': client.name,
        'email': client.email,
        'phone': client.phone,
        'notes': client.notes,
    }


def client_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail='Client not found.',
    )


@router.get('', response_model=list[ClientResponse])
def list_clients(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        clients = build_storage(db).list_clients(current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [ClientResponse.model_validate(client) for client in clients]


@router.post('', response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    data: CreateClientRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        client = build_storage(db).create_client(
            current_user.id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            notes=data.notes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    record_audit(audit, clock, current_user.id, 'CREATE', 'clients', client.id, client_details(client))
    return ClientResponse.model_validate(client)


@router.get('/{client_id}', response_model=ClientResponse)
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        client = build_storage(db).find_client(current_user.id, client_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if client is None:
        raise client_not_found()

    record_audit(audit, clock, current_user.id, 'READ', 'clients', client.id, {'client_name': client.name})
    return ClientResponse.model_validate(client)


@router.put('/{client_id}', response_model=ClientResponse)
def update_client(
    client_id: int,
    data: CreateClientRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    storage = build_storage(db)
    try:
        existing = storage.find_client(current_user.id, client_id)
        if existing is None:
            raise client_not_found()
        client = storage.update_client(
            current_user.id,
            client_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            notes=data.notes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    record_audit(
        audit,
        clock,
        current_user.id,
        'UPDATE',
        'clients',
        client_id,
        {'before': client_details(existing), 'after': client_details(client)},
    )
    return ClientResponse.model_validate(client)


@router.delete('/{client_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    try:
        deleted = build_storage(db).soft_delete_client(current_user.id, client_id, clock.now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if not deleted:
        raise client_not_found()

    record_audit(audit, clock, current_user.id, 'DELETE', 'clients', client_id, {'soft_delete': True})
