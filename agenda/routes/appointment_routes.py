from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel
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
from agenda.scheduling.booking import BookingService
from agenda.scheduling.clock import Clock
from agenda.scheduling.errors import SchedulingError
from agenda.scheduling.lifecycle import StatusLifecycle
from agenda.scheduling.records import AppointmentStatus

router = APIRouter(tags=['appointments'])

STATUS_MESSAGES = {
    AppointmentStatus.SCHEDULED: 'Appointment rescheduled.',
    AppointmentStatus.CONFIRMED: 'Appointment confirmed.',
    AppointmentStatus.COMPLETED: 'Appointment marked as completed.',
    AppointmentStatus.CANCELLED: 'Appointment cancelled.',
    AppointmentStatus.NO_SHOW: 'Appointment marked as no-show.',
}


class AppointmentResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: AppointmentStatus
    service_id: int | None = None
    service_name: str
    service_price: Decimal | None = None
    client_id: int | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def to_response(appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class StatusChangeResponse(BaseModel):
    message: str
    appointment: AppointmentResponse
    status_change: dict


class StatusHistoryResponse(BaseModel):
    current_status: AppointmentStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
    status_history: list[dict]
    available_transitions: list[AppointmentStatus]


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    range_start = datetime.combine(start_date, time.min) if start_date else None
    range_end = datetime.combine(end_date, time.min) + timedelta(days=1) if end_date else None

    booking = BookingService(build_storage(db), clock)
    try:
        appointments = booking.list_appointments(current_user.id, range_start, range_end, status_filter)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [to_response(appointment) for appointment in appointments]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    booking = BookingService(build_storage(db), clock, audit)
    try:
        return to_response(booking.create(current_user.id, payload))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    booking = BookingService(build_storage(db), clock)
    try:
        return to_response(booking.get(current_user.id, appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    booking = BookingService(build_storage(db), clock, audit)
    try:
        return to_response(booking.update(current_user.id, appointment_id, payload))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    booking = BookingService(build_storage(db), clock, audit)
    try:
        booking.delete(current_user.id, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/{appointment_id}/status', response_model=StatusChangeResponse)
def change_appointment_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
):
    ensure_database_ready()

    lifecycle = StatusLifecycle(build_storage(db), clock, audit)
    try:
        change = lifecycle.change_status(current_user.id, appointment_id, data.status)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return StatusChangeResponse(
        message=STATUS_MESSAGES[data.status],
        appointment=to_response(change.appointment),
        status_change={
            'from': change.source.value,
            'to': change.target.value,
            'timestamp': change.timestamp,
        },
    )


@router.get('/{appointment_id}/status', response_model=StatusHistoryResponse)
def get_appointment_status_history(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    lifecycle = StatusLifecycle(build_storage(db), clock)
    try:
        return lifecycle.history(current_user.id, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
