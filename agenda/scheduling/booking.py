"""Appointment writes: create, edit and soft delete.

Each write validates in a fixed order and stops at the first failure:
schema, start in the future, client, service, then the conflict re-check.
The re-check and the write share one transaction opened by locking the
owner, so two bookings for the same interval cannot both commit.
"""

import dataclasses
import logging
from datetime import datetime, timedelta

from agenda.core import config
from agenda.scheduling.audit import AuditEvent, AuditSink, emit_audit, redact
from agenda.scheduling.clock import Clock
from agenda.scheduling.conflicts import find_conflicts
from agenda.scheduling.errors import (
    AppointmentNotFoundError,
    CancellationWindowError,
    ClientNotFoundError,
    PastDateError,
    SchedulingError,
    ServiceNotFoundError,
    TimeConflictError,
    ValidationError,
)
from agenda.scheduling.records import AppointmentData, AppointmentRecord, AppointmentStatus
from agenda.scheduling.schemas import AppointmentRequest, parse_appointment_request
from agenda.scheduling.storage import SchedulingStorage

logger = logging.getLogger(__name__)

CLIENT_CONTACT_FIELDS = ('client_name', 'client_email', 'client_phone')
SERVICE_FIELDS = ('service_name', 'duration_minutes', 'service_price')
AUDITED_FIELDS = (
    'start_time',
    'duration_minutes',
    'status',
    'service_id',
    'service_name',
    'service_price',
    'client_id',
    'client_name',
    'client_email',
    'client_phone',
    'notes',
)


def assert_no_conflict(
    storage: SchedulingStorage,
    owner_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_id: int | None = None,
) -> None:
    end = start + timedelta(minutes=duration_minutes)
    stored = storage.find_appointments(owner_id, start, end, exclude_id=exclude_id)
    if find_conflicts(start, end, stored):
        raise TimeConflictError()


def starts_within_window(start: datetime, now: datetime, hours: int) -> bool:
    remaining = start - now
    return timedelta(0) < remaining < timedelta(hours=hours)


def audit_snapshot(appointment: AppointmentRecord) -> dict:
    values = dataclasses.asdict(appointment)
    return redact({name: values[name] for name in AUDITED_FIELDS})


class BookingService:
    def __init__(
        self,
        storage: SchedulingStorage,
        clock: Clock,
        audit: AuditSink | None = None,
        cancellation_window_hours: int = config.CANCELLATION_WINDOW_HOURS,
    ):
        self.storage = storage
        self.clock = clock
        self.audit = audit
        self.cancellation_window_hours = cancellation_window_hours

    def get(self, owner_id: int, appointment_id: int) -> AppointmentRecord:
        appointment = self.storage.get_appointment(owner_id, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError()
        return appointment

    def list_appointments(
        self,
        owner_id: int,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[AppointmentRecord]:
        return self.storage.list_appointments(owner_id, range_start, range_end, status)

    def create(self, owner_id: int, payload: dict) -> AppointmentRecord:
        now = self.clock.now()
        request = parse_appointment_request(payload)

        if request.start_time <= now:
            raise PastDateError()

        data = self._build_data(owner_id, request)

        try:
            self.storage.lock_owner(owner_id)
            assert_no_conflict(self.storage, owner_id, data.start_time, data.duration_minutes)
            appointment = self.storage.create_appointment(owner_id, data, now)
            self.storage.commit()
        except SchedulingError:
            self.storage.rollback()
            raise

        logger.info('Created appointment %s for owner %s', appointment.id, owner_id)
        emit_audit(
            self.audit,
            AuditEvent(
                actor=owner_id,
                action='CREATE',
                resource='appointments',
                resource_id=str(appointment.id),
                timestamp=now,
                details={'before': None, 'after': audit_snapshot(appointment)},
            ),
        )
        return appointment

    def update(self, owner_id: int, appointment_id: int, payload: dict) -> AppointmentRecord:
        now = self.clock.now()
        existing = self.get(owner_id, appointment_id)

        if 'status' in payload:
            raise ValidationError.for_field('status', 'Use the status endpoint to change status.')

        request = parse_appointment_request(self._merge(existing, payload))

        if request.start_time != existing.start_time and request.start_time <= now:
            raise PastDateError('Appointments cannot be rescheduled into the past.')

        data = self._build_data(owner_id, request, existing)

        try:
            self.storage.lock_owner(owner_id)
            current = self.storage.get_appointment(owner_id, appointment_id)
            if current is None:
                raise AppointmentNotFoundError()
            if current.status != AppointmentStatus.CANCELLED:
                assert_no_conflict(
                    self.storage,
                    owner_id,
                    data.start_time,
                    data.duration_minutes,
                    exclude_id=appointment_id,
                )
            updated = self.storage.update_appointment(owner_id, appointment_id, data, now)
            self.storage.commit()
        except SchedulingError:
            self.storage.rollback()
            raise

        logger.info('Updated appointment %s for owner %s', appointment_id, owner_id)
        emit_audit(
            self.audit,
            AuditEvent(
                actor=owner_id,
                action='UPDATE',
                resource='appointments',
                resource_id=str(appointment_id),
                timestamp=now,
                details={
                    'changed_fields': sorted(payload),
                    'before': audit_snapshot(existing),
                    'after': audit_snapshot(updated),
                },
            ),
        )
        return updated

    def delete(self, owner_id: int, appointment_id: int) -> None:
        now = self.clock.now()
        existing = self.get(owner_id, appointment_id)

        if starts_within_window(existing.start_time, now, self.cancellation_window_hours):
            raise CancellationWindowError(
                f'Appointments cannot be removed less than '
                f'{self.cancellation_window_hours} hours before they start.'
            )

        try:
            self.storage.lock_owner(owner_id)
            if self.storage.get_appointment(owner_id, appointment_id) is None:
                raise AppointmentNotFoundError()
            self.storage.soft_delete_appointment(owner_id, appointment_id, now)
            self.storage.commit()
        except SchedulingError:
            self.storage.rollback()
            raise

        logger.info('Soft-deleted appointment %s for owner %s', appointment_id, owner_id)
        emit_audit(
            self.audit,
            AuditEvent(
                actor=owner_id,
                action='DELETE',
                resource='appointments',
                resource_id=str(appointment_id),
                timestamp=now,
                details={
                    'appointment_date': existing.start_time,
                    'service_name': existing.service_name,
                    'soft_delete': True,
                },
            ),
        )

    @staticmethod
    def _merge(existing: AppointmentRecord, payload: dict) -> dict:
        merged = {
            'start_time': existing.start_time,
            'service_id': existing.service_id,
            'client_id': existing.client_id,
            'client_name': existing.client_name,
            'client_email': existing.client_email,
            'client_phone': existing.client_phone,
            'service_name': existing.service_name,
            'duration_minutes': existing.duration_minutes,
            'service_price': existing.service_price,
            'notes': existing.notes,
        }

        # Switching between a linked and a freeform client replaces the other side.
        if payload.get('client_id') is not None:
            for name in CLIENT_CONTACT_FIELDS:
                merged[name] = None
        elif payload.get('client_name') is not None:
            merged['client_id'] = None

        # A different service brings its own name, duration and price.
        if payload.get('service_id') is not None and payload['service_id'] != existing.service_id:
            for name in SERVICE_FIELDS:
                merged[name] = None

        merged.update(payload)
        return merged

    def _build_data(
        self,
        owner_id: int,
        request: AppointmentRequest,
        existing: AppointmentRecord | None = None,
    ) -> AppointmentData:
        if request.client_id is not None and (existing is None or request.client_id != existing.client_id):
            if self.storage.find_client(owner_id, request.client_id) is None:
                raise ClientNotFoundError()

        service_name = request.service_name
        duration = request.duration_minutes
        price = request.service_price

        if request.service_id is not None and (existing is None or request.service_id != existing.service_id):
            service = self.storage.find_service(owner_id, request.service_id)
            if service is None or not service.is_active:
                raise ServiceNotFoundError()
            service_name = service_name or service.name
            duration = duration or service.duration_minutes
            price = service.price if price is None else price

        return AppointmentData(
            start_time=request.start_time,
            duration_minutes=duration,
            service_name=service_name,
            client_id=request.client_id,
            service_id=request.service_id,
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            service_price=price,
            notes=request.notes,
        )
