"""Appointment status state machine.

``COMPLETED`` is the only state with no way out; ``CANCELLED`` and
``NO_SHOW`` may go back to ``SCHEDULED`` when the client rebooks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from agenda.core import config
from agenda.scheduling.audit import AuditEvent, AuditSink, emit_audit
from agenda.scheduling.booking import assert_no_conflict, starts_within_window
from agenda.scheduling.clock import Clock
from agenda.scheduling.errors import (
    AppointmentNotFoundError,
    CancellationWindowError,
    FutureAppointmentError,
    InvalidTransitionError,
    SchedulingError,
    TooEarlyError,
)
from agenda.scheduling.records import AppointmentRecord, AppointmentStatus
from agenda.scheduling.storage import SchedulingStorage

logger = logging.getLogger(__name__)

S = AppointmentStatus

VALID_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset({S.SCHEDULED}),
    S.NO_SHOW: frozenset({S.SCHEDULED}),
}

HISTORY_LIMIT = 20


@dataclass
class StatusChange:
    appointment: AppointmentRecord
    source: AppointmentStatus
    target: AppointmentStatus
    timestamp: datetime


def available_transitions(status: AppointmentStatus) -> list[AppointmentStatus]:
    return sorted(VALID_TRANSITIONS[status], key=lambda target: target.value)


def check_transition(
    appointment: AppointmentRecord,
    target: AppointmentStatus,
    now: datetime,
    grace_minutes: int = config.NO_SHOW_GRACE_MINUTES,
    cancellation_window_hours: int = config.CANCELLATION_WINDOW_HOURS,
) -> None:
    """Raise if ``appointment`` may not move to ``target`` at ``now``."""
    source = appointment.status

    if target not in VALID_TRANSITIONS[source]:
        raise InvalidTransitionError(source.value, target.value)

    if target == S.COMPLETED and now < appointment.start_time:
        raise FutureAppointmentError()

    if target == S.NO_SHOW and now < appointment.start_time + timedelta(minutes=grace_minutes):
        raise TooEarlyError(f'Wait at least {grace_minutes} minutes after the start time.')

    if (
        target == S.CANCELLED
        and source != S.NO_SHOW
        and starts_within_window(appointment.start_time, now, cancellation_window_hours)
    ):
        raise CancellationWindowError(
            f'Appointments cannot be cancelled less than {cancellation_window_hours} hours in advance.'
        )


class StatusLifecycle:
    def __init__(
        self,
        storage: SchedulingStorage,
        clock: Clock,
        audit: AuditSink | None = None,
        grace_minutes: int = config.NO_SHOW_GRACE_MINUTES,
        cancellation_window_hours: int = config.CANCELLATION_WINDOW_HOURS,
    ):
        self.storage = storage
        self.clock = clock
        self.audit = audit
        self.grace_minutes = grace_minutes
        self.cancellation_window_hours = cancellation_window_hours

    def change_status(
        self,
        owner_id: int,
        appointment_id: int,
        target: AppointmentStatus,
    ) -> StatusChange:
        now = self.clock.now()

        try:
            # Status is read under the owner lock.
            self.storage.lock_owner(owner_id)
            appointment = self.storage.get_appointment(owner_id, appointment_id)
            if appointment is None:
                raise AppointmentNotFoundError()

            source = appointment.status
            check_transition(
                appointment,
                target,
                now,
                grace_minutes=self.grace_minutes,
                cancellation_window_hours=self.cancellation_window_hours,
            )
            if source == S.CANCELLED:
                # The record held no time while cancelled; its slot may be taken.
                assert_no_conflict(
                    self.storage,
                    owner_id,
                    appointment.start_time,
                    appointment.duration_minutes,
                    exclude_id=appointment_id,
                )
            updated = self.storage.set_appointment_status(owner_id, appointment_id, target, now)
            self.storage.commit()
        except SchedulingError:
            self.storage.rollback()
            raise

        logger.info(
            'Appointment %s for owner %s moved from %s to %s',
            appointment_id,
            owner_id,
            source.value,
            target.value,
        )
        emit_audit(
            self.audit,
            AuditEvent(
                actor=owner_id,
                action='UPDATE',
                resource='appointments',
                resource_id=str(appointment_id),
                timestamp=now,
                details={
                    'statusChange': {'from': source.value, 'to': target.value},
                    'timestamp': now.isoformat(),
                },
            ),
        )
        return StatusChange(appointment=updated, source=source, target=target, timestamp=now)

    def history(self, owner_id: int, appointment_id: int) -> dict:
        appointment = self.storage.get_appointment(owner_id, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError()

        entries = self.storage.find_audit_entries(
            owner_id,
            resource='appointments',
            resource_id=str(appointment_id),
            action='UPDATE',
            limit=HISTORY_LIMIT,
        )
        changes = [
            {'timestamp': entry.created_at, 'change': entry.details['statusChange']}
            for entry in entries
            if isinstance(entry.details, dict) and 'statusChange' in entry.details
        ]

        return {
            'current_status': appointment.status,
            'created_at': appointment.created_at,
            'updated_at': appointment.updated_at,
            'status_history': changes,
            'available_transitions': available_transitions(appointment.status),
        }
