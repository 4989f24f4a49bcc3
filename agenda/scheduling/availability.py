"""Bookable slot lookup for one owner and day."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from agenda.scheduling.audit import AuditEvent, AuditSink, emit_audit
from agenda.scheduling.clock import Clock
from agenda.scheduling.conflicts import find_conflicts
from agenda.scheduling.errors import InvalidDateError, NotConfiguredError, ServiceNotFoundError
from agenda.scheduling.profile import weekday_index
from agenda.scheduling.records import AvailabilityProfile
from agenda.scheduling.slots import format_slot, generate_slots
from agenda.scheduling.storage import SchedulingStorage

logger = logging.getLogger(__name__)

NON_WORKING_DAY_REASON = 'Não há atendimento neste dia da semana'


@dataclass
class AvailabilityResult:
    day: date
    slots: list[time] = field(default_factory=list)
    reason: str | None = None
    service_duration: int | None = None
    slot_duration: int | None = None
    work_start: time | None = None
    work_end: time | None = None
    total_slots: int = 0
    occupied_slots: int = 0

    @property
    def available_slots(self) -> int:
        return len(self.slots)

    def to_payload(self) -> dict:
        return {
            'date': self.day.isoformat(),
            'slots': [format_slot(slot) for slot in self.slots],
            'message': self.reason,
            'working_hours': {
                'start': format_slot(self.work_start) if self.work_start else None,
                'end': format_slot(self.work_end) if self.work_end else None,
            },
            'service_duration': self.service_duration,
            'slot_duration': self.slot_duration,
            'total_slots': self.total_slots,
            'available_slots': self.available_slots,
            'occupied_slots': self.occupied_slots,
        }


def lead_time_reason(profile: AvailabilityProfile) -> str:
    return f'É necessário pelo menos {profile.booking_lead_hours} horas de antecedência'


class AvailabilityResolver:
    def __init__(self, storage: SchedulingStorage, clock: Clock, audit: AuditSink | None = None):
        self.storage = storage
        self.clock = clock
        self.audit = audit

    def resolve(
        self,
        owner_id: int,
        day: date,
        service_id: int | None = None,
        exclude_id: int | None = None,
    ) -> AvailabilityResult:
        now = self.clock.now()

        if day < now.date():
            raise InvalidDateError()

        profile = self.storage.find_profile(owner_id)
        if profile is None:
            raise NotConfiguredError()

        result = AvailabilityResult(
            day=day,
            slot_duration=profile.slot_duration_minutes,
            work_start=profile.work_start,
            work_end=profile.work_end,
        )

        if weekday_index(day) not in profile.working_days:
            result.reason = NON_WORKING_DAY_REASON
            return result

        opening = datetime.combine(day, profile.work_start)
        if opening - now < timedelta(hours=profile.booking_lead_hours):
            result.reason = lead_time_reason(profile)
            return result

        service_duration = self._service_duration(owner_id, profile, service_id)
        result.service_duration = service_duration

        candidates = generate_slots(profile, day, service_duration)
        result.total_slots = len(candidates)

        day_start = datetime.combine(day, time.min)
        booked = self.storage.find_appointments(
            owner_id,
            day_start,
            day_start + timedelta(days=1),
            exclude_id=exclude_id,
        )

        duration = timedelta(minutes=service_duration)
        free = [
            slot
            for slot in candidates
            if not find_conflicts(
                datetime.combine(day, slot),
                datetime.combine(day, slot) + duration,
                booked,
            )
        ]
        result.occupied_slots = len(candidates) - len(free)

        if day == now.date():
            free = [slot for slot in free if datetime.combine(day, slot) > now]

        result.slots = free

        emit_audit(
            self.audit,
            AuditEvent(
                actor=owner_id,
                action='READ',
                resource='appointment_slots',
                resource_id=None,
                timestamp=now,
                details={
                    'date': day,
                    'service_id': service_id,
                    'service_duration': service_duration,
                    'slots_generated': result.total_slots,
                    'slots_available': result.available_slots,
                },
            ),
        )
        return result

    def _service_duration(
        self,
        owner_id: int,
        profile: AvailabilityProfile,
        service_id: int | None,
    ) -> int:
        if service_id is None:
            return profile.slot_duration_minutes

        service = self.storage.find_service(owner_id, service_id)
        if service is None or not service.is_active:
            logger.info('Service %s not available for owner %s', service_id, owner_id)
            raise ServiceNotFoundError()
        return service.duration_minutes
