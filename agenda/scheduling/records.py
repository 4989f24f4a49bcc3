"""Plain records exchanged between the engine and its storage adapter."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal
from enum import Enum


class AppointmentStatus(str, Enum):
    SCHEDULED = 'SCHEDULED'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    NO_SHOW = 'NO_SHOW'


@dataclass(frozen=True)
class AvailabilityProfile:
    owner_id: int
    working_days: frozenset[int]  # Sunday=0
    work_start: time
    work_end: time
    slot_duration_minutes: int
    booking_lead_hours: int


@dataclass(frozen=True)
class ServiceRecord:
    id: int
    owner_id: int
    name: str
    duration_minutes: int
    price: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ClientRecord:
    id: int
    owner_id: int
    name: str
    email: str | None = None
    phone: str | None = None
    notes: str | None = None


@dataclass
class AppointmentRecord:
    id: int
    owner_id: int
    start_time: datetime
    duration_minutes: int
    status: AppointmentStatus
    service_name: str
    client_id: int | None = None
    service_id: int | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    service_price: Decimal | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


@dataclass
class AppointmentData:
    """Field values for a new or edited appointment, already validated."""

    start_time: datetime
    duration_minutes: int
    service_name: str
    client_id: int | None = None
    service_id: int | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    service_price: Decimal | None = None
    notes: str | None = None
