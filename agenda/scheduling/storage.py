"""Storage adapter between the scheduling engine and SQLAlchemy.

Every query is scoped to one owner and every read of a soft-deletable table
filters ``deleted_at IS NULL``. Writes are flushed, not committed: the
engine decides when its transaction ends.
"""

import functools
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.models.appointment import Appointment
from agenda.models.audit_log import AuditLog
from agenda.models.availability import Profile
from agenda.models.client import Client
from agenda.models.service import Service
from agenda.models.user import User
from agenda.scheduling.codec import FieldCodec, PlainCodec
from agenda.scheduling.errors import StorageError
from agenda.scheduling.records import (
    AppointmentData,
    AppointmentRecord,
    AppointmentStatus,
    AvailabilityProfile,
    ClientRecord,
    ServiceRecord,
)

ENCRYPTED_APPOINTMENT_FIELDS = ('client_name', 'client_email', 'client_phone', 'notes')


class SchedulingStorage(Protocol):
    def find_profile(self, owner_id: int) -> AvailabilityProfile | None: ...

    def find_service(self, owner_id: int, service_id: int) -> ServiceRecord | None: ...

    def find_client(self, owner_id: int, client_id: int) -> ClientRecord | None: ...

    def find_appointments(
        self,
        owner_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[AppointmentRecord]: ...

    def list_appointments(
        self,
        owner_id: int,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[AppointmentRecord]: ...

    def get_appointment(self, owner_id: int, appointment_id: int) -> AppointmentRecord | None: ...

    def create_appointment(self, owner_id: int, data: AppointmentData, now: datetime) -> AppointmentRecord: ...

    def update_appointment(
        self, owner_id: int, appointment_id: int, data: AppointmentData, now: datetime
    ) -> AppointmentRecord: ...

    def set_appointment_status(
        self, owner_id: int, appointment_id: int, status: AppointmentStatus, now: datetime
    ) -> AppointmentRecord: ...

    def soft_delete_appointment(self, owner_id: int, appointment_id: int, now: datetime) -> None: ...

    def find_audit_entries(
        self,
        owner_id: int,
        resource: str,
        resource_id: str,
        action: str,
        limit: int = 20,
    ) -> list[AuditLog]: ...

    def lock_owner(self, owner_id: int) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def translate_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError() from exc

    return wrapper


class SqlAlchemyStorage:
    def __init__(self, db: Session, codec: FieldCodec | None = None):
        self.db = db
        self.codec = codec or PlainCodec()

    # Profiles

    @translate_errors
    def find_profile(self, owner_id: int) -> AvailabilityProfile | None:
        row = self.db.query(Profile).filter(Profile.owner_id == owner_id).first()
        if row is None:
            return None
        return AvailabilityProfile(
            owner_id=row.owner_id,
            working_days=frozenset(row.working_days or []),
            work_start=row.work_start,
            work_end=row.work_end,
            slot_duration_minutes=row.slot_duration_minutes,
            booking_lead_hours=row.booking_lead_hours,
        )

    @translate_errors
    def save_profile(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        row = self.db.query(Profile).filter(Profile.owner_id == profile.owner_id).first()
        if row is None:
            row = Profile(owner_id=profile.owner_id)
            self.db.add(row)
        row.working_days = sorted(profile.working_days)
        row.work_start = profile.work_start
        row.work_end = profile.work_end
        row.slot_duration_minutes = profile.slot_duration_minutes
        row.booking_lead_hours = profile.booking_lead_hours
        self.db.commit()
        return profile

    # Services

    @translate_errors
    def find_service(self, owner_id: int, service_id: int) -> ServiceRecord | None:
        row = self.db.query(Service).filter(
            Service.id == service_id,
            Service.owner_id == owner_id,
        ).first()
        return self._to_service_record(row) if row else None

    @translate_errors
    def list_services(self, owner_id: int, include_inactive: bool = False) -> list[ServiceRecord]:
        query = self.db.query(Service).filter(Service.owner_id == owner_id)
        if not include_inactive:
            query = query.filter(Service.is_active.is_(True))
        return [self._to_service_record(row) for row in query.order_by(Service.name.asc()).all()]

    @translate_errors
    def create_service(self, owner_id: int, name: str, duration_minutes: int, price=None) -> ServiceRecord:
        row = Service(
            owner_id=owner_id,
            name=name,
            duration_minutes=duration_minutes,
            price=price,
            is_active=True,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self._to_service_record(row)

    @translate_errors
    def update_service(
        self,
        owner_id: int,
        service_id: int,
        name: str,
        duration_minutes: int,
        price=None,
        is_active: bool = True,
    ) -> ServiceRecord | None:
        row = self.db.query(Service).filter(
            Service.id == service_id,
            Service.owner_id == owner_id,
        ).first()
        if row is None:
            return None
        row.name = name
        row.duration_minutes = duration_minutes
        row.price = price
        row.is_active = is_active
        self.db.commit()
        self.db.refresh(row)
        return self._to_service_record(row)

    @translate_errors
    def delete_service(self, owner_id: int, service_id: int) -> str | None:
        """Delete a service, or deactivate it when appointments reference it.

        Returns ``'deleted'``, ``'deactivated'`` or ``None`` when the service
        does not exist for this owner.
        """
        row = self.db.query(Service).filter(
            Service.id == service_id,
            Service.owner_id == owner_id,
        ).first()
        if row is None:
            return None

        references = self.db.query(func.count(Appointment.id)).filter(
            Appointment.owner_id == owner_id,
            Appointment.service_id == service_id,
        ).scalar()

        if references:
            row.is_active = False
            outcome = 'deactivated'
        else:
            self.db.delete(row)
            outcome = 'deleted'
        self.db.commit()
        return outcome

    # Clients

    @translate_errors
    def find_client(self, owner_id: int, client_id: int) -> ClientRecord | None:
        row = self.db.query(Client).filter(
            Client.id == client_id,
            Client.owner_id == owner_id,
            Client.deleted_at.is_(None),
        ).first()
        return self._to_client_record(row) if row else None

    @translate_errors
    def list_clients(self, owner_id: int) -> list[ClientRecord]:
        rows = self.db.query(Client).filter(
            Client.owner_id == owner_id,
            Client.deleted_at.is_(None),
        ).order_by(Client.name.asc()).all()
        return [self._to_client_record(row) for row in rows]

    @translate_errors
    def create_client(
        self,
        owner_id: int,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
    ) -> ClientRecord:
        row = Client(
            owner_id=owner_id,
            name=name,
            email=email,
            phone=self.codec.encode(phone),
            notes=self.codec.encode(notes),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self._to_client_record(row)

    @translate_errors
    def update_client(
        self,
        owner_id: int,
        client_id: int,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
    ) -> ClientRecord | None:
        row = self.db.query(Client).filter(
            Client.id == client_id,
            Client.owner_id == owner_id,
            Client.deleted_at.is_(None),
        ).first()
        if row is None:
            return None
        row.name = name
        row.email = email
        row.phone = self.codec.encode(phone)
        row.notes = self.codec.encode(notes)
        self.db.commit()
        self.db.refresh(row)
        return self._to_client_record(row)

    @translate_errors
    def soft_delete_client(self, owner_id: int, client_id: int, now: datetime) -> bool:
        row = self.db.query(Client).filter(
            Client.id == client_id,
            Client.owner_id == owner_id,
            Client.deleted_at.is_(None),
        ).first()
        if row is None:
            return False
        row.deleted_at = now
        self.db.commit()
        return True

    # Appointments

    @translate_errors
    def find_appointments(
        self,
        owner_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[AppointmentRecord]:
        """Non-cancelled, non-deleted appointments intersecting the range."""
        query = self.db.query(Appointment).filter(
            Appointment.owner_id == owner_id,
            Appointment.deleted_at.is_(None),
            Appointment.status != AppointmentStatus.CANCELLED.value,
            Appointment.start_time < range_end,
            Appointment.end_time > range_start,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        rows = query.order_by(Appointment.start_time.asc()).all()
        return [self._to_appointment_record(row) for row in rows]

    @translate_errors
    def list_appointments(
        self,
        owner_id: int,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[AppointmentRecord]:
        query = self.db.query(Appointment).filter(
            Appointment.owner_id == owner_id,
            Appointment.deleted_at.is_(None),
        )
        if range_start is not None:
            query = query.filter(Appointment.start_time >= range_start)
        if range_end is not None:
            query = query.filter(Appointment.start_time < range_end)
        if status is not None:
            query = query.filter(Appointment.status == status.value)
        rows = query.order_by(Appointment.start_time.asc()).all()
        return [self._to_appointment_record(row) for row in rows]

    @translate_errors
    def get_appointment(self, owner_id: int, appointment_id: int) -> AppointmentRecord | None:
        row = self._get_appointment_row(owner_id, appointment_id)
        return self._to_appointment_record(row) if row else None

    @translate_errors
    def create_appointment(self, owner_id: int, data: AppointmentData, now: datetime) -> AppointmentRecord:
        row = Appointment(
            owner_id=owner_id,
            status=AppointmentStatus.SCHEDULED.value,
            created_at=now,
            updated_at=now,
        )
        self._apply(row, data)
        self.db.add(row)
        self.db.flush()
        return self._to_appointment_record(row)

    @translate_errors
    def update_appointment(
        self, owner_id: int, appointment_id: int, data: AppointmentData, now: datetime
    ) -> AppointmentRecord:
        row = self._get_appointment_row(owner_id, appointment_id)
        self._apply(row, data)
        row.updated_at = now
        self.db.flush()
        return self._to_appointment_record(row)

    @translate_errors
    def set_appointment_status(
        self, owner_id: int, appointment_id: int, status: AppointmentStatus, now: datetime
    ) -> AppointmentRecord:
        row = self._get_appointment_row(owner_id, appointment_id)
        row.status = status.value
        row.updated_at = now
        self.db.flush()
        return self._to_appointment_record(row)

    @translate_errors
    def soft_delete_appointment(self, owner_id: int, appointment_id: int, now: datetime) -> None:
        row = self._get_appointment_row(owner_id, appointment_id)
        row.deleted_at = now
        row.updated_at = now
        self.db.flush()

    @translate_errors
    def find_audit_entries(
        self,
        owner_id: int,
        resource: str,
        resource_id: str,
        action: str,
        limit: int = 20,
    ) -> list[AuditLog]:
        return self.db.query(AuditLog).filter(
            AuditLog.owner_id == owner_id,
            AuditLog.resource == resource,
            AuditLog.resource_id == resource_id,
            AuditLog.action == action,
        ).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    # Transactions

    @translate_errors
    def lock_owner(self, owner_id: int) -> None:
        """Serialize writers for one owner until the transaction ends.

        Renders ``SELECT ... FOR UPDATE`` on databases that support row locks.
        """
        self.db.query(User.id).filter(User.id == owner_id).with_for_update().first()

    @translate_errors
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # Mapping

    def _get_appointment_row(self, owner_id: int, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.owner_id == owner_id,
            Appointment.deleted_at.is_(None),
        ).populate_existing().first()

    def _apply(self, row: Appointment, data: AppointmentData) -> None:
        row.start_time = data.start_time
        row.duration_minutes = data.duration_minutes
        row.end_time = data.start_time + timedelta(minutes=data.duration_minutes)
        row.service_name = data.service_name
        row.service_id = data.service_id
        row.service_price = data.service_price
        row.client_id = data.client_id
        for field_name in ENCRYPTED_APPOINTMENT_FIELDS:
            setattr(row, field_name, self.codec.encode(getattr(data, field_name)))

    def _to_appointment_record(self, row: Appointment) -> AppointmentRecord:
        return AppointmentRecord(
            id=row.id,
            owner_id=row.owner_id,
            start_time=row.start_time,
            duration_minutes=row.duration_minutes,
            status=AppointmentStatus(row.status),
            service_name=row.service_name,
            client_id=row.client_id,
            service_id=row.service_id,
            client_name=self.codec.decode(row.client_name),
            client_email=self.codec.decode(row.client_email),
            client_phone=self.codec.decode(row.client_phone),
            service_price=row.service_price,
            notes=self.codec.decode(row.notes),
            created_at=row.created_at,
            updated_at=row.updated_at,
            deleted_at=row.deleted_at,
        )

    def _to_client_record(self, row: Client) -> ClientRecord:
        return ClientRecord(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            email=row.email,
            phone=self.codec.decode(row.phone),
            notes=self.codec.decode(row.notes),
        )

    @staticmethod
    def _to_service_record(row: Service) -> ServiceRecord:
        return ServiceRecord(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            duration_minutes=row.duration_minutes,
            price=row.price,
            is_active=bool(row.is_active),
        )
