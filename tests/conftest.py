import os
from datetime import datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from agenda.database import Base  # noqa: E402
from agenda.models.appointment import Appointment  # noqa: E402
from agenda.models.audit_log import AuditLog  # noqa: E402,F401
from agenda.models.availability import Profile  # noqa: E402
from agenda.models.client import Client  # noqa: E402
from agenda.models.service import Service  # noqa: E402
from agenda.models.user import User  # noqa: E402

# Monday.
NOW = datetime(2026, 1, 5, 8, 0)


class FixedClock:
    def __init__(self, current: datetime = NOW):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current += timedelta(**delta)


class RecordingAuditSink:
    def __init__(self):
        self.events = []

    def record(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f'sqlite:///{tmp_path / "agenda.db"}')
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _add(db, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def owner(db) -> User:
    return _add(db, User(email='owner@example.com', name='Owner'))


@pytest.fixture
def other_owner(db) -> User:
    return _add(db, User(email='other@example.com', name='Other'))


@pytest.fixture
def make_profile(db):
    def factory(owner_id, **overrides):
        values = {
            'working_days': [1, 2, 3, 4, 5],
            'work_start': time(9, 0),
            'work_end': time(12, 0),
            'slot_duration_minutes': 60,
            'booking_lead_hours': 24,
        }
        values.update(overrides)
        return _add(db, Profile(owner_id=owner_id, **values))

    return factory


@pytest.fixture
def make_service(db):
    def factory(owner_id, name='Consultation', duration_minutes=60, price=None, is_active=True):
        return _add(
            db,
            Service(
                owner_id=owner_id,
                name=name,
                duration_minutes=duration_minutes,
                price=price,
                is_active=is_active,
            ),
        )

    return factory


@pytest.fixture
def make_client(db):
    def factory(owner_id, name='Maria Silva', deleted_at=None):
        return _add(db, Client(owner_id=owner_id, name=name, deleted_at=deleted_at))

    return factory


@pytest.fixture
def make_appointment(db):
    def factory(owner_id, start_time, duration_minutes=60, status='SCHEDULED', deleted_at=None):
        return _add(
            db,
            Appointment(
                owner_id=owner_id,
                client_name='Walk-in',
                service_name='Consultation',
                start_time=start_time,
                end_time=start_time + timedelta(minutes=duration_minutes),
                duration_minutes=duration_minutes,
                status=status,
                created_at=NOW,
                updated_at=NOW,
                deleted_at=deleted_at,
            ),
        )

    return factory
