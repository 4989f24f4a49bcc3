from datetime import date, datetime
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from agenda.routes.appointment_routes import (
    StatusUpdateRequest,
    change_appointment_status,
    create_appointment,
    delete_appointment,
    get_appointment,
    get_appointment_status_history,
    list_appointments,
    update_appointment,
)
from agenda.scheduling.audit import DatabaseAuditSink
from agenda.scheduling.records import AppointmentStatus

MODULE = 'agenda.routes.appointment_routes'


@pytest.fixture(autouse=True)
def _skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(f'{MODULE}.ensure_database_ready', lambda: None)


@pytest.fixture
def current_user(owner) -> SimpleNamespace:
    return SimpleNamespace(id=owner.id)


def _create(db, current_user, clock, audit_sink, **overrides):
    payload = {
        'start_time': '2026-01-07T10:00:00',
        'client_name': 'Maria Silva',
        'service_name': 'Consultation',
        'duration_minutes': 60,
    }
    payload.update(overrides)
    return create_appointment(payload=payload, db=db, current_user=current_user, clock=clock, audit=audit_sink)


def test_create_appointment_returns_end_time(db, current_user, clock, audit_sink) -> None:
    response = _create(db, current_user, clock, audit_sink)

    assert response.start_time == datetime(2026, 1, 7, 10, 0)
    assert response.end_time == datetime(2026, 1, 7, 11, 0)
    assert response.status == AppointmentStatus.SCHEDULED
    assert response.client_name == 'Maria Silva'


def test_create_appointment_reports_conflict(db, current_user, clock, audit_sink) -> None:
    _create(db, current_user, clock, audit_sink)

    with pytest.raises(HTTPException) as exception_info:
        _create(db, current_user, clock, audit_sink, start_time='2026-01-07T10:30:00')

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == {'error': 'time_conflict', 'message': 'This time is already booked.'}


def test_create_appointment_reports_validation_errors(db, current_user, clock, audit_sink) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _create(db, current_user, clock, audit_sink, duration_minutes=600)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error'] == 'validation_failed'
    assert exception_info.value.detail['details'][0]['field'] == 'duration_minutes'


def test_create_appointment_rejects_past_start(db, current_user, clock, audit_sink) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _create(db, current_user, clock, audit_sink, start_time='2026-01-05T07:00:00')

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error'] == 'past_date'


def test_list_appointments_filters_by_date_range(db, current_user, clock, audit_sink) -> None:
    _create(db, current_user, clock, audit_sink)
    _create(db, current_user, clock, audit_sink, start_time='2026-01-08T10:00:00')

    response = list_appointments(
        start_date=date(2026, 1, 8),
        end_date=date(2026, 1, 8),
        status_filter=None,
        db=db,
        current_user=current_user,
        clock=clock,
    )

    assert [item.start_time for item in response] == [datetime(2026, 1, 8, 10, 0)]


def test_get_appointment_returns_not_found_for_other_owner(db, other_owner, clock, audit_sink, current_user) -> None:
    created = _create(db, current_user, clock, audit_sink)

    with pytest.raises(HTTPException) as exception_info:
        get_appointment(
            appointment_id=created.id,
            db=db,
            current_user=SimpleNamespace(id=other_owner.id),
            clock=clock,
        )

    assert exception_info.value.status_code == 404


def test_update_appointment_reschedules(db, current_user, clock, audit_sink) -> None:
    created = _create(db, current_user, clock, audit_sink)

    response = update_appointment(
        appointment_id=created.id,
        payload={'start_time': '2026-01-07T15:00:00'},
        db=db,
        current_user=current_user,
        clock=clock,
        audit=audit_sink,
    )

    assert response.start_time == datetime(2026, 1, 7, 15, 0)
    assert response.end_time == datetime(2026, 1, 7, 16, 0)


def test_delete_appointment_hides_it(db, current_user, clock, audit_sink) -> None:
    created = _create(db, current_user, clock, audit_sink)

    delete_appointment(appointment_id=created.id, db=db, current_user=current_user, clock=clock, audit=audit_sink)

    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=created.id, db=db, current_user=current_user, clock=clock)
    assert exception_info.value.status_code == 404


def test_change_status_returns_transition(db, current_user, clock, audit_sink) -> None:
    created = _create(db, current_user, clock, audit_sink)

    response = change_appointment_status(
        appointment_id=created.id,
        data=StatusUpdateRequest(status=AppointmentStatus.CONFIRMED),
        db=db,
        current_user=current_user,
        clock=clock,
        audit=audit_sink,
    )

    assert response.message == 'Appointment confirmed.'
    assert response.appointment.status == AppointmentStatus.CONFIRMED
    assert response.status_change == {'from': 'SCHEDULED', 'to': 'CONFIRMED', 'timestamp': clock.now()}


def test_change_status_rejects_invalid_transition(db, current_user, clock, audit_sink) -> None:
    created = _create(db, current_user, clock, audit_sink)

    with pytest.raises(HTTPException) as exception_info:
        change_appointment_status(
            appointment_id=created.id,
            data=StatusUpdateRequest(status=AppointmentStatus.COMPLETED),
            db=db,
            current_user=current_user,
            clock=clock,
            audit=audit_sink,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == {
        'error': 'invalid_status_transition',
        'message': 'Cannot change status from SCHEDULED to COMPLETED.',
    }


def test_status_history_lists_changes(db, session_factory, current_user, clock, audit_sink) -> None:
    created = _create(db, current_user, clock, audit_sink)
    sink = DatabaseAuditSink(session_factory)
    change_appointment_status(
        appointment_id=created.id,
        data=StatusUpdateRequest(status=AppointmentStatus.CONFIRMED),
        db=db,
        current_user=current_user,
        clock=clock,
        audit=sink,
    )
    clock.advance(days=2, hours=3)
    change_appointment_status(
        appointment_id=created.id,
        data=StatusUpdateRequest(status=AppointmentStatus.NO_SHOW),
        db=db,
        current_user=current_user,
        clock=clock,
        audit=sink,
    )

    response = get_appointment_status_history(
        appointment_id=created.id,
        db=db,
        current_user=current_user,
        clock=clock,
    )

    assert response['current_status'] == AppointmentStatus.NO_SHOW
    assert [entry['change']['to'] for entry in response['status_history']] == ['NO_SHOW', 'CONFIRMED']
    assert response['available_transitions'] == [AppointmentStatus.SCHEDULED]
    assert response['status_history'][0]['timestamp'] == clock.now()
