from datetime import date, datetime
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from agenda.routes.availability_routes import list_available_slots


@pytest.fixture(autouse=True)
def _skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('agenda.routes.availability_routes.ensure_database_ready', lambda: None)


def _slots(db, owner_id: int, clock, audit_sink, day: date, service_id: int | None = None) -> dict:
    return list_available_slots(
        day=day,
        service_id=service_id,
        exclude_id=None,
        db=db,
        current_user=SimpleNamespace(id=owner_id),
        clock=clock,
        audit=audit_sink,
    )


def test_list_available_slots_returns_formatted_times(
    db, owner, clock, audit_sink, make_profile, make_appointment
) -> None:
    make_profile(owner.id)
    make_appointment(owner.id, datetime(2026, 1, 7, 10, 0))

    payload = _slots(db, owner.id, clock, audit_sink, date(2026, 1, 7))

    assert payload['slots'] == ['09:00', '11:00']
    assert payload['message'] is None
    assert payload['occupied_slots'] == 1


def test_list_available_slots_explains_empty_day(db, owner, clock, audit_sink, make_profile) -> None:
    make_profile(owner.id)

    payload = _slots(db, owner.id, clock, audit_sink, date(2026, 1, 11))

    assert payload['slots'] == []
    assert payload['message'] == 'Não há atendimento neste dia da semana'


def test_list_available_slots_requires_profile(db, owner, clock, audit_sink) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _slots(db, owner.id, clock, audit_sink, date(2026, 1, 7))

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail['error'] == 'profile_not_found'


def test_list_available_slots_rejects_past_date(db, owner, clock, audit_sink, make_profile) -> None:
    make_profile(owner.id)

    with pytest.raises(HTTPException) as exception_info:
        _slots(db, owner.id, clock, audit_sink, date(2026, 1, 1))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error'] == 'invalid_date'


def test_list_available_slots_rejects_unknown_service(db, owner, clock, audit_sink, make_profile) -> None:
    make_profile(owner.id)

    with pytest.raises(HTTPException) as exception_info:
        _slots(db, owner.id, clock, audit_sink, date(2026, 1, 7), service_id=999)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail['error'] == 'service_not_found'
