from datetime import date, datetime, time

import pytest

from agenda.scheduling.availability import NON_WORKING_DAY_REASON, AvailabilityResolver
from agenda.scheduling.errors import InvalidDateError, NotConfiguredError, ServiceNotFoundError
from agenda.scheduling.storage import SqlAlchemyStorage

WEDNESDAY = date(2026, 1, 7)
SUNDAY = date(2026, 1, 11)


@pytest.fixture
def resolver(db, clock, audit_sink) -> AvailabilityResolver:
    return AvailabilityResolver(SqlAlchemyStorage(db), clock, audit_sink)


def test_resolve_lists_every_grid_slot_on_free_day(resolver, owner, make_profile) -> None:
    make_profile(owner.id)

    result = resolver.resolve(owner.id, WEDNESDAY)

    assert result.slots == [time(9, 0), time(10, 0), time(11, 0)]
    assert result.reason is None
    assert result.total_slots == 3
    assert result.occupied_slots == 0


def test_resolve_skips_slot_held_by_existing_appointment(resolver, owner, make_profile, make_appointment) -> None:
    make_profile(owner.id)
    make_appointment(owner.id, datetime(2026, 1, 7, 10, 0))

    result = resolver.resolve(owner.id, WEDNESDAY)

    assert result.slots == [time(9, 0), time(11, 0)]
    assert result.occupied_slots == 1


def test_resolve_explains_non_working_day(resolver, owner, make_profile) -> None:
    make_profile(owner.id)

    result = resolver.resolve(owner.id, SUNDAY)

    assert result.slots == []
    assert result.reason == NON_WORKING_DAY_REASON
    assert 'atendimento neste dia' in result.reason


def test_resolve_rejects_past_date(resolver, owner, make_profile) -> None:
    make_profile(owner.id)

    with pytest.raises(InvalidDateError):
        resolver.resolve(owner.id, date(2026, 1, 4))


def test_resolve_requires_profile(resolver, owner) -> None:
    with pytest.raises(NotConfiguredError) as exception_info:
        resolver.resolve(owner.id, WEDNESDAY)

    assert exception_info.value.status_code == 404


def test_resolve_honors_booking_lead_time(resolver, owner, make_profile) -> None:
    make_profile(owner.id, booking_lead_hours=48)

    # Tuesday opens 25 hours after the clock's current time.
    result = resolver.resolve(owner.id, date(2026, 1, 6))

    assert result.slots == []
    assert result.reason == 'É necessário pelo menos 48 horas de antecedência'


def test_resolve_allows_day_exactly_at_lead_time(resolver, owner, make_profile) -> None:
    make_profile(owner.id, booking_lead_hours=25)

    result = resolver.resolve(owner.id, date(2026, 1, 6))

    assert result.slots == [time(9, 0), time(10, 0), time(11, 0)]


def test_resolve_today_drops_slot_starting_now(resolver, clock, owner, make_profile) -> None:
    make_profile(owner.id, booking_lead_hours=0)
    clock.current = datetime(2026, 1, 5, 9, 0)

    result = resolver.resolve(owner.id, date(2026, 1, 5))

    assert result.slots == [time(10, 0), time(11, 0)]


def test_resolve_today_after_opening_is_blocked_by_lead_time(resolver, clock, owner, make_profile) -> None:
    make_profile(owner.id, booking_lead_hours=0)
    clock.current = datetime(2026, 1, 5, 10, 30)

    result = resolver.resolve(owner.id, date(2026, 1, 5))

    assert result.slots == []
    assert result.reason == 'É necessário pelo menos 0 horas de antecedência'


def test_resolve_uses_service_duration(resolver, owner, make_profile, make_service) -> None:
    make_profile(owner.id)
    service = make_service(owner.id, duration_minutes=120)

    result = resolver.resolve(owner.id, WEDNESDAY, service_id=service.id)

    assert result.slots == [time(9, 0), time(10, 0)]
    assert result.service_duration == 120
    assert result.slot_duration == 60


def test_resolve_long_service_avoids_later_appointment(
    resolver, owner, make_profile, make_service, make_appointment
) -> None:
    make_profile(owner.id)
    service = make_service(owner.id, duration_minutes=120)
    make_appointment(owner.id, datetime(2026, 1, 7, 11, 0))

    result = resolver.resolve(owner.id, WEDNESDAY, service_id=service.id)

    assert result.slots == [time(9, 0)]


def test_resolve_rejects_inactive_service(resolver, owner, make_profile, make_service) -> None:
    make_profile(owner.id)
    service = make_service(owner.id, is_active=False)

    with pytest.raises(ServiceNotFoundError):
        resolver.resolve(owner.id, WEDNESDAY, service_id=service.id)


def test_resolve_rejects_service_of_another_owner(resolver, owner, other_owner, make_profile, make_service) -> None:
    make_profile(owner.id)
    service = make_service(other_owner.id)

    with pytest.raises(ServiceNotFoundError):
        resolver.resolve(owner.id, WEDNESDAY, service_id=service.id)


def test_resolve_ignores_cancelled_and_deleted_appointments(
    resolver, owner, make_profile, make_appointment
) -> None:
    make_profile(owner.id)
    make_appointment(owner.id, datetime(2026, 1, 7, 9, 0), status='CANCELLED')
    make_appointment(owner.id, datetime(2026, 1, 7, 10, 0), deleted_at=datetime(2026, 1, 5, 7, 0))

    result = resolver.resolve(owner.id, WEDNESDAY)

    assert result.slots == [time(9, 0), time(10, 0), time(11, 0)]


@pytest.mark.parametrize('status', ['CONFIRMED', 'COMPLETED', 'NO_SHOW'])
def test_resolve_treats_other_statuses_as_occupied(
    resolver, owner, make_profile, make_appointment, status: str
) -> None:
    make_profile(owner.id)
    make_appointment(owner.id, datetime(2026, 1, 7, 9, 0), status=status)

    result = resolver.resolve(owner.id, WEDNESDAY)

    assert result.slots == [time(10, 0), time(11, 0)]


def test_resolve_excluded_appointment_frees_its_slot(resolver, owner, make_profile, make_appointment) -> None:
    make_profile(owner.id)
    appointment = make_appointment(owner.id, datetime(2026, 1, 7, 10, 0))

    result = resolver.resolve(owner.id, WEDNESDAY, exclude_id=appointment.id)

    assert result.slots == [time(9, 0), time(10, 0), time(11, 0)]


def test_resolve_ignores_other_owners_appointments(
    resolver, owner, other_owner, make_profile, make_appointment
) -> None:
    make_profile(owner.id)
    make_appointment(other_owner.id, datetime(2026, 1, 7, 10, 0))

    result = resolver.resolve(owner.id, WEDNESDAY)

    assert result.slots == [time(9, 0), time(10, 0), time(11, 0)]


def test_resolve_is_repeatable(resolver, owner, make_profile, make_appointment) -> None:
    make_profile(owner.id)
    make_appointment(owner.id, datetime(2026, 1, 7, 9, 30), duration_minutes=30)

    first = resolver.resolve(owner.id, WEDNESDAY)
    second = resolver.resolve(owner.id, WEDNESDAY)

    assert first.slots == second.slots == [time(10, 0), time(11, 0)]


def test_resolve_records_read_audit(resolver, audit_sink, owner, make_profile) -> None:
    make_profile(owner.id)

    resolver.resolve(owner.id, WEDNESDAY)

    [event] = audit_sink.events
    assert event.action == 'READ'
    assert event.resource == 'appointment_slots'
    assert event.details['slots_available'] == 3


def test_resolve_payload_formats_slots(resolver, owner, make_profile) -> None:
    make_profile(owner.id)

    payload = resolver.resolve(owner.id, WEDNESDAY).to_payload()

    assert payload['date'] == '2026-01-07'
    assert payload['slots'] == ['09:00', '10:00', '11:00']
    assert payload['working_hours'] == {'start': '09:00', 'end': '12:00'}
    assert payload['available_slots'] == 3
