"""Candidate slot generation on an owner's time grid."""

from datetime import date, datetime, time, timedelta

from agenda.scheduling.profile import weekday_index
from agenda.scheduling.records import AvailabilityProfile


def generate_slots(profile: AvailabilityProfile, day: date, service_duration: int) -> list[time]:
    """Return candidate start times for ``day``, ascending.

    Starts are aligned to the profile's slot duration, not to the service
    duration, so a long service can occupy more than one grid cell. A start
    is emitted only if the whole service fits before the end of working
    hours.
    """
    if weekday_index(day) not in profile.working_days:
        return []

    step = timedelta(minutes=profile.slot_duration_minutes)
    duration = timedelta(minutes=service_duration)
    current = datetime.combine(day, profile.work_start)
    day_end = datetime.combine(day, profile.work_end)

    slots: list[time] = []
    while current + duration <= day_end:
        slots.append(current.time())
        current += step

    return slots


def format_slot(slot: time) -> str:
    return slot.strftime('%H:%M')
