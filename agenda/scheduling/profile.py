"""Availability profile validation."""

from datetime import date, time

from agenda.scheduling.errors import ConfigError
from agenda.scheduling.records import AvailabilityProfile

MIN_SLOT_DURATION_MINUTES = 15
MAX_SLOT_DURATION_MINUTES = 480


def weekday_index(day: date) -> int:
    """Return the weekday of ``day`` with Sunday as 0, as profiles store it."""
    return (day.weekday() + 1) % 7


def parse_clock_time(value: str) -> time:
    """Parse a ``HH:MM`` wall-clock string."""
    hours, _, minutes = value.strip().partition(':')
    if not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ConfigError(f'Invalid time {value!r}; expected HH:MM.')
    hour, minute = int(hours), int(minutes)
    if hour > 23 or minute > 59:
        raise ConfigError(f'Invalid time {value!r}; expected HH:MM.')
    return time(hour, minute)


def validate_profile(profile: AvailabilityProfile) -> AvailabilityProfile:
    problems: list[str] = []

    if not profile.working_days:
        problems.append('Select at least one working day.')
    elif any(day < 0 or day > 6 for day in profile.working_days):
        problems.append('Working days must be between 0 (Sunday) and 6 (Saturday).')

    if profile.work_start >= profile.work_end:
        problems.append('Working hours must start before they end.')

    if not MIN_SLOT_DURATION_MINUTES <= profile.slot_duration_minutes <= MAX_SLOT_DURATION_MINUTES:
        problems.append(
            f'Slot duration must be between {MIN_SLOT_DURATION_MINUTES} '
            f'and {MAX_SLOT_DURATION_MINUTES} minutes.'
        )

    if profile.booking_lead_hours < 0:
        problems.append('Booking lead time cannot be negative.')

    if problems:
        raise ConfigError(' '.join(problems), details=problems)

    return profile
