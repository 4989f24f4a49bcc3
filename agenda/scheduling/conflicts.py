"""Interval overlap checks shared by the availability and booking paths."""

from collections.abc import Iterable
from datetime import datetime

from agenda.scheduling.records import AppointmentRecord


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: touching intervals do not collide."""
    return a_start < b_end and b_start < a_end


def find_conflicts(
    start: datetime,
    end: datetime,
    appointments: Iterable[AppointmentRecord],
) -> list[AppointmentRecord]:
    return [
        appointment
        for appointment in appointments
        if overlaps(start, end, appointment.start_time, appointment.end_time)
    ]
