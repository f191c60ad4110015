"""Conflict filter: overlap of candidate intervals with active appointments"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from .records import AvailabilitySlot, BookedInterval, Interval
from .timeutils import format_hhmm

BOOKED = "booked"


def find_conflicts(candidate: Interval, appointments: Iterable[BookedInterval]) -> list[BookedInterval]:
    return [a for a in appointments if candidate.overlaps(a.interval)]


def mark_conflicts(
    candidates: Iterable[datetime], duration_minutes: int, appointments: Iterable[BookedInterval]
) -> list[AvailabilitySlot]:
    """Mark each candidate start as available or booked, keeping candidate order"""
    appointments = list(appointments)
    length = timedelta(minutes=duration_minutes)
    slots = []
    for t in candidates:
        taken = find_conflicts(Interval(start=t, end=t + length), appointments)
        if taken:
            slots.append(AvailabilitySlot(time=format_hhmm(t), available=False, reason=BOOKED))
        else:
            slots.append(AvailabilitySlot(time=format_hhmm(t), available=True))
    return slots
