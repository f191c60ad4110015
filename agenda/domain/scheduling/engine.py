"""
Availability engine.

Composes the four stages for one professional and one date:
working calendar -> exception overlay -> slot generation -> conflict filter.
``check_slot_bookable`` runs the same rules for a single interval and is what
the commit path uses as its authoritative check.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Optional

from .calendar import breaks_for_day, resolve_working_window
from .conflicts import BOOKED, find_conflicts, mark_conflicts
from .overlay import apply_exceptions
from .records import (
    AvailabilitySlot,
    BookedInterval,
    DayAvailability,
    ExceptionRecord,
    Interval,
    ProfessionalCalendar,
    WorkingHours,
)
from .slots import SlotCandidates
from .timeutils import day_of_week, format_hhmm

logger = logging.getLogger(__name__)

# Unavailability reasons
IN_THE_PAST = "in the past"
NOT_WORKING = "not working"
DAY_OFF = "day off"
OUTSIDE_HOURS = "outside working hours"
BLOCKED = "blocked"
ON_BREAK = "break"

MSG_NOT_WORKING = "Professional does not work on this day"
MSG_DAY_OFF = "Professional is off on this date: {reason}"
MSG_NO_SLOTS = "No available times for this date"


def compute_day_availability(
    calendar: ProfessionalCalendar,
    day: date,
    exceptions: Iterable[ExceptionRecord],
    appointments: Iterable[BookedInterval],
    duration_minutes: int,
    granularity_minutes: int,
    now: Optional[datetime] = None,
) -> DayAvailability:
    dow = day_of_week(day)
    window = resolve_working_window(calendar, day)
    if window is None:
        return DayAvailability(date=day, dayOfWeek=dow, slots=[], message=MSG_NOT_WORKING)

    hours = WorkingHours(startTime=format_hhmm(window.start), endTime=format_hhmm(window.end))
    overlay = apply_exceptions(window, exceptions)
    if overlay.day_off:
        return DayAvailability(
            date=day,
            dayOfWeek=dow,
            workingHours=hours,
            slots=[],
            message=MSG_DAY_OFF.format(reason=overlay.day_off_reason or "Day off"),
        )

    candidates = SlotCandidates(
        window,
        overlay.blocked,
        breaks_for_day(calendar, day),
        duration_minutes,
        granularity_minutes,
        now=now,
    )
    slots = mark_conflicts(candidates, duration_minutes, appointments)
    return DayAvailability(
        date=day,
        dayOfWeek=dow,
        workingHours=hours,
        slots=slots,
        message=None if slots else MSG_NO_SLOTS,
    )


def check_slot_bookable(
    calendar: ProfessionalCalendar,
    start: datetime,
    duration_minutes: int,
    exceptions: Iterable[ExceptionRecord],
    appointments: Iterable[BookedInterval],
    now: Optional[datetime] = None,
    exclude_appointment_id: Optional[int] = None,
) -> Optional[str]:
    """
    Return None if ``[start, start + duration)`` can be booked, otherwise the
    reason it cannot. Starts do not need to sit on the slot grid.
    """
    if now is not None and start < now:
        return IN_THE_PAST

    window = resolve_working_window(calendar, start.date())
    if window is None:
        return NOT_WORKING

    overlay = apply_exceptions(window, exceptions)
    if overlay.day_off:
        return DAY_OFF

    wanted = Interval(start=start, end=start + timedelta(minutes=duration_minutes))
    if not window.contains(wanted):
        return OUTSIDE_HOURS
    if any(wanted.overlaps(b) for b in overlay.blocked):
        return BLOCKED
    if any(wanted.overlaps(b) for b in breaks_for_day(calendar, start.date())):
        return ON_BREAK

    others = [a for a in appointments if exclude_appointment_id is None or a.id != exclude_appointment_id]
    if find_conflicts(wanted, others):
        return BOOKED
    return None


def merge_day_availability(day: date, results: Sequence[DayAvailability]) -> DayAvailability:
    """
    Union of several professionals' availability for the same date.

    A time is available when at least one professional has it available.
    Working hours become the envelope of the individual windows.
    """
    by_time: dict[str, AvailabilitySlot] = {}
    for result in results:
        for slot in result.slots:
            current = by_time.get(slot.time)
            if current is None or (slot.available and not current.available):
                by_time[slot.time] = slot

    windows = [r.workingHours for r in results if r.workingHours is not None]
    hours = None
    if windows:
        hours = WorkingHours(
            startTime=min(w.startTime for w in windows),
            endTime=max(w.endTime for w in windows),
        )

    slots = [by_time[t] for t in sorted(by_time)]
    message = None
    if not slots:
        message = next((r.message for r in results if r.message), MSG_NO_SLOTS)

    return DayAvailability(
        date=day, dayOfWeek=day_of_week(day), workingHours=hours, slots=slots, message=message
    )
