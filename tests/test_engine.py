"""Tests for the composed availability engine"""

from datetime import time

from conftest import MONDAY, TUESDAY, at, slot_map

from agenda.domain.scheduling.engine import (
    check_slot_bookable,
    compute_day_availability,
    merge_day_availability,
)
from agenda.domain.scheduling.records import (
    AvailabilitySlot,
    BookedInterval,
    BreakRule,
    DayAvailability,
    ExceptionRecord,
    ProfessionalCalendar,
    WeeklyRule,
    WorkingHours,
)


def monday_calendar(start=time(9), end=time(12), breaks=()):
    return ProfessionalCalendar(
        professional_id=1,
        weekly_rules=[WeeklyRule(id=1, day_of_week=1, start_time=start, end_time=end)],
        breaks=list(breaks),
    )


def booked(start, duration=30, id=1):
    return BookedInterval(id=id, professional_id=1, start=start, duration=duration, status="SCHEDULED")


def test_monday_morning_scenario():
    result = compute_day_availability(
        monday_calendar(), MONDAY, [], [booked(at(MONDAY, "10:00"))], 30, 30, now=at(MONDAY, "07:00")
    )

    assert result.dayOfWeek == 1
    assert result.workingHours == WorkingHours(startTime="09:00", endTime="12:00")
    assert [(s.time, s.available, s.reason) for s in result.slots] == [
        ("09:00", True, None),
        ("09:30", True, None),
        ("10:00", False, "booked"),
        ("10:30", True, None),
        ("11:00", True, None),
        ("11:30", True, None),
    ]


def test_appointment_partially_overlapping_marks_both_slots():
    result = compute_day_availability(
        monday_calendar(), MONDAY, [], [booked(at(MONDAY, "10:15"))], 30, 30, now=None
    )
    slots = slot_map(result)
    assert slots["10:00"] == (False, "booked")
    assert slots["10:30"] == (False, "booked")
    assert slots["11:00"] == (True, None)


def test_not_working_day_is_empty_with_message():
    result = compute_day_availability(monday_calendar(), TUESDAY, [], [], 30, 30)
    assert result.slots == []
    assert result.workingHours is None
    assert result.message


def test_full_day_off_is_empty_regardless_of_rule():
    day_off = ExceptionRecord(
        professional_id=1, start=at(MONDAY, "00:00"), end=at(TUESDAY, "00:00"), type="DAY_OFF"
    )
    result = compute_day_availability(monday_calendar(), MONDAY, [day_off], [], 30, 30)
    assert result.slots == []
    assert result.message == "Professional is off on this date: Day off"


def test_day_off_message_carries_the_exception_reason():
    day_off = ExceptionRecord(
        professional_id=1, start=at(MONDAY, "00:00"), end=at(TUESDAY, "00:00"), type="DAY_OFF", reason="Férias"
    )
    result = compute_day_availability(monday_calendar(), MONDAY, [day_off], [], 30, 30)
    assert result.message == "Professional is off on this date: Férias"


def test_past_slots_today_are_excluded_not_marked():
    result = compute_day_availability(monday_calendar(), MONDAY, [], [], 30, 30, now=at(MONDAY, "10:45"))
    assert [s.time for s in result.slots] == ["11:00", "11:30"]


def test_check_slot_reasons():
    cal = monday_calendar(end=time(18), breaks=[BreakRule(start_time=time(12), end_time=time(13))])
    block = ExceptionRecord(professional_id=1, start=at(MONDAY, "15:00"), end=at(MONDAY, "16:00"))
    appointments = [booked(at(MONDAY, "10:00"), id=5)]
    now = at(MONDAY, "08:00")

    def check(hhmm, duration=30, day=MONDAY, exclude=None):
        return check_slot_bookable(
            cal, at(day, hhmm), duration, [block], appointments, now=now, exclude_appointment_id=exclude
        )

    assert check("09:00") is None
    assert check("09:10") is None  # off-grid starts are fine on the commit path
    assert check("07:30") == "in the past"
    assert check("10:00", day=TUESDAY) == "not working"
    assert check("17:45") == "outside working hours"
    assert check("15:30") == "blocked"
    assert check("11:45") == "break"
    assert check("09:45") == "booked"
    assert check("10:00", exclude=5) is None


def test_available_slot_passes_commit_check():
    cal = monday_calendar(breaks=[BreakRule(start_time=time(10, 30), end_time=time(10, 45))])
    appointments = [booked(at(MONDAY, "09:30"))]
    now = at(MONDAY, "07:00")
    result = compute_day_availability(cal, MONDAY, [], appointments, 30, 15, now=now)

    for slot in result.slots:
        start = at(MONDAY, slot.time)
        reason = check_slot_bookable(cal, start, 30, [], appointments, now=now)
        assert (reason is None) == slot.available


def test_merge_is_union_of_professionals():
    first = DayAvailability(
        date=MONDAY,
        dayOfWeek=1,
        workingHours=WorkingHours(startTime="09:00", endTime="12:00"),
        slots=[
            AvailabilitySlot(time="09:00", available=False, reason="booked"),
            AvailabilitySlot(time="09:30", available=True),
        ],
    )
    second = DayAvailability(
        date=MONDAY,
        dayOfWeek=1,
        workingHours=WorkingHours(startTime="08:00", endTime="11:00"),
        slots=[
            AvailabilitySlot(time="08:30", available=False, reason="booked"),
            AvailabilitySlot(time="09:00", available=True),
        ],
    )

    merged = merge_day_availability(MONDAY, [first, second])

    assert merged.workingHours == WorkingHours(startTime="08:00", endTime="12:00")
    assert slot_map(merged) == {
        "08:30": (False, "booked"),
        "09:00": (True, None),
        "09:30": (True, None),
    }
    assert [s.time for s in merged.slots] == ["08:30", "09:00", "09:30"]
