from datetime import datetime, time, timezone

import pytest
from conftest import MONDAY, TUESDAY, add_appointment, add_exception, at, slot_map

from agenda.domain.scheduling.errors import ExceptionNotFound, InvalidScheduleData, ProfessionalNotFound
from agenda.domain.scheduling.schedule_service import ScheduleService
from agenda.domain.scheduling.schemas import BreakItem, ScheduleExceptionCreate, WeeklyScheduleDay
from agenda.domain.scheduling.service import AvailabilityService


def test_weekly_schedule_lists_all_days(db, tenant, professional):
    week = ScheduleService(db, tenant).get_weekly_schedule(professional.id)

    assert [d.dayOfWeek for d in week] == list(range(7))
    assert week[0].dayName == "Sunday"
    assert week[1].isActive is True
    assert (week[1].startTime, week[1].endTime) == ("09:00", "12:00")
    assert week[2].isActive is False
    assert week[2].startTime is None


def test_replace_weekly_schedule(db, tenant, clock, professional, service):
    days = [
        WeeklyScheduleDay(dayOfWeek=1, startTime="14:00", endTime="16:00"),
        WeeklyScheduleDay(dayOfWeek=2, startTime="09:00", endTime="18:00"),
    ]

    week = ScheduleService(db, tenant).replace_weekly_schedule(professional.id, days)

    assert (week[1].startTime, week[1].endTime) == ("14:00", "16:00")
    assert week[2].isActive is True
    result = AvailabilityService(db, tenant, clock).get_availability(service.id, MONDAY, professional.id)
    assert [s.time for s in result.slots] == ["14:00", "14:30", "15:00", "15:30"]


def test_replace_weekly_schedule_rejects_duplicate_days(db, tenant, professional):
    days = [
        WeeklyScheduleDay(dayOfWeek=1, startTime="08:00", endTime="10:00"),
        WeeklyScheduleDay(dayOfWeek=1, startTime="14:00", endTime="18:00"),
    ]

    with pytest.raises(InvalidScheduleData):
        ScheduleService(db, tenant).replace_weekly_schedule(professional.id, days)

    week = ScheduleService(db, tenant).get_weekly_schedule(professional.id)
    assert (week[1].startTime, week[1].endTime) == ("09:00", "12:00")


def test_replace_weekly_schedule_rejects_inverted_hours(db, tenant, professional):
    with pytest.raises(InvalidScheduleData):
        ScheduleService(db, tenant).replace_weekly_schedule(
            professional.id, [WeeklyScheduleDay(dayOfWeek=3, startTime="18:00", endTime="09:00")]
        )


def test_unknown_professional(db, tenant):
    with pytest.raises(ProfessionalNotFound):
        ScheduleService(db, tenant).get_weekly_schedule(404)


def test_replace_breaks(db, tenant, clock, professional, service):
    schedule = ScheduleService(db, tenant)
    breaks = schedule.replace_breaks(
        professional.id,
        [
            BreakItem(startTime="10:30", endTime="11:00", label="Café"),
            BreakItem(dayOfWeek=2, startTime="12:00", endTime="13:00", label="Almoço"),
        ],
    )

    assert [(b.start_time, b.label) for b in breaks] == [(time(10, 30), "Café"), (time(12), "Almoço")]
    result = AvailabilityService(db, tenant, clock).get_availability(service.id, MONDAY, professional.id)
    assert "10:30" not in slot_map(result)
    assert "10:00" in slot_map(result)

    assert schedule.replace_breaks(professional.id, []) == []


def test_replace_breaks_rejects_inverted_break(db, tenant, professional):
    with pytest.raises(InvalidScheduleData):
        ScheduleService(db, tenant).replace_breaks(
            professional.id, [BreakItem(startTime="13:00", endTime="12:00")]
        )


def test_create_exception_reports_conflicts(db, tenant, professional, client_record, service):
    appointment = add_appointment(db, tenant, professional, client_record, service, at(MONDAY, "10:00"))
    add_appointment(
        db, tenant, professional, client_record, service, at(MONDAY, "09:00"), status="CANCELLED"
    )

    exception, conflicts = ScheduleService(db, tenant).create_exception(
        professional.id,
        ScheduleExceptionCreate(
            startDatetime=at(MONDAY, "09:45"), endDatetime=at(MONDAY, "10:15"), reason="Dentista"
        ),
    )

    assert exception.id is not None
    assert exception.type == "BLOCK"
    assert [a.id for a in conflicts] == [appointment.id]
    # The appointment itself stays booked
    db.refresh(appointment)
    assert appointment.status == "SCHEDULED"


def test_create_exception_converts_aware_datetimes(db, tenant, professional):
    # 12:00 UTC is 09:00 in São Paulo (UTC-3)
    exception, _ = ScheduleService(db, tenant).create_exception(
        professional.id,
        ScheduleExceptionCreate(
            startDatetime=datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc),
            endDatetime=datetime(2025, 6, 2, 13, 0, tzinfo=timezone.utc),
            type="DAY_OFF",
        ),
    )

    assert exception.start_datetime == at(MONDAY, "09:00")
    assert exception.end_datetime == at(MONDAY, "10:00")
    assert exception.type == "DAY_OFF"


def test_create_exception_rejects_empty_interval(db, tenant, professional):
    with pytest.raises(InvalidScheduleData):
        ScheduleService(db, tenant).create_exception(
            professional.id,
            ScheduleExceptionCreate(startDatetime=at(MONDAY, "10:00"), endDatetime=at(MONDAY, "10:00")),
        )


def test_list_exceptions_by_range(db, tenant, professional):
    monday = add_exception(db, professional, at(MONDAY, "09:00"), at(MONDAY, "10:00"))
    tuesday = add_exception(db, professional, at(TUESDAY, "09:00"), at(TUESDAY, "10:00"))
    schedule = ScheduleService(db, tenant)

    assert [e.id for e in schedule.list_exceptions(professional.id)] == [monday.id, tuesday.id]
    assert [e.id for e in schedule.list_exceptions(professional.id, TUESDAY, TUESDAY)] == [tuesday.id]
    assert [e.id for e in schedule.list_exceptions(professional.id, end_date=MONDAY)] == [monday.id]


def test_delete_exception_restores_slots(db, tenant, clock, professional, service):
    block_id = add_exception(db, professional, at(MONDAY, "09:00"), at(MONDAY, "12:00")).id
    schedule = ScheduleService(db, tenant)
    availability = AvailabilityService(db, tenant, clock)
    assert availability.get_availability(service.id, MONDAY, professional.id).slots == []

    schedule.delete_exception(professional.id, block_id)

    assert len(availability.get_availability(service.id, MONDAY, professional.id).slots) == 6
    with pytest.raises(ExceptionNotFound):
        schedule.delete_exception(professional.id, block_id)
