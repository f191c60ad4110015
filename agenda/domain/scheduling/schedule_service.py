"""Schedule management - weekly hours, recurring breaks and one-off exceptions"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    ACTIVE_STATUSES,
    Appointment,
    Professional,
    ProfessionalSchedule,
    RecurringBreak,
    ScheduleException,
    Tenant,
)
from .errors import ExceptionNotFound, InvalidScheduleData, ProfessionalNotFound
from .repository import MAX_APPOINTMENT_SPAN, SchedulingRepository, translate_db_errors
from .schemas import (
    DAY_NAMES,
    BreakItem,
    ScheduleExceptionCreate,
    WeeklyScheduleDay,
    WeeklyScheduleDayResponse,
)
from .timeutils import get_timezone, to_civil

logger = logging.getLogger(__name__)


class ScheduleService:
    """Edits a professional's calendar; every write replaces or deletes whole records in one transaction"""

    def __init__(self, db: Session, tenant: Tenant):
        self.db = db
        self.tenant = tenant
        self.repo = SchedulingRepository()
        self.tz = get_timezone(tenant.timezone)

    def _require_professional(self, professional_id: int) -> Professional:
        professional = self.repo.get_professional(
            self.db, self.tenant.id, professional_id, active_only=False
        )
        if not professional:
            raise ProfessionalNotFound(f"Professional {professional_id} not found")
        return professional

    # ------------------------------------------------------------------
    # Weekly schedule
    # ------------------------------------------------------------------

    def get_weekly_schedule(self, professional_id: int) -> list[WeeklyScheduleDayResponse]:
        """Seven entries, Sunday first; days without an active rule are returned inactive"""
        with translate_db_errors():
            self._require_professional(professional_id)
            rows = (
                self.db.query(ProfessionalSchedule)
                .filter(ProfessionalSchedule.professional_id == professional_id)
                .order_by(ProfessionalSchedule.id)
                .all()
            )

        by_day = {}
        for row in rows:
            if row.is_active and row.day_of_week not in by_day:
                by_day[row.day_of_week] = row

        week = []
        for dow, name in enumerate(DAY_NAMES):
            row = by_day.get(dow)
            week.append(
                WeeklyScheduleDayResponse(
                    dayOfWeek=dow,
                    dayName=name,
                    startTime=row.start_time.strftime("%H:%M") if row else None,
                    endTime=row.end_time.strftime("%H:%M") if row else None,
                    isActive=row is not None,
                )
            )
        return week

    def replace_weekly_schedule(
        self, professional_id: int, days: list[WeeklyScheduleDay]
    ) -> list[WeeklyScheduleDayResponse]:
        seen = set()
        for day in days:
            if day.dayOfWeek in seen:
                raise InvalidScheduleData(f"Duplicate entry for day {day.dayOfWeek}")
            seen.add(day.dayOfWeek)
            if day.startTime >= day.endTime:
                raise InvalidScheduleData(
                    f"Start time must be before end time for {DAY_NAMES[day.dayOfWeek]}"
                )

        with translate_db_errors():
            self._require_professional(professional_id)
            try:
                self.db.query(ProfessionalSchedule).filter(
                    ProfessionalSchedule.professional_id == professional_id
                ).delete(synchronize_session=False)
                for day in days:
                    self.db.add(
                        ProfessionalSchedule(
                            professional_id=professional_id,
                            day_of_week=day.dayOfWeek,
                            start_time=day.startTime,
                            end_time=day.endTime,
                            is_active=day.isActive,
                        )
                    )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"🗓️ Weekly schedule replaced for professional {professional_id} ({len(days)} days)")
        return self.get_weekly_schedule(professional_id)

    # ------------------------------------------------------------------
    # Recurring breaks
    # ------------------------------------------------------------------

    def list_breaks(self, professional_id: int) -> list[RecurringBreak]:
        with translate_db_errors():
            self._require_professional(professional_id)
            return (
                self.db.query(RecurringBreak)
                .filter(RecurringBreak.professional_id == professional_id)
                .order_by(RecurringBreak.start_time, RecurringBreak.id)
                .all()
            )

    def replace_breaks(self, professional_id: int, breaks: list[BreakItem]) -> list[RecurringBreak]:
        for item in breaks:
            if item.startTime >= item.endTime:
                raise InvalidScheduleData(
                    f"Break start {item.startTime:%H:%M} must be before its end {item.endTime:%H:%M}"
                )

        with translate_db_errors():
            self._require_professional(professional_id)
            try:
                self.db.query(RecurringBreak).filter(
                    RecurringBreak.professional_id == professional_id
                ).delete(synchronize_session=False)
                for item in breaks:
                    self.db.add(
                        RecurringBreak(
                            professional_id=professional_id,
                            day_of_week=item.dayOfWeek,
                            start_time=item.startTime,
                            end_time=item.endTime,
                            label=item.label,
                        )
                    )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"☕ Breaks replaced for professional {professional_id} ({len(breaks)} breaks)")
        return self.list_breaks(professional_id)

    # ------------------------------------------------------------------
    # Exceptions
    # ------------------------------------------------------------------

    def _civil(self, value: datetime) -> datetime:
        """Aware inputs are converted to the tenant's civil time; naive inputs already are"""
        if value.tzinfo is None:
            return value
        return to_civil(value, self.tz)

    def list_exceptions(
        self, professional_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[ScheduleException]:
        with translate_db_errors():
            self._require_professional(professional_id)
            query = self.db.query(ScheduleException).filter(
                ScheduleException.professional_id == professional_id
            )
            if start_date:
                query = query.filter(
                    ScheduleException.end_datetime > datetime.combine(start_date, time.min)
                )
            if end_date:
                query = query.filter(
                    ScheduleException.start_datetime
                    < datetime.combine(end_date + timedelta(days=1), time.min)
                )
            return query.order_by(ScheduleException.start_datetime).all()

    def create_exception(
        self, professional_id: int, data: ScheduleExceptionCreate
    ) -> tuple[ScheduleException, list[Appointment]]:
        """
        Create an exception. Existing appointments are left untouched; the
        active ones it overlaps are returned so the caller can warn about them.
        """
        start = self._civil(data.startDatetime)
        end = self._civil(data.endDatetime)
        if start >= end:
            raise InvalidScheduleData("Exception start must be before its end")

        with translate_db_errors():
            self._require_professional(professional_id)
            try:
                exception = ScheduleException(
                    professional_id=professional_id,
                    start_datetime=start,
                    end_datetime=end,
                    type=data.type.value,
                    reason=data.reason,
                )
                self.db.add(exception)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(exception)

            candidates = (
                self.db.query(Appointment)
                .filter(
                    Appointment.professional_id == professional_id,
                    Appointment.status.in_(ACTIVE_STATUSES),
                    Appointment.date_time < end,
                    Appointment.date_time >= start - MAX_APPOINTMENT_SPAN,
                )
                .order_by(Appointment.date_time)
                .all()
            )
        conflicts = [
            a for a in candidates if a.date_time + timedelta(minutes=a.duration) > start
        ]

        logger.info(
            f"🚧 {exception.type} exception {exception.id} created for professional {professional_id}: "
            f"{start} -> {end} ({len(conflicts)} conflicting appointments)"
        )
        return exception, conflicts

    def delete_exception(self, professional_id: int, exception_id: int) -> None:
        with translate_db_errors():
            self._require_professional(professional_id)
            exception = (
                self.db.query(ScheduleException)
                .filter(
                    ScheduleException.id == exception_id,
                    ScheduleException.professional_id == professional_id,
                )
                .first()
            )
            if not exception:
                raise ExceptionNotFound(f"Schedule exception {exception_id} not found")
            self.db.delete(exception)
            self.db.commit()
        logger.info(f"🗑️ Exception {exception_id} deleted for professional {professional_id}")
