"""Scheduling repository - Database operations for calendars and appointments"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, selectinload

from ...models import (
    ACTIVE_STATUSES,
    Appointment,
    Client,
    Professional,
    ProfessionalSchedule,
    RecurringBreak,
    ScheduleException,
    Service,
    Tenant,
)
from .errors import UpstreamUnavailable
from .records import BookedInterval, BreakRule, ExceptionRecord, ProfessionalCalendar, WeeklyRule

logger = logging.getLogger(__name__)

# Longest appointment considered when looking back for ones spilling into a range
MAX_APPOINTMENT_SPAN = timedelta(hours=24)


@contextmanager
def translate_db_errors():
    """Surface connectivity failures as UpstreamUnavailable"""
    try:
        yield
    except OperationalError as e:
        logger.error(f"❌ Database unavailable: {e}")
        raise UpstreamUnavailable("Scheduling data is temporarily unavailable") from e


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_tenant_by_slug(db: Session, slug: str) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.slug == slug, Tenant.is_active.is_(True)).first()

    @staticmethod
    def get_professional(
        db: Session, tenant_id: int, professional_id: int, active_only: bool = True
    ) -> Optional[Professional]:
        query = db.query(Professional).filter(
            Professional.id == professional_id, Professional.tenant_id == tenant_id
        )
        if active_only:
            query = query.filter(Professional.is_active.is_(True))
        return query.first()

    @staticmethod
    def get_services(db: Session, tenant_id: int, service_ids: list[int]) -> list[Service]:
        """Active services among ``service_ids`` for the tenant"""
        if not service_ids:
            return []
        return (
            db.query(Service)
            .filter(
                Service.id.in_(service_ids),
                Service.tenant_id == tenant_id,
                Service.is_active.is_(True),
            )
            .all()
        )

    @staticmethod
    def get_client(db: Session, tenant_id: int, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id, Client.tenant_id == tenant_id).first()

    @staticmethod
    def get_client_by_phone(db: Session, tenant_id: int, phone: str) -> Optional[Client]:
        return db.query(Client).filter(Client.tenant_id == tenant_id, Client.phone == phone).first()

    @staticmethod
    def get_qualified_professionals(db: Session, tenant_id: int, service_id: int) -> list[Professional]:
        """
        Active professionals offering ``service_id``. A professional with no
        services configured offers every service.
        """
        professionals = (
            db.query(Professional)
            .options(selectinload(Professional.services))
            .filter(Professional.tenant_id == tenant_id, Professional.is_active.is_(True))
            .order_by(Professional.id)
            .all()
        )
        return [p for p in professionals if is_qualified(p, service_id)]

    @staticmethod
    def load_calendar(db: Session, professional_id: int) -> ProfessionalCalendar:
        rules = (
            db.query(ProfessionalSchedule)
            .filter(ProfessionalSchedule.professional_id == professional_id)
            .order_by(ProfessionalSchedule.day_of_week, ProfessionalSchedule.id)
            .all()
        )
        breaks = []
        for row in (
            db.query(RecurringBreak)
            .filter(RecurringBreak.professional_id == professional_id)
            .order_by(RecurringBreak.start_time)
            .all()
        ):
            try:
                breaks.append(BreakRule.model_validate(row))
            except ValidationError:
                logger.warning(
                    f"⚠️ Data integrity: skipping malformed break {row.id} for professional "
                    f"{professional_id} ({row.start_time}-{row.end_time})"
                )
        weekly_rules = []
        for row in rules:
            try:
                weekly_rules.append(WeeklyRule.model_validate(row))
            except ValidationError:
                logger.warning(
                    f"⚠️ Data integrity: skipping malformed weekly rule {row.id} for professional "
                    f"{professional_id} (day={row.day_of_week})"
                )
        return ProfessionalCalendar(
            professional_id=professional_id, weekly_rules=weekly_rules, breaks=breaks
        )

    @staticmethod
    def load_exceptions(
        db: Session, professional_id: int, range_start: datetime, range_end: datetime
    ) -> list[ExceptionRecord]:
        """Exceptions intersecting [range_start, range_end); malformed rows are skipped"""
        rows = (
            db.query(ScheduleException)
            .filter(
                ScheduleException.professional_id == professional_id,
                ScheduleException.start_datetime < range_end,
                ScheduleException.end_datetime > range_start,
            )
            .order_by(ScheduleException.start_datetime)
            .all()
        )
        records = []
        for row in rows:
            try:
                records.append(
                    ExceptionRecord(
                        id=row.id,
                        professional_id=row.professional_id,
                        start=row.start_datetime,
                        end=row.end_datetime,
                        type=row.type,
                        reason=row.reason,
                    )
                )
            except ValidationError:
                logger.warning(
                    f"⚠️ Data integrity: skipping malformed exception {row.id} for professional "
                    f"{professional_id} ({row.start_datetime} -> {row.end_datetime}, type={row.type})"
                )
        return records

    @staticmethod
    def load_active_appointments(
        db: Session, professional_id: int, range_start: datetime, range_end: datetime
    ) -> list[BookedInterval]:
        """Active appointments whose interval intersects [range_start, range_end)"""
        rows = (
            db.query(Appointment)
            .filter(
                Appointment.professional_id == professional_id,
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.date_time < range_end,
                Appointment.date_time >= range_start - MAX_APPOINTMENT_SPAN,
            )
            .order_by(Appointment.date_time)
            .all()
        )
        booked = [
            BookedInterval(
                id=row.id,
                professional_id=row.professional_id,
                start=row.date_time,
                duration=row.duration,
                status=row.status,
            )
            for row in rows
        ]
        return [b for b in booked if b.end > range_start]

    @staticmethod
    def lock_professional(db: Session, tenant_id: int, professional_id: int) -> Optional[Professional]:
        """
        Serialize booking commits for one professional until the transaction ends.

        The SELECT ... FOR UPDATE holds the row lock on PostgreSQL; the sequence
        bump is a write, which also takes the database write lock on SQLite.
        """
        professional = (
            db.query(Professional)
            .filter(
                Professional.id == professional_id,
                Professional.tenant_id == tenant_id,
                Professional.is_active.is_(True),
            )
            .with_for_update()
            .first()
        )
        if professional is None:
            return None
        db.query(Professional).filter(Professional.id == professional_id).update(
            {Professional.booking_sequence: Professional.booking_sequence + 1},
            synchronize_session=False,
        )
        return professional

    @staticmethod
    def add_appointment(db: Session, services: list[Service], **fields) -> Appointment:
        appointment = Appointment(**fields)
        appointment.services = list(services)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_appointment(db: Session, tenant_id: int, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def list_appointments(
        db: Session,
        tenant_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        professional_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(
                selectinload(Appointment.client),
                selectinload(Appointment.professional),
                selectinload(Appointment.services),
            )
            .filter(Appointment.tenant_id == tenant_id)
        )
        if start_date:
            query = query.filter(Appointment.date_time >= datetime.combine(start_date, datetime.min.time()))
        if end_date:
            query = query.filter(
                Appointment.date_time < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            )
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.date_time).all()


def is_qualified(professional: Professional, service_id: int) -> bool:
    return not professional.services or any(s.id == service_id for s in professional.services)
