"""Scheduling service - availability queries and the booking commit path"""

import logging
import random
from collections.abc import Callable, Sequence
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from ...config import SLOT_GRANULARITY_MINUTES
from ...models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentSource,
    AppointmentStatus,
    Client,
    Professional,
    Service,
    Tenant,
)
from ...plan_limits import check_plan_limit
from .engine import check_slot_bookable, compute_day_availability, merge_day_availability
from .errors import (
    AppointmentNotFound,
    ClientNotFound,
    InvalidStatusTransition,
    PlanLimitExceeded,
    ProfessionalNotFound,
    ServiceNotFound,
    SlotUnavailable,
)
from .records import DayAvailability
from .repository import SchedulingRepository, is_qualified, translate_db_errors
from .timeutils import BusinessClock, day_bounds, day_of_week, get_timezone

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED.value: {
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.IN_PROGRESS.value,
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    },
    AppointmentStatus.CONFIRMED.value: {
        AppointmentStatus.IN_PROGRESS.value,
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    },
    AppointmentStatus.IN_PROGRESS.value: {
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
    },
}


class _TenantScopedService:
    def __init__(self, db: Session, tenant: Tenant, clock: Optional[Clock] = None):
        self.db = db
        self.tenant = tenant
        self.repo = SchedulingRepository()
        self.clock = clock or BusinessClock(get_timezone(tenant.timezone))

    def _require_professional(self, professional_id: int) -> Professional:
        professional = self.repo.get_professional(self.db, self.tenant.id, professional_id)
        if not professional:
            raise ProfessionalNotFound(f"Professional {professional_id} not found")
        return professional

    def _require_services(self, service_id: int, extra_service_ids: Sequence[int] = ()) -> list[Service]:
        """Main service first, followed by distinct extras"""
        wanted = [service_id] + [s for s in dict.fromkeys(extra_service_ids) if s != service_id]
        found = {s.id: s for s in self.repo.get_services(self.db, self.tenant.id, wanted)}
        missing = [s for s in wanted if s not in found]
        if missing:
            raise ServiceNotFound(f"Service(s) not found: {missing}")
        return [found[s] for s in wanted]

    def _candidates(self, service_id: int, professional_id: Optional[int]) -> list[Professional]:
        if professional_id is not None:
            professional = self._require_professional(professional_id)
            if not is_qualified(professional, service_id):
                raise ProfessionalNotFound(
                    f"Professional {professional_id} does not offer service {service_id}"
                )
            return [professional]

        professionals = self.repo.get_qualified_professionals(self.db, self.tenant.id, service_id)
        if not professionals:
            raise ProfessionalNotFound(f"No active professional offers service {service_id}")
        return professionals


class AvailabilityService(_TenantScopedService):
    """Read path: advisory availability, recomputed on every call"""

    @property
    def granularity(self) -> int:
        return self.tenant.slot_granularity_minutes or SLOT_GRANULARITY_MINUTES

    def get_availability(
        self,
        service_id: int,
        day: date,
        professional_id: Optional[int] = None,
        extra_service_ids: Sequence[int] = (),
    ) -> DayAvailability:
        with translate_db_errors():
            services = self._require_services(service_id, extra_service_ids)
            duration = sum(s.duration_minutes for s in services)
            professionals = self._candidates(service_id, professional_id)
            now = self.clock()
            results = [self._day_for(p.id, day, duration, now) for p in professionals]

        if len(results) == 1:
            return results[0]
        return merge_day_availability(day, results)

    def _day_for(self, professional_id: int, day: date, duration: int, now: datetime) -> DayAvailability:
        day_start, day_end = day_bounds(day)
        calendar = self.repo.load_calendar(self.db, professional_id)
        exceptions = self.repo.load_exceptions(self.db, professional_id, day_start, day_end)
        appointments = self.repo.load_active_appointments(self.db, professional_id, day_start, day_end)
        try:
            return compute_day_availability(
                calendar, day, exceptions, appointments, duration, self.granularity, now=now
            )
        except Exception as e:
            logger.error(f"❌ Availability computation failed for professional {professional_id} on {day}: {e}")
            return DayAvailability(
                date=day, dayOfWeek=day_of_week(day), slots=[], message="Availability could not be computed"
            )


class BookingService(_TenantScopedService):
    """Commit path: every booking is re-checked and inserted inside one transaction"""

    def __init__(
        self,
        db: Session,
        tenant: Tenant,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(db, tenant, clock)
        self.rng = rng or random.Random()

    def commit_booking(
        self,
        service_id: int,
        client_id: int,
        day: date,
        start_time: time,
        professional_id: Optional[int] = None,
        extra_service_ids: Sequence[int] = (),
        notes: Optional[str] = None,
        status: str = AppointmentStatus.SCHEDULED.value,
        source: str = AppointmentSource.DASHBOARD.value,
    ) -> Appointment:
        """
        Book ``[day start_time, +duration)`` for a client.

        Without a pinned professional, qualified professionals are tried in a
        random order and the first one that passes the authoritative check
        gets the appointment.

        Raises:
            SlotUnavailable: No candidate could take the interval
            ProfessionalNotFound, ServiceNotFound, ClientNotFound, PlanLimitExceeded
        """
        with translate_db_errors():
            # Soft cap: counted before the professional lock, so bookings racing at the limit can both pass
            allowed, current, limit = check_plan_limit(self.tenant, self.db, "appointments")
            if not allowed:
                raise PlanLimitExceeded(
                    f"Plan limit of {limit} appointments reached. Please upgrade your plan.",
                    current=current,
                    limit=limit,
                )

            services = self._require_services(service_id, extra_service_ids)
            client = self.repo.get_client(self.db, self.tenant.id, client_id)
            if not client:
                raise ClientNotFound(f"Client {client_id} not found")

            candidates = self._candidates(service_id, professional_id)
            if professional_id is None:
                self.rng.shuffle(candidates)
                logger.info(
                    f"🎲 Auto-selecting professional among {len(candidates)} candidates for service {service_id}"
                )

            start = datetime.combine(day, start_time)
            duration = sum(s.duration_minutes for s in services)
            fields = {
                "tenant_id": self.tenant.id,
                "client_id": client.id,
                "service_id": services[0].id,
                "date_time": start,
                "duration": duration,
                "total_price": sum(s.price or 0 for s in services),
                "status": status,
                "source": source,
                "notes": notes,
            }

            last_error = None
            for professional in candidates:
                try:
                    appointment = self._settle(
                        professional.id,
                        start,
                        duration,
                        lambda pid=professional.id: self.repo.add_appointment(
                            self.db, services, professional_id=pid, **fields
                        ),
                    )
                except SlotUnavailable as e:
                    last_error = e
                    continue
                if professional_id is None:
                    logger.info(
                        f"🎯 Auto-selected professional {professional.id} ({professional.name}) "
                        f"for service {service_id} at {start}"
                    )
                logger.info(
                    f"✅ Appointment {appointment.id} booked: professional={appointment.professional_id}, "
                    f"start={start}, duration={duration}min"
                )
                return appointment

        if len(candidates) > 1:
            logger.warning(f"⚠️ All {len(candidates)} professionals unavailable at {start}")
            raise SlotUnavailable(last_error.reason, "Selected time is not available with any professional")
        logger.warning(f"⚠️ Slot unavailable for professional {candidates[0].id} at {start}: {last_error.reason}")
        raise last_error

    def _settle(
        self,
        professional_id: int,
        start: datetime,
        duration: int,
        write: Callable[[], Appointment],
        exclude_appointment_id: Optional[int] = None,
    ) -> Appointment:
        """Lock the professional, re-check the interval, write and commit; roll back on any failure"""
        try:
            if self.repo.lock_professional(self.db, self.tenant.id, professional_id) is None:
                raise ProfessionalNotFound(f"Professional {professional_id} not found")

            day_start, day_end = day_bounds(start.date())
            calendar = self.repo.load_calendar(self.db, professional_id)
            exceptions = self.repo.load_exceptions(self.db, professional_id, day_start, day_end)
            appointments = self.repo.load_active_appointments(self.db, professional_id, day_start, day_end)

            reason = check_slot_bookable(
                calendar,
                start,
                duration,
                exceptions,
                appointments,
                now=self.clock(),
                exclude_appointment_id=exclude_appointment_id,
            )
            if reason:
                raise SlotUnavailable(reason)

            appointment = write()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(appointment)
        return appointment

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, self.tenant.id, appointment_id)
        if not appointment:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")
        return appointment

    def list_appointments(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        professional_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        with translate_db_errors():
            return self.repo.list_appointments(
                self.db, self.tenant.id, start_date, end_date, professional_id, status
            )

    def reschedule(
        self,
        appointment_id: int,
        day: date,
        start_time: time,
        professional_id: Optional[int] = None,
    ) -> Appointment:
        """Move an active appointment; the new interval goes through the same authoritative check"""
        with translate_db_errors():
            appointment = self.get_appointment(appointment_id)
            if appointment.status not in ACTIVE_STATUSES:
                raise InvalidStatusTransition(
                    f"Cannot reschedule an appointment with status {appointment.status}"
                )

            target_id = professional_id or appointment.professional_id
            if professional_id is not None:
                target = self._require_professional(professional_id)
                if not is_qualified(target, appointment.service_id):
                    raise ProfessionalNotFound(
                        f"Professional {professional_id} does not offer service {appointment.service_id}"
                    )

            start = datetime.combine(day, start_time)

            def write() -> Appointment:
                appointment.date_time = start
                appointment.professional_id = target_id
                self.db.flush()
                return appointment

            moved = self._settle(
                target_id, start, appointment.duration, write, exclude_appointment_id=appointment.id
            )
            logger.info(f"🔁 Appointment {moved.id} rescheduled to {start} with professional {target_id}")
            return moved

    def update_status(self, appointment_id: int, new_status: str, reason: Optional[str] = None) -> Appointment:
        with translate_db_errors():
            appointment = self.get_appointment(appointment_id)
            current = appointment.status
            if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
                raise InvalidStatusTransition(
                    f"Cannot change status from {current} to {new_status}",
                    current=current,
                    requested=new_status,
                )

            try:
                appointment.status = new_status
                if new_status == AppointmentStatus.CANCELLED.value:
                    appointment.cancelled_at = self.clock()
                    appointment.cancel_reason = reason
                elif new_status == AppointmentStatus.COMPLETED.value:
                    appointment.completed_at = self.clock()
                    self._record_visit(appointment)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

            self.db.refresh(appointment)
            logger.info(f"📌 Appointment {appointment.id} status {current} -> {new_status}")
            return appointment

    def cancel(self, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.CANCELLED.value, reason)

    def _record_visit(self, appointment: Appointment) -> None:
        client = self.db.query(Client).filter(Client.id == appointment.client_id).first()
        if not client:
            return
        client.total_visits = (client.total_visits or 0) + 1
        client.total_spent = (client.total_spent or 0) + (appointment.total_price or 0)
        if client.last_visit is None or appointment.date_time > client.last_visit:
            client.last_visit = appointment.date_time

