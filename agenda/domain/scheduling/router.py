"""Scheduling router - authenticated endpoints for availability, appointments and calendars"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import AuthContext, ensure_can_manage_calendar, get_current_auth, get_current_tenant
from ...database import get_db
from ...models import Tenant
from ...services.notification_service import CANCELLATION, CONFIRMATION, schedule_notification
from .dependencies import get_clock, get_rng
from .records import DayAvailability
from .schedule_service import ScheduleService
from .schemas import (
    AppointmentResponse,
    BookingRequest,
    BreakResponse,
    BreaksUpdate,
    CancelRequest,
    ExceptionCreatedResponse,
    NotifyRequest,
    RescheduleRequest,
    ScheduleExceptionCreate,
    ScheduleExceptionResponse,
    StatusUpdateRequest,
    WeeklyScheduleDayResponse,
    WeeklyScheduleUpdate,
    appointment_to_response,
)
from .service import AvailabilityService, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_availability_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    clock=Depends(get_clock),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db, tenant, clock)


def get_booking_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    clock=Depends(get_clock),
    rng=Depends(get_rng),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, tenant, clock, rng)


def get_schedule_service(
    db: Session = Depends(get_db), tenant: Tenant = Depends(get_current_tenant)
) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db, tenant)


def _exception_response(exc) -> ScheduleExceptionResponse:
    return ScheduleExceptionResponse(
        id=exc.id,
        professionalId=exc.professional_id,
        startDatetime=exc.start_datetime,
        endDatetime=exc.end_datetime,
        type=exc.type,
        reason=exc.reason,
    )


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability", response_model=DayAvailability)
async def get_availability(
    serviceId: int = Query(...),
    date: date = Query(...),
    professionalId: Optional[int] = Query(None),
    extraServiceIds: list[int] = Query([]),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable times for a date; without professionalId, the union over qualified professionals"""
    return service.get_availability(serviceId, date, professionalId, extraServiceIds)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    professionalId: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    appointments = service.list_appointments(startDate, endDate, professionalId, status)
    return [appointment_to_response(a) for a in appointments]


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: BookingRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    db: Session = Depends(get_db),
):
    """Book an appointment; fails with 409 if the time was taken since availability was shown"""
    appointment = service.commit_booking(
        data.serviceId,
        data.clientId,
        data.date,
        data.time,
        professional_id=data.professionalId,
        extra_service_ids=data.extraServiceIds,
        notes=data.notes,
    )
    schedule_notification(background_tasks, db, service.tenant, appointment.id, CONFIRMATION)
    return appointment_to_response(appointment)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    return appointment_to_response(service.get_appointment(appointment_id))


@router.put("/appointments/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    service: BookingService = Depends(get_booking_service),
):
    appointment = service.reschedule(appointment_id, data.date, data.time, data.professionalId)
    return appointment_to_response(appointment)


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    db: Session = Depends(get_db),
):
    appointment = service.update_status(appointment_id, data.status.value, data.reason)
    if data.status.value == "CANCELLED":
        schedule_notification(background_tasks, db, service.tenant, appointment.id, CANCELLATION)
    return appointment_to_response(appointment)


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    db: Session = Depends(get_db),
):
    appointment = service.cancel(appointment_id, data.reason)
    schedule_notification(background_tasks, db, service.tenant, appointment.id, CANCELLATION)
    return appointment_to_response(appointment)


@router.post("/appointments/{appointment_id}/notify")
async def notify_appointment_client(
    appointment_id: int,
    data: NotifyRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    db: Session = Depends(get_db),
):
    """Resend a confirmation or send a reminder over WhatsApp"""
    appointment = service.get_appointment(appointment_id)
    queued = schedule_notification(background_tasks, db, service.tenant, appointment.id, data.type)
    return {"queued": queued}


# ============================================================================
# PROFESSIONAL CALENDAR
# ============================================================================


@router.get("/professionals/{professional_id}/schedule", response_model=list[WeeklyScheduleDayResponse])
async def get_weekly_schedule(
    professional_id: int, service: ScheduleService = Depends(get_schedule_service)
):
    return service.get_weekly_schedule(professional_id)


@router.put("/professionals/{professional_id}/schedule", response_model=list[WeeklyScheduleDayResponse])
async def replace_weekly_schedule(
    professional_id: int,
    data: WeeklyScheduleUpdate,
    auth: AuthContext = Depends(get_current_auth),
    service: ScheduleService = Depends(get_schedule_service),
):
    ensure_can_manage_calendar(auth, professional_id)
    return service.replace_weekly_schedule(professional_id, data.schedule)


@router.get("/professionals/{professional_id}/breaks", response_model=list[BreakResponse])
async def list_breaks(professional_id: int, service: ScheduleService = Depends(get_schedule_service)):
    return [_break_response(b) for b in service.list_breaks(professional_id)]


@router.put("/professionals/{professional_id}/breaks", response_model=list[BreakResponse])
async def replace_breaks(
    professional_id: int,
    data: BreaksUpdate,
    auth: AuthContext = Depends(get_current_auth),
    service: ScheduleService = Depends(get_schedule_service),
):
    ensure_can_manage_calendar(auth, professional_id)
    return [_break_response(b) for b in service.replace_breaks(professional_id, data.breaks)]


@router.get(
    "/professionals/{professional_id}/exceptions", response_model=list[ScheduleExceptionResponse]
)
async def list_exceptions(
    professional_id: int,
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    service: ScheduleService = Depends(get_schedule_service),
):
    return [_exception_response(e) for e in service.list_exceptions(professional_id, startDate, endDate)]


@router.post(
    "/professionals/{professional_id}/exceptions",
    response_model=ExceptionCreatedResponse,
    status_code=201,
)
async def create_exception(
    professional_id: int,
    data: ScheduleExceptionCreate,
    auth: AuthContext = Depends(get_current_auth),
    service: ScheduleService = Depends(get_schedule_service),
):
    ensure_can_manage_calendar(auth, professional_id)
    exception, conflicts = service.create_exception(professional_id, data)
    warning = None
    if conflicts:
        warning = f"{len(conflicts)} existing appointment(s) overlap this exception and were kept"
    return ExceptionCreatedResponse(
        exception=_exception_response(exception),
        conflicts=[appointment_to_response(a) for a in conflicts],
        warning=warning,
    )


@router.delete("/professionals/{professional_id}/exceptions/{exception_id}")
async def delete_exception(
    professional_id: int,
    exception_id: int,
    auth: AuthContext = Depends(get_current_auth),
    service: ScheduleService = Depends(get_schedule_service),
):
    ensure_can_manage_calendar(auth, professional_id)
    service.delete_exception(professional_id, exception_id)
    return {"message": "Exception deleted"}


def _break_response(b) -> BreakResponse:
    return BreakResponse(
        id=b.id,
        dayOfWeek=b.day_of_week,
        startTime=b.start_time.strftime("%H:%M"),
        endTime=b.end_time.strftime("%H:%M"),
        label=b.label,
    )
