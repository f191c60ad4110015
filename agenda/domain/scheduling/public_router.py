"""Public booking page router - no authentication, tenant resolved by slug"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...config import PUBLIC_BOOKING_RATE_LIMIT, PUBLIC_BOOKING_RATE_WINDOW
from ...database import get_db
from ...models import AppointmentSource, AppointmentStatus, Client, Professional, Service, Tenant
from ...plan_limits import check_plan_limit
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import CONFIRMATION, schedule_notification
from .dependencies import get_clock, get_rng
from .errors import PlanLimitExceeded, TenantNotFound
from .records import DayAvailability
from .repository import SchedulingRepository, is_qualified, translate_db_errors
from .schemas import (
    PublicBookingRequest,
    PublicBookingResponse,
    PublicBusinessResponse,
    PublicProfessionalResponse,
    PublicServiceResponse,
)
from .service import AvailabilityService, BookingService
from .timeutils import get_timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["Public Booking"])

public_booking_limit = create_rate_limiter(
    limit=PUBLIC_BOOKING_RATE_LIMIT,
    window_seconds=PUBLIC_BOOKING_RATE_WINDOW,
    key_prefix="public_booking",
)


def get_public_tenant(slug: str, db: Session = Depends(get_db)) -> Tenant:
    with translate_db_errors():
        tenant = SchedulingRepository.get_tenant_by_slug(db, slug)
    if not tenant:
        raise TenantNotFound("Business not found or inactive")
    return tenant


@router.get("/business/{slug}", response_model=PublicBusinessResponse)
async def get_business(tenant: Tenant = Depends(get_public_tenant)):
    return PublicBusinessResponse(
        name=tenant.name,
        slug=tenant.slug,
        phone=tenant.phone,
        address=tenant.address,
        timezone=get_timezone(tenant.timezone).zone,
    )


@router.get("/business/{slug}/services", response_model=list[PublicServiceResponse])
async def list_services(tenant: Tenant = Depends(get_public_tenant), db: Session = Depends(get_db)):
    services = (
        db.query(Service)
        .filter(Service.tenant_id == tenant.id, Service.is_active.is_(True))
        .order_by(Service.name)
        .all()
    )
    return [
        PublicServiceResponse(
            id=s.id,
            name=s.name,
            description=s.description,
            durationMinutes=s.duration_minutes,
            price=s.price or 0,
        )
        for s in services
    ]


@router.get("/business/{slug}/professionals", response_model=list[PublicProfessionalResponse])
async def list_professionals(
    serviceId: Optional[int] = Query(None),
    tenant: Tenant = Depends(get_public_tenant),
    db: Session = Depends(get_db),
):
    professionals = (
        db.query(Professional)
        .filter(Professional.tenant_id == tenant.id, Professional.is_active.is_(True))
        .order_by(Professional.name)
        .all()
    )
    if serviceId is not None:
        professionals = [p for p in professionals if is_qualified(p, serviceId)]
    return [PublicProfessionalResponse(id=p.id, name=p.name, specialty=p.specialty) for p in professionals]


@router.get("/business/{slug}/availability", response_model=DayAvailability)
async def get_public_availability(
    serviceId: int = Query(...),
    date: date = Query(...),
    professionalId: Optional[int] = Query(None),
    extraServiceIds: list[int] = Query([]),
    tenant: Tenant = Depends(get_public_tenant),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    service = AvailabilityService(db, tenant, clock)
    return service.get_availability(serviceId, date, professionalId, extraServiceIds)


@router.post(
    "/business/{slug}/appointments",
    response_model=PublicBookingResponse,
    status_code=201,
)
async def create_public_appointment(
    data: PublicBookingRequest,
    background_tasks: BackgroundTasks,
    tenant: Tenant = Depends(get_public_tenant),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    rng=Depends(get_rng),
    _: None = Depends(public_booking_limit),
):
    """
    Book from the public page. The client is looked up by phone within the
    business and created when new; the appointment is created CONFIRMED.
    """
    logger.info(f"📥 Public booking for tenant {tenant.slug}: service={data.serviceId}, {data.date} {data.time}")
    client = _find_or_create_client(db, tenant, data)

    booking = BookingService(db, tenant, clock, rng)
    appointment = booking.commit_booking(
        data.serviceId,
        client.id,
        data.date,
        data.time,
        professional_id=data.professionalId,
        extra_service_ids=data.extraServiceIds,
        notes=data.notes,
        status=AppointmentStatus.CONFIRMED.value,
        source=AppointmentSource.PUBLIC.value,
    )
    schedule_notification(background_tasks, db, tenant, appointment.id, CONFIRMATION)

    return PublicBookingResponse(
        message="Appointment booked successfully!",
        appointmentId=appointment.id,
        professionalId=appointment.professional_id,
        professionalName=appointment.professional.name,
        date=appointment.date_time.strftime("%Y-%m-%d"),
        time=appointment.date_time.strftime("%H:%M"),
        duration=appointment.duration,
        totalPrice=appointment.total_price or 0,
        status=appointment.status,
    )


def _find_or_create_client(db: Session, tenant: Tenant, data: PublicBookingRequest) -> Client:
    with translate_db_errors():
        client = SchedulingRepository.get_client_by_phone(db, tenant.id, data.clientPhone)
        if client:
            if data.clientEmail and not client.email:
                client.email = data.clientEmail
                db.commit()
            return client

        allowed, current, limit = check_plan_limit(tenant, db, "clients")
        if not allowed:
            raise PlanLimitExceeded(
                "This business cannot accept new clients right now", current=current, limit=limit
            )

        client = Client(
            tenant_id=tenant.id, name=data.clientName.strip(), phone=data.clientPhone, email=data.clientEmail
        )
        db.add(client)
        db.commit()
        db.refresh(client)
        logger.info(f"👤 New client {client.id} created from public booking for tenant {tenant.id}")
        return client
