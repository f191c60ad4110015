"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import Appointment, AppointmentStatus, ExceptionType
from ...shared.validators import parse_time, validate_br_phone, validate_email

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _parse_time_field(v):
    if isinstance(v, time):
        return v
    return parse_time(v)


# ============================================================================
# WEEKLY SCHEDULE, BREAKS, EXCEPTIONS
# ============================================================================


class WeeklyScheduleDay(BaseModel):
    dayOfWeek: int = Field(ge=0, le=6)
    startTime: time
    endTime: time
    isActive: bool = True

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def validate_time(cls, v):
        return _parse_time_field(v)


class WeeklyScheduleUpdate(BaseModel):
    schedule: list[WeeklyScheduleDay]


class WeeklyScheduleDayResponse(BaseModel):
    dayOfWeek: int
    dayName: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isActive: bool = False


class BreakItem(BaseModel):
    dayOfWeek: Optional[int] = Field(default=None, ge=0, le=6)
    startTime: time
    endTime: time
    label: Optional[str] = None

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def validate_time(cls, v):
        return _parse_time_field(v)


class BreaksUpdate(BaseModel):
    breaks: list[BreakItem]


class BreakResponse(BaseModel):
    id: int
    dayOfWeek: Optional[int] = None
    startTime: str
    endTime: str
    label: Optional[str] = None


class ScheduleExceptionCreate(BaseModel):
    startDatetime: datetime
    endDatetime: datetime
    type: ExceptionType = ExceptionType.BLOCK
    reason: Optional[str] = Field(default=None, max_length=500)


class ScheduleExceptionResponse(BaseModel):
    id: int
    professionalId: int
    startDatetime: datetime
    endDatetime: datetime
    type: str
    reason: Optional[str] = None


# ============================================================================
# APPOINTMENTS
# ============================================================================


class BookingRequest(BaseModel):
    """Dashboard booking; professionalId None lets the system choose"""

    serviceId: int
    clientId: int
    date: date
    time: time
    professionalId: Optional[int] = None
    extraServiceIds: list[int] = []
    notes: Optional[str] = None

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return _parse_time_field(v)


class RescheduleRequest(BaseModel):
    date: date
    time: time
    professionalId: Optional[int] = None

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return _parse_time_field(v)


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class AppointmentResponse(BaseModel):
    id: int
    professionalId: int
    professionalName: Optional[str] = None
    clientId: int
    clientName: Optional[str] = None
    serviceId: int
    serviceIds: list[int] = []
    dateTime: datetime
    date: str
    time: str
    duration: int
    totalPrice: float
    status: str
    source: str
    notes: Optional[str] = None
    cancelReason: Optional[str] = None


class ExceptionCreatedResponse(BaseModel):
    exception: ScheduleExceptionResponse
    conflicts: list[AppointmentResponse] = []
    warning: Optional[str] = None


class NotifyRequest(BaseModel):
    type: str = Field(pattern="^(confirmation|reminder|cancellation)$")


def appointment_to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        professionalId=appointment.professional_id,
        professionalName=appointment.professional.name if appointment.professional else None,
        clientId=appointment.client_id,
        clientName=appointment.client.name if appointment.client else None,
        serviceId=appointment.service_id,
        serviceIds=[s.id for s in appointment.services],
        dateTime=appointment.date_time,
        date=appointment.date_time.strftime("%Y-%m-%d"),
        time=appointment.date_time.strftime("%H:%M"),
        duration=appointment.duration,
        totalPrice=appointment.total_price or 0,
        status=appointment.status,
        source=appointment.source,
        notes=appointment.notes,
        cancelReason=appointment.cancel_reason,
    )


# ============================================================================
# PUBLIC BOOKING PAGE
# ============================================================================


class PublicBusinessResponse(BaseModel):
    name: str
    slug: str
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: str


class PublicServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    durationMinutes: int
    price: float


class PublicProfessionalResponse(BaseModel):
    id: int
    name: str
    specialty: Optional[str] = None


class PublicBookingRequest(BaseModel):
    clientName: str = Field(min_length=1, max_length=255)
    clientPhone: str
    clientEmail: Optional[str] = None
    serviceId: int
    extraServiceIds: list[int] = []
    professionalId: Optional[int] = None
    date: date
    time: time
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("clientPhone")
    @classmethod
    def validate_phone(cls, v):
        return validate_br_phone(v)

    @field_validator("clientEmail")
    @classmethod
    def validate_client_email(cls, v):
        return validate_email(v)

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return _parse_time_field(v)


class PublicBookingResponse(BaseModel):
    message: str
    appointmentId: int
    professionalId: int
    professionalName: str
    date: str
    time: str
    duration: int
    totalPrice: float
    status: str
