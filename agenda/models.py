import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy the professional's calendar
ACTIVE_STATUSES = (
    AppointmentStatus.SCHEDULED.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.IN_PROGRESS.value,
)


class ExceptionType(str, enum.Enum):
    BLOCK = "BLOCK"
    DAY_OFF = "DAY_OFF"


class AppointmentSource(str, enum.Enum):
    DASHBOARD = "DASHBOARD"
    PUBLIC = "PUBLIC"


professional_services = Table(
    "professional_services",
    Base.metadata,
    Column("professional_id", Integer, ForeignKey("professionals.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)

appointment_services = Table(
    "appointment_services",
    Base.metadata,
    Column("appointment_id", Integer, ForeignKey("appointments.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)  # Public booking page handle
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(500), nullable=True)
    timezone = Column(String(64), nullable=True)  # IANA name, falls back to BUSINESS_TIMEZONE
    slot_granularity_minutes = Column(Integer, nullable=True)  # Falls back to SLOT_GRANULARITY_MINUTES
    plan = Column(String(20), default="FREE", nullable=False)  # FREE, BASIC, PREMIUM
    subscription_end = Column(DateTime, nullable=True)  # null = no expiry
    is_active = Column(Boolean, default=True, nullable=False)
    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    whatsapp_instance = Column(String(100), nullable=True)  # Overrides EVOLUTION_INSTANCE
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    professionals = relationship("Professional", back_populates="tenant", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="tenant", cascade="all, delete-orphan")
    clients = relationship("Client", back_populates="tenant", cascade="all, delete-orphan")


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    specialty = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Bumped under a row lock by every booking commit for this professional
    booking_sequence = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant", back_populates="professionals")
    services = relationship("Service", secondary=professional_services, back_populates="professionals")
    schedules = relationship(
        "ProfessionalSchedule", back_populates="professional", cascade="all, delete-orphan"
    )
    breaks = relationship("RecurringBreak", back_populates="professional", cascade="all, delete-orphan")
    exceptions = relationship(
        "ScheduleException", back_populates="professional", cascade="all, delete-orphan"
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant", back_populates="services")
    professionals = relationship(
        "Professional", secondary=professional_services, back_populates="services"
    )


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    birthday = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    total_visits = Column(Integer, default=0, nullable=False)
    total_spent = Column(Float, default=0, nullable=False)
    last_visit = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant", back_populates="clients")
    appointments = relationship("Appointment", back_populates="client")


class ProfessionalSchedule(Base):
    """Weekly working hours, one active row per day of week (0 = Sunday)"""

    __tablename__ = "professional_schedules"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(
        Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    professional = relationship("Professional", back_populates="schedules")


class RecurringBreak(Base):
    __tablename__ = "recurring_breaks"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(
        Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(Integer, nullable=True)  # null = every working day
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    label = Column(String(100), nullable=True)

    professional = relationship("Professional", back_populates="breaks")


class ScheduleException(Base):
    __tablename__ = "schedule_exceptions"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(
        Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Local civil time in the tenant's business timezone
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    type = Column(String(20), nullable=False, default=ExceptionType.BLOCK.value)
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    professional = relationship("Professional", back_populates="exceptions")

    __table_args__ = (
        Index("ix_schedule_exceptions_prof_range", "professional_id", "start_datetime", "end_datetime"),
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)  # Main service
    # Local civil time in the tenant's business timezone
    date_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes, sum of all services
    total_price = Column(Float, default=0, nullable=False)
    status = Column(String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False)
    source = Column(String(20), default=AppointmentSource.DASHBOARD.value, nullable=False)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional")
    client = relationship("Client", back_populates="appointments")
    service = relationship("Service")
    services = relationship("Service", secondary=appointment_services)

    __table_args__ = (
        Index("ix_appointments_prof_datetime", "professional_id", "date_time"),
    )


class WhatsAppMessageLog(Base):
    __tablename__ = "whatsapp_message_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    to_phone = Column(String(30), nullable=False)
    message_type = Column(String(50), nullable=False)  # confirmation, cancellation, reminder
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)  # sent, failed
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
