import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from agenda.auth import create_access_token  # noqa: E402
from agenda.database import Base, get_db  # noqa: E402
from agenda.domain.scheduling.dependencies import get_clock  # noqa: E402
from agenda.main import app  # noqa: E402
from agenda.models import (  # noqa: E402
    Appointment,
    Client,
    Professional,
    ProfessionalSchedule,
    RecurringBreak,
    ScheduleException,
    Service,
    Tenant,
)
from agenda.rate_limiter import reset_rate_limits  # noqa: E402

# 2025-06-02 is a Monday; "now" is early that morning in business time
MONDAY = date(2025, 6, 2)
TUESDAY = MONDAY + timedelta(days=1)
SUNDAY = MONDAY - timedelta(days=1)
NOW = datetime(2025, 6, 2, 7, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def tenant(db):
    tenant = Tenant(
        name="Barbearia do Zé",
        slug="barbearia-do-ze",
        timezone="America/Sao_Paulo",
        plan="PREMIUM",
        slot_granularity_minutes=30,
    )
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture
def service(db, tenant):
    service = Service(tenant_id=tenant.id, name="Corte", duration_minutes=30, price=40.0)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def professional(db, tenant, service):
    """Works Monday 09:00-12:00, offers the haircut"""
    professional = Professional(tenant_id=tenant.id, name="João", services=[service])
    db.add(professional)
    db.commit()
    add_schedule(db, professional, 1, "09:00", "12:00")
    return professional


@pytest.fixture
def client_record(db, tenant):
    client = Client(tenant_id=tenant.id, name="Maria", phone="5511987654321")
    db.add(client)
    db.commit()
    return client


@pytest.fixture
def api(engine, session_factory, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    reset_rate_limits()
    yield TestClient(app)
    app.dependency_overrides.clear()
    reset_rate_limits()


def make_headers(tenant_id, role="OWNER", professional_id=None):
    claims = {"tenantId": tenant_id, "role": role, "userId": "user-1", "email": "dono@example.com"}
    if professional_id is not None:
        claims["professionalId"] = professional_id
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.fixture
def auth_headers(tenant):
    return make_headers(tenant.id)


def parse_hhmm(value):
    return datetime.strptime(value, "%H:%M").time()


def add_schedule(db, professional, day_of_week, start, end, is_active=True):
    rule = ProfessionalSchedule(
        professional_id=professional.id,
        day_of_week=day_of_week,
        start_time=parse_hhmm(start),
        end_time=parse_hhmm(end),
        is_active=is_active,
    )
    db.add(rule)
    db.commit()
    return rule


def add_break(db, professional, start, end, day_of_week=None):
    item = RecurringBreak(
        professional_id=professional.id,
        day_of_week=day_of_week,
        start_time=parse_hhmm(start),
        end_time=parse_hhmm(end),
    )
    db.add(item)
    db.commit()
    return item


def add_exception(db, professional, start, end, type="BLOCK", reason=None):
    exc = ScheduleException(
        professional_id=professional.id, start_datetime=start, end_datetime=end, type=type, reason=reason
    )
    db.add(exc)
    db.commit()
    return exc


def add_appointment(db, tenant, professional, client, service, start, duration=30, status="SCHEDULED"):
    appointment = Appointment(
        tenant_id=tenant.id,
        professional_id=professional.id,
        client_id=client.id,
        service_id=service.id,
        date_time=start,
        duration=duration,
        total_price=service.price,
        status=status,
    )
    db.add(appointment)
    db.commit()
    return appointment


def at(day, hhmm):
    return datetime.combine(day, parse_hhmm(hhmm))


def slot_map(availability):
    return {s.time: (s.available, s.reason) for s in availability.slots}


