"""Directory router - professionals, services, clients and subscription usage"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import AuthContext, get_current_tenant, require_manager
from ...database import get_db
from ...models import Client, Professional, Service, Tenant
from ...plan_limits import get_usage_stats
from .schemas import (
    ClientCreate,
    ClientResponse,
    ProfessionalCreate,
    ProfessionalResponse,
    ProfessionalUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from .service import DirectoryService

router = APIRouter(tags=["Directory"])


def get_directory_service(
    db: Session = Depends(get_db), tenant: Tenant = Depends(get_current_tenant)
) -> DirectoryService:
    """Dependency injection for DirectoryService"""
    return DirectoryService(db, tenant)


def _professional(p: Professional) -> ProfessionalResponse:
    return ProfessionalResponse(
        id=p.id,
        name=p.name,
        email=p.email,
        phone=p.phone,
        specialty=p.specialty,
        isActive=p.is_active,
        serviceIds=[s.id for s in p.services],
    )


def _service(s: Service) -> ServiceResponse:
    return ServiceResponse(
        id=s.id,
        name=s.name,
        description=s.description,
        durationMinutes=s.duration_minutes,
        price=s.price or 0,
        isActive=s.is_active,
    )


def _client(c: Client) -> ClientResponse:
    return ClientResponse(
        id=c.id,
        name=c.name,
        phone=c.phone,
        email=c.email,
        birthday=c.birthday,
        notes=c.notes,
        totalVisits=c.total_visits or 0,
        totalSpent=c.total_spent or 0,
        lastVisit=c.last_visit,
    )


@router.get("/professionals", response_model=list[ProfessionalResponse])
async def list_professionals(
    includeInactive: bool = Query(False), service: DirectoryService = Depends(get_directory_service)
):
    return [_professional(p) for p in service.list_professionals(includeInactive)]


@router.post("/professionals", response_model=ProfessionalResponse, status_code=201)
async def create_professional(
    data: ProfessionalCreate,
    _: AuthContext = Depends(require_manager),
    service: DirectoryService = Depends(get_directory_service),
):
    return _professional(service.create_professional(data))


@router.patch("/professionals/{professional_id}", response_model=ProfessionalResponse)
async def update_professional(
    professional_id: int,
    data: ProfessionalUpdate,
    _: AuthContext = Depends(require_manager),
    service: DirectoryService = Depends(get_directory_service),
):
    return _professional(service.update_professional(professional_id, data))


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(
    includeInactive: bool = Query(False), service: DirectoryService = Depends(get_directory_service)
):
    return [_service(s) for s in service.list_services(includeInactive)]


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    _: AuthContext = Depends(require_manager),
    service: DirectoryService = Depends(get_directory_service),
):
    return _service(service.create_service(data))


@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    _: AuthContext = Depends(require_manager),
    service: DirectoryService = Depends(get_directory_service),
):
    return _service(service.update_service(service_id, data))


@router.get("/clients", response_model=list[ClientResponse])
async def list_clients(
    search: Optional[str] = Query(None), service: DirectoryService = Depends(get_directory_service)
):
    return [_client(c) for c in service.list_clients(search)]


@router.post("/clients", response_model=ClientResponse, status_code=201)
async def create_client(data: ClientCreate, service: DirectoryService = Depends(get_directory_service)):
    return _client(service.create_client(data))


@router.get("/subscription/usage")
async def subscription_usage(tenant: Tenant = Depends(get_current_tenant), db: Session = Depends(get_db)):
    return get_usage_stats(tenant, db)
