"""Directory service - Business logic for professionals, services and clients"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Client, Professional, Service, Tenant
from ...plan_limits import check_plan_limit
from .repository import DirectoryRepository
from .schemas import ClientCreate, ProfessionalCreate, ProfessionalUpdate, ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class DirectoryService:
    """Service layer for the tenant's professionals, services and clients"""

    def __init__(self, db: Session, tenant: Tenant):
        self.db = db
        self.tenant = tenant
        self.repo = DirectoryRepository()

    def _check_limit(self, resource: str) -> None:
        allowed, current, limit = check_plan_limit(self.tenant, self.db, resource)
        if not allowed:
            raise HTTPException(
                status_code=403,
                detail=f"You've reached your plan limit of {limit} {resource}. Please upgrade to add more.",
            )

    def _resolve_services(self, service_ids: list[int]) -> list[Service]:
        services = self.repo.get_services_by_ids(self.db, self.tenant.id, service_ids)
        if len(services) != len(set(service_ids)):
            raise HTTPException(status_code=400, detail="One or more services were not found")
        return services

    # Professionals
    def list_professionals(self, include_inactive: bool = False) -> list[Professional]:
        return self.repo.list_professionals(self.db, self.tenant.id, include_inactive)

    def get_professional(self, professional_id: int) -> Professional:
        professional = self.repo.get_professional(self.db, self.tenant.id, professional_id)
        if not professional:
            raise HTTPException(status_code=404, detail="Professional not found")
        return professional

    def create_professional(self, data: ProfessionalCreate) -> Professional:
        logger.info(f"📥 Creating professional for tenant {self.tenant.id}")
        self._check_limit("professionals")
        professional = Professional(
            tenant_id=self.tenant.id,
            name=data.name.strip(),
            email=data.email,
            phone=data.phone,
            specialty=data.specialty,
        )
        professional.services = self._resolve_services(data.serviceIds)
        return self.repo.save(self.db, professional)

    def update_professional(self, professional_id: int, data: ProfessionalUpdate) -> Professional:
        professional = self.get_professional(professional_id)
        if data.name is not None:
            professional.name = data.name.strip()
        if data.email is not None:
            professional.email = data.email
        if data.phone is not None:
            professional.phone = data.phone
        if data.specialty is not None:
            professional.specialty = data.specialty
        if data.isActive is not None:
            professional.is_active = data.isActive
        if data.serviceIds is not None:
            professional.services = self._resolve_services(data.serviceIds)
        return self.repo.save(self.db, professional)

    # Services
    def list_services(self, include_inactive: bool = False) -> list[Service]:
        return self.repo.list_services(self.db, self.tenant.id, include_inactive)

    def create_service(self, data: ServiceCreate) -> Service:
        self._check_limit("services")
        service = Service(
            tenant_id=self.tenant.id,
            name=data.name.strip(),
            description=data.description,
            duration_minutes=data.durationMinutes,
            price=data.price,
        )
        return self.repo.save(self.db, service)

    def update_service(self, service_id: int, data: ServiceUpdate) -> Service:
        service = self.repo.get_service(self.db, self.tenant.id, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if data.name is not None:
            service.name = data.name.strip()
        if data.description is not None:
            service.description = data.description
        if data.durationMinutes is not None:
            service.duration_minutes = data.durationMinutes
        if data.price is not None:
            service.price = data.price
        if data.isActive is not None:
            service.is_active = data.isActive
        return self.repo.save(self.db, service)

    # Clients
    def list_clients(self, search: Optional[str] = None) -> list[Client]:
        return self.repo.list_clients(self.db, self.tenant.id, search)

    def create_client(self, data: ClientCreate) -> Client:
        self._check_limit("clients")
        if data.phone and self.repo.get_client_by_phone(self.db, self.tenant.id, data.phone):
            raise HTTPException(status_code=409, detail="A client with this phone already exists")
        client = Client(
            tenant_id=self.tenant.id,
            name=data.name.strip(),
            phone=data.phone,
            email=data.email,
            birthday=data.birthday,
            notes=data.notes,
        )
        return self.repo.save(self.db, client)
