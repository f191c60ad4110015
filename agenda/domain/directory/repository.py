"""Directory repository - Database operations for professionals, services and clients"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import Client, Professional, Service


class DirectoryRepository:
    """Repository for directory database operations"""

    @staticmethod
    def list_professionals(db: Session, tenant_id: int, include_inactive: bool = False) -> list[Professional]:
        query = (
            db.query(Professional)
            .options(selectinload(Professional.services))
            .filter(Professional.tenant_id == tenant_id)
        )
        if not include_inactive:
            query = query.filter(Professional.is_active.is_(True))
        return query.order_by(Professional.name).all()

    @staticmethod
    def get_professional(db: Session, tenant_id: int, professional_id: int) -> Optional[Professional]:
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id, Professional.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def list_services(db: Session, tenant_id: int, include_inactive: bool = False) -> list[Service]:
        query = db.query(Service).filter(Service.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.name).all()

    @staticmethod
    def get_service(db: Session, tenant_id: int, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.tenant_id == tenant_id).first()

    @staticmethod
    def get_services_by_ids(db: Session, tenant_id: int, service_ids: list[int]) -> list[Service]:
        if not service_ids:
            return []
        return db.query(Service).filter(Service.tenant_id == tenant_id, Service.id.in_(service_ids)).all()

    @staticmethod
    def list_clients(db: Session, tenant_id: int, search: Optional[str] = None) -> list[Client]:
        query = db.query(Client).filter(Client.tenant_id == tenant_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Client.name.ilike(pattern), Client.phone.ilike(pattern)))
        return query.order_by(Client.name).all()

    @staticmethod
    def get_client_by_phone(db: Session, tenant_id: int, phone: str) -> Optional[Client]:
        return db.query(Client).filter(Client.tenant_id == tenant_id, Client.phone == phone).first()

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
