"""
Plan limits and feature flags for subscription-based tenant restrictions.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .models import Appointment, Client, Professional, Service, Tenant

logger = logging.getLogger(__name__)

# -1 means unlimited
PLAN_FEATURES = {
    "FREE": {
        "max_clients": 10,
        "max_appointments": 50,
        "max_services": 3,
        "max_professionals": 1,
        "whatsapp_integration": False,
        "custom_reports": False,
    },
    "BASIC": {
        "max_clients": 100,
        "max_appointments": 500,
        "max_services": 10,
        "max_professionals": 3,
        "whatsapp_integration": True,
        "custom_reports": False,
    },
    "PREMIUM": {
        "max_clients": -1,
        "max_appointments": -1,
        "max_services": -1,
        "max_professionals": -1,
        "whatsapp_integration": True,
        "custom_reports": True,
    },
}

RESOURCE_MODELS = {
    "clients": Client,
    "appointments": Appointment,
    "services": Service,
    "professionals": Professional,
}


def get_effective_plan(tenant: Tenant, now: Optional[datetime] = None) -> str:
    """Expired subscriptions and inactive tenants fall back to FREE"""
    now = now or datetime.utcnow()
    expired = tenant.subscription_end is not None and tenant.subscription_end < now
    if expired or not tenant.is_active:
        return "FREE"
    plan = (tenant.plan or "FREE").upper()
    return plan if plan in PLAN_FEATURES else "FREE"


def can_use_feature(tenant: Tenant, feature: str) -> bool:
    return PLAN_FEATURES[get_effective_plan(tenant)].get(feature) is True


def check_plan_limit(tenant: Tenant, db: Session, resource: str) -> tuple[bool, int, int]:
    """
    Check whether the tenant may create another ``resource``.
    Returns (allowed, current, limit); limit -1 means unlimited.
    """
    if resource not in RESOURCE_MODELS:
        raise ValueError(f"Resource type '{resource}' not supported")

    model = RESOURCE_MODELS[resource]
    limit = PLAN_FEATURES[get_effective_plan(tenant)][f"max_{resource}"]
    current = db.query(model).filter(model.tenant_id == tenant.id).count()
    allowed = limit == -1 or current < limit
    if not allowed:
        logger.warning(f"⚠️ Tenant {tenant.id} reached {resource} limit: {current}/{limit}")
    return allowed, current, limit


def get_usage_stats(tenant: Tenant, db: Session) -> dict:
    """Current usage and limit per resource for the tenant's effective plan"""
    plan = get_effective_plan(tenant)
    usage = {}
    for resource in RESOURCE_MODELS:
        _, current, limit = check_plan_limit(tenant, db, resource)
        usage[resource] = {"current": current, "limit": None if limit == -1 else limit}
    return {
        "plan": plan,
        "is_expired": tenant.subscription_end is not None and tenant.subscription_end < datetime.utcnow(),
        "subscription_end": tenant.subscription_end,
        "features": {k: v for k, v in PLAN_FEATURES[plan].items() if not k.startswith("max_")},
        "usage": usage,
    }
