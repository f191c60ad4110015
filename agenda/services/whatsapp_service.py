"""
WhatsApp Service
Sends text messages through the Evolution API gateway and records every attempt
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import EVOLUTION_API_KEY, EVOLUTION_API_URL, EVOLUTION_INSTANCE, WHATSAPP_TIMEOUT_SECONDS
from ..models import Tenant, WhatsAppMessageLog
from ..plan_limits import can_use_feature
from ..shared.validators import validate_br_phone

logger = logging.getLogger(__name__)


def format_phone_number(phone: str) -> Optional[str]:
    """Gateway number format (55 + DDD + number); None when it cannot be normalized"""
    try:
        return validate_br_phone(phone)
    except ValueError:
        logger.warning(f"⚠️ Unrecognized phone format: {phone}")
        return None


async def _post_text(url: str, headers: dict, payload: dict) -> tuple[int, object]:
    async with httpx.AsyncClient(timeout=WHATSAPP_TIMEOUT_SECONDS) as client:
        response = await client.post(url, json=payload, headers=headers)
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return response.status_code, body


def _log_attempt(
    db: Session,
    tenant: Tenant,
    to_phone: str,
    message: str,
    message_type: str,
    appointment_id: Optional[int],
    error: Optional[str],
) -> None:
    db.add(
        WhatsAppMessageLog(
            tenant_id=tenant.id,
            appointment_id=appointment_id,
            to_phone=to_phone,
            message_type=message_type,
            message=message,
            status="failed" if error else "sent",
            error_message=error,
        )
    )
    db.commit()


async def send_whatsapp_message(
    db: Session,
    tenant: Tenant,
    to_phone: str,
    message: str,
    message_type: str,
    appointment_id: Optional[int] = None,
) -> tuple[bool, Optional[str]]:
    """
    Send a WhatsApp text message for a tenant

    Args:
        db: Database session
        tenant: Sending tenant (must have WhatsApp enabled and the plan feature)
        to_phone: Recipient phone in any Brazilian format
        message: Message text
        message_type: confirmation, cancellation, reminder, ...
        appointment_id: Related appointment, if any

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not tenant.whatsapp_enabled:
        logger.debug(f"WhatsApp disabled for tenant {tenant.id}")
        return False, "WhatsApp disabled"

    if not can_use_feature(tenant, "whatsapp_integration"):
        logger.debug(f"WhatsApp not included in plan for tenant {tenant.id}")
        return False, "WhatsApp not available in current plan"

    instance = tenant.whatsapp_instance or EVOLUTION_INSTANCE
    if not EVOLUTION_API_URL or not EVOLUTION_API_KEY or not instance:
        logger.error("❌ Evolution API configuration incomplete")
        return False, "WhatsApp gateway not configured"

    number = format_phone_number(to_phone)
    if not number:
        return False, "Invalid phone number"

    logger.info(f"📱 Sending WhatsApp: type={message_type}, to={number}, tenant={tenant.id}")
    error = None
    try:
        status_code, body = await _post_text(
            f"{EVOLUTION_API_URL.rstrip('/')}/message/sendText/{instance}",
            {"apikey": EVOLUTION_API_KEY},
            {"number": number, "text": message},
        )
        if status_code >= 400:
            error = f"Gateway returned HTTP {status_code}: {body}"
    except httpx.HTTPError as e:
        error = f"Gateway request failed: {e}"

    _log_attempt(db, tenant, number, message, message_type, appointment_id, error)

    if error:
        logger.error(f"❌ WhatsApp {message_type} to {number} failed: {error}")
        return False, error

    logger.info(f"✅ WhatsApp {message_type} sent to {number}")
    return True, None
