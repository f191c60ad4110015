"""
Appointment Notification Service
Builds client-facing WhatsApp messages and dispatches them after a booking
settles. Dispatch never raises: a failed notification must not affect the
appointment it describes.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from ..models import Appointment, Tenant
from .whatsapp_service import send_whatsapp_message

logger = logging.getLogger(__name__)

CONFIRMATION = "confirmation"
CANCELLATION = "cancellation"
REMINDER = "reminder"


def format_currency(value: Optional[float]) -> str:
    """Format as Brazilian Real, e.g. 1234.5 -> 'R$ 1.234,50'"""
    amount = f"{(value or 0):,.2f}"
    return "R$ " + amount.replace(",", "X").replace(".", ",").replace("X", ".")


def _service_names(appointment: Appointment) -> str:
    names = [s.name for s in appointment.services] or [appointment.service.name]
    return " + ".join(names)


def build_confirmation_message(appointment: Appointment, tenant: Tenant) -> str:
    return (
        "✅ *Agendamento Confirmado!*\n\n"
        f"Olá *{appointment.client.name}*! 😊\n\n"
        f"Seu agendamento na *{tenant.name}* foi confirmado com sucesso!\n\n"
        "📋 *Detalhes:*\n"
        f"🔹 Serviço: {_service_names(appointment)}\n"
        f"👨‍💼 Profissional: {appointment.professional.name}\n"
        f"📅 Data: {appointment.date_time.strftime('%d/%m/%Y')}\n"
        f"⏰ Horário: {appointment.date_time.strftime('%H:%M')}\n"
        f"⏳ Duração: {appointment.duration} min\n"
        f"💰 Valor: {format_currency(appointment.total_price)}\n\n"
        "💡 *Lembre-se:*\n"
        "• Chegue 10 min antes do horário\n"
        "• Em caso de cancelamento, avise com 24h de antecedência\n\n"
        "Nos vemos em breve! 🎉"
    )


def build_cancellation_message(appointment: Appointment, tenant: Tenant) -> str:
    reason = f"\n📝 Motivo: {appointment.cancel_reason}" if appointment.cancel_reason else ""
    return (
        "❌ *Agendamento Cancelado*\n\n"
        f"Olá *{appointment.client.name}*!\n\n"
        f"Seu agendamento na *{tenant.name}* foi cancelado:\n\n"
        f"🔹 Serviço: {_service_names(appointment)}\n"
        f"📅 Data: {appointment.date_time.strftime('%d/%m/%Y')}\n"
        f"⏰ Horário: {appointment.date_time.strftime('%H:%M')}"
        f"{reason}\n\n"
        "Quando quiser, é só agendar um novo horário! 📱"
    )


def build_reminder_message(appointment: Appointment, tenant: Tenant) -> str:
    return (
        "🔔 *Lembrete: Agendamento Amanhã!*\n\n"
        f"Olá *{appointment.client.name}*! 😊\n\n"
        f"Este é um lembrete do seu agendamento na *{tenant.name}*:\n\n"
        f"📅 *Amanhã - {appointment.date_time.strftime('%d/%m/%Y')}*\n"
        f"⏰ Horário: {appointment.date_time.strftime('%H:%M')}\n"
        f"🔹 Serviço: {_service_names(appointment)}\n"
        f"👨‍💼 Profissional: {appointment.professional.name}\n\n"
        "💡 Lembre-se de chegar 10 minutos antes!"
    )


MESSAGE_BUILDERS = {
    CONFIRMATION: build_confirmation_message,
    CANCELLATION: build_cancellation_message,
    REMINDER: build_reminder_message,
}


async def notify_appointment(db: Session, appointment_id: int, message_type: str) -> dict:
    """
    Send the ``message_type`` message for an appointment.

    Returns a dict with whatsapp_sent and whatsapp_error.
    """
    result = {"whatsapp_sent": False, "whatsapp_error": None}
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            result["whatsapp_error"] = "Appointment not found"
            return result

        if not appointment.client or not appointment.client.phone:
            logger.debug(f"⚠️ No phone for client of appointment {appointment_id}, skipping {message_type}")
            result["whatsapp_error"] = "No phone number"
            return result

        tenant = db.query(Tenant).filter(Tenant.id == appointment.tenant_id).first()
        message = MESSAGE_BUILDERS[message_type](appointment, tenant)
        sent, error = await send_whatsapp_message(
            db, tenant, appointment.client.phone, message, message_type, appointment_id=appointment.id
        )
        result["whatsapp_sent"] = sent
        result["whatsapp_error"] = error
    except Exception as e:
        result["whatsapp_error"] = str(e)
        logger.error(f"❌ Failed to send {message_type} for appointment {appointment_id}: {e}")
    return result


async def dispatch_appointment_notification(
    session_factory: sessionmaker, appointment_id: int, message_type: str
) -> dict:
    """Background-task entry point; opens its own session"""
    db = session_factory()
    try:
        return await notify_appointment(db, appointment_id, message_type)
    finally:
        db.close()


def schedule_notification(background_tasks, db: Session, tenant: Tenant, appointment_id: int, message_type: str) -> bool:
    """Queue a notification to run after the response; skipped when the tenant has WhatsApp off"""
    if not tenant.whatsapp_enabled:
        return False
    background_tasks.add_task(
        dispatch_appointment_notification, sessionmaker(bind=db.get_bind()), appointment_id, message_type
    )
    return True
