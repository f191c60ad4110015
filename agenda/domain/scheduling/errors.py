"""Scheduling error taxonomy.

Every error carries the HTTP status and machine-readable code used by the
exception handler registered in ``agenda.main``.
"""

from typing import Optional


class SchedulingError(Exception):
    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.extra}


class SlotUnavailable(SchedulingError):
    """The authoritative check found the interval unavailable; the caller must re-query"""

    status_code = 409
    code = "slot_unavailable"

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or f"Selected time is no longer available ({reason})", reason=reason)
        self.reason = reason


class ProfessionalNotFound(SchedulingError):
    status_code = 404
    code = "professional_not_found"


class ServiceNotFound(SchedulingError):
    status_code = 404
    code = "service_not_found"


class ClientNotFound(SchedulingError):
    status_code = 404
    code = "client_not_found"


class AppointmentNotFound(SchedulingError):
    status_code = 404
    code = "appointment_not_found"


class ExceptionNotFound(SchedulingError):
    status_code = 404
    code = "exception_not_found"


class TenantNotFound(SchedulingError):
    status_code = 404
    code = "tenant_not_found"


class InvalidScheduleData(SchedulingError):
    status_code = 400
    code = "invalid_schedule"


class InvalidStatusTransition(SchedulingError):
    status_code = 409
    code = "invalid_status_transition"


class PlanLimitExceeded(SchedulingError):
    status_code = 403
    code = "plan_limit_exceeded"


class UpstreamUnavailable(SchedulingError):
    """A directory or database lookup failed; not retried here"""

    status_code = 503
    code = "upstream_unavailable"
