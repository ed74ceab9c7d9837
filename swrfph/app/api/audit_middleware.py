"""Request level audit trail.

Every API call outside of the skipped paths leaves one ``AuditLog`` row;
401/403 responses additionally leave a ``SecurityEvent``. Writes go
through their own session so a failed request never loses its trail, and
audit failures never change the response.
"""

from __future__ import annotations

import logging
import re
import time

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from swrfph.app.db.models.core_types import AuditAction, AuditSeverity
from swrfph.services import audit

logger = logging.getLogger(__name__)

SKIP_PREFIXES = (
    "/health",
    "/v1/audit",
    "/v1/auth/login",
    "/v1/auth/register",
    "/docs",
    "/openapi.json",
    "/redoc",
)

METHOD_ACTIONS = {
    "GET": AuditAction.read,
    "POST": AuditAction.create,
    "PUT": AuditAction.update,
    "PATCH": AuditAction.update,
    "DELETE": AuditAction.delete,
}

RESOURCE_NAMES = {
    "auth": "Auth",
    "users": "User",
    "medicines": "Medicine",
    "orders": "Order",
    "order-templates": "OrderTemplate",
    "notifications": "Notification",
    "settings": "Setting",
    "invoices": "Invoice",
    "analytics": "Analytics",
    "dashboard": "Dashboard",
    "reports": "Report",
}

_ID_RE = re.compile(r"^([0-9a-fA-F-]{32,36}|\d+)$")


def resource_for(path: str) -> tuple[str, str | None]:
    parts = [p for p in path.split("/") if p]
    if parts and parts[0] == "v1":
        parts = parts[1:]
    if not parts:
        return "Unknown", None
    resource = RESOURCE_NAMES.get(parts[0], parts[0].capitalize())
    resource_id = next((p for p in reversed(parts[1:]) if _ID_RE.match(p)), None)
    return resource, resource_id


def severity_for(action: AuditAction, status_code: int) -> AuditSeverity:
    if status_code >= 500:
        return AuditSeverity.high
    if status_code >= 400 or action in (AuditAction.create, AuditAction.delete):
        return AuditSeverity.medium
    return AuditSeverity.low


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method == "OPTIONS" or path.startswith(SKIP_PREFIXES):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        await run_in_threadpool(self._record, request, response.status_code, duration_ms)
        return response

    def _record(self, request: Request, status_code: int, duration_ms: float) -> None:
        session_factory = getattr(request.app.state, "session_factory", None)
        if session_factory is None:
            return

        action = METHOD_ACTIONS.get(request.method, AuditAction.read)
        resource, resource_id = resource_for(request.url.path)
        user_id = getattr(request.state, "user_id", None)
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")

        db = session_factory()
        try:
            audit.record_audit_log(
                db,
                action=action,
                resource=resource,
                resource_id=resource_id,
                description=f"{request.method} {request.url.path}",
                user_id=user_id,
                details={
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                    "query": str(request.url.query) or None,
                },
                ip_address=ip_address,
                user_agent=user_agent,
                severity=severity_for(action, status_code),
            )
            if status_code in (401, 403):
                audit.record_security_event(
                    db,
                    event_type=audit.UNAUTHORIZED_ACCESS if status_code == 401 else audit.FORBIDDEN_ACCESS,
                    description=f"{status_code} on {request.method} {request.url.path}",
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    severity=AuditSeverity.high,
                    details={"status_code": status_code},
                )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to write audit trail for %s %s", request.method, request.url.path)
        finally:
            db.close()
