"""
Audit trail and security events.

``record_*`` helpers only add rows to the given session; callers own the
commit. The admin listing functions are read only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from swrfph.app.core.errors import NotFoundError
from swrfph.app.db.models.models_v1 import AuditLog, SecurityEvent
from swrfph.app.db.models.core_types import AuditAction, AuditSeverity
from swrfph.services.pagination import paginate

logger = logging.getLogger(__name__)

UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
FORBIDDEN_ACCESS = "FORBIDDEN_ACCESS"
FAILED_LOGIN_ATTEMPT = "FAILED_LOGIN_ATTEMPT"


def record_audit_log(
    db: Session,
    *,
    action: AuditAction,
    resource: str,
    description: str,
    user_id: str | None = None,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    severity: AuditSeverity = AuditSeverity.low,
) -> AuditLog:
    log = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        description=description,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        severity=severity,
    )
    db.add(log)
    return log


def record_security_event(
    db: Session,
    *,
    event_type: str,
    description: str,
    user_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    severity: AuditSeverity = AuditSeverity.medium,
    details: dict[str, Any] | None = None,
) -> SecurityEvent:
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        severity=severity,
        details=details,
    )
    db.add(event)
    logger.warning("Security event %s: %s", event_type, description)
    return event


def create_audit_log(db: Session, **fields: Any) -> AuditLog:
    """Manual entry from the admin API."""
    log = record_audit_log(db, **fields)
    db.commit()
    db.refresh(log)
    return log


def list_audit_logs(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    user_id: str | None = None,
    action: AuditAction | None = None,
    resource: str | None = None,
    severity: AuditSeverity | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
) -> dict:
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource:
        stmt = stmt.where(AuditLog.resource.ilike(f"%{resource}%"))
    if severity:
        stmt = stmt.where(AuditLog.severity == severity)
    if start_date:
        stmt = stmt.where(AuditLog.created_at >= start_date)
    if end_date:
        stmt = stmt.where(AuditLog.created_at <= end_date)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                AuditLog.description.ilike(pattern),
                AuditLog.resource.ilike(pattern),
                AuditLog.user_id.ilike(pattern),
                AuditLog.ip_address.ilike(pattern),
            )
        )

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination}


def audit_stats(db: Session) -> dict:
    counts = dict(db.execute(select(AuditLog.severity, func.count(AuditLog.id)).group_by(AuditLog.severity)).all())
    return {
        "total_logs": sum(counts.values()),
        "critical_logs": counts.get(AuditSeverity.critical, 0),
        "high_logs": counts.get(AuditSeverity.high, 0),
        "medium_logs": counts.get(AuditSeverity.medium, 0),
        "low_logs": counts.get(AuditSeverity.low, 0),
    }


def list_security_events(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    user_id: str | None = None,
    event_type: str | None = None,
    severity: AuditSeverity | None = None,
    resolved: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    stmt = select(SecurityEvent).order_by(SecurityEvent.created_at.desc(), SecurityEvent.id)
    if user_id:
        stmt = stmt.where(SecurityEvent.user_id == user_id)
    if event_type:
        stmt = stmt.where(SecurityEvent.event_type.ilike(f"%{event_type}%"))
    if severity:
        stmt = stmt.where(SecurityEvent.severity == severity)
    if resolved is not None:
        stmt = stmt.where(SecurityEvent.resolved == resolved)
    if start_date:
        stmt = stmt.where(SecurityEvent.created_at >= start_date)
    if end_date:
        stmt = stmt.where(SecurityEvent.created_at <= end_date)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination}


def security_event_stats(db: Session) -> dict:
    total = db.execute(select(func.count(SecurityEvent.id))).scalar_one()
    unresolved = db.execute(
        select(func.count(SecurityEvent.id)).where(SecurityEvent.resolved.is_(False))
    ).scalar_one()
    by_severity = dict(
        db.execute(select(SecurityEvent.severity, func.count(SecurityEvent.id)).group_by(SecurityEvent.severity)).all()
    )
    return {
        "total_events": int(total),
        "unresolved_events": int(unresolved),
        "critical_events": by_severity.get(AuditSeverity.critical, 0),
        "high_events": by_severity.get(AuditSeverity.high, 0),
    }


def resolve_security_event(db: Session, event_id: str, *, resolved_by: str) -> SecurityEvent:
    event = db.get(SecurityEvent, event_id)
    if not event:
        raise NotFoundError("SecurityEvent", event_id)

    event.resolved = True
    event.resolved_at = datetime.utcnow()
    event.resolved_by = resolved_by
    db.commit()
    db.refresh(event)

    logger.info("Security event %s resolved by %s", event_id, resolved_by)
    return event
