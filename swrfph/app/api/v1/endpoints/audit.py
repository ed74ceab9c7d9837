from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import AuditAction, AuditSeverity
from swrfph.app.schemas.audit import AuditLogPage, AuditLogRead, SecurityEventPage, SecurityEventRead
from swrfph.services import audit

router = APIRouter(prefix="/audit")

auditor = require(Capability.view_audit)


class AuditLogCreate(BaseModel):
    action: AuditAction
    resource: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1)
    resource_id: str | None = Field(default=None, max_length=64)
    details: dict[str, Any] | None = None
    severity: AuditSeverity = AuditSeverity.low


@router.get("/logs", response_model=AuditLogPage, dependencies=[Depends(auditor)])
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    user_id: str | None = None,
    action: AuditAction | None = None,
    resource: str | None = None,
    severity: AuditSeverity | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
):
    return audit.list_audit_logs(
        db,
        page=page,
        limit=limit,
        user_id=user_id,
        action=action,
        resource=resource,
        severity=severity,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.get("/logs/stats", dependencies=[Depends(auditor)])
def audit_stats(db: Session = Depends(get_db)):
    return audit.audit_stats(db)


@router.post("/logs", response_model=AuditLogRead, status_code=201)
def create_audit_log(
    payload: AuditLogCreate,
    request: Request,
    user: User = Depends(auditor),
    db: Session = Depends(get_db),
):
    return audit.create_audit_log(
        db,
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        **payload.model_dump(),
    )


@router.get("/security-events", response_model=SecurityEventPage, dependencies=[Depends(auditor)])
def list_security_events(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    user_id: str | None = None,
    event_type: str | None = None,
    severity: AuditSeverity | None = None,
    resolved: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
):
    return audit.list_security_events(
        db,
        page=page,
        limit=limit,
        user_id=user_id,
        event_type=event_type,
        severity=severity,
        resolved=resolved,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/security-events/stats", dependencies=[Depends(auditor)])
def security_event_stats(db: Session = Depends(get_db)):
    return audit.security_event_stats(db)


@router.patch("/security-events/{event_id}/resolve", response_model=SecurityEventRead)
def resolve_security_event(event_id: str, user: User = Depends(auditor), db: Session = Depends(get_db)):
    return audit.resolve_security_event(db, event_id, resolved_by=user.id)
