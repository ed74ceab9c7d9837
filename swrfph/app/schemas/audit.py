from datetime import datetime
from typing import Any

from pydantic import BaseModel

from swrfph.app.db.models.core_types import AuditAction, AuditSeverity
from swrfph.app.schemas.common import Pagination


class AuditLogRead(BaseModel):
    id: str
    user_id: str | None
    action: AuditAction
    resource: str
    resource_id: str | None
    description: str
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    severity: AuditSeverity
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogPage(BaseModel):
    data: list[AuditLogRead]
    pagination: Pagination


class SecurityEventRead(BaseModel):
    id: str
    user_id: str | None
    event_type: str
    description: str
    ip_address: str | None
    user_agent: str | None
    severity: AuditSeverity
    details: dict[str, Any] | None
    resolved: bool
    resolved_at: datetime | None
    resolved_by: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class SecurityEventPage(BaseModel):
    data: list[SecurityEventRead]
    pagination: Pagination
