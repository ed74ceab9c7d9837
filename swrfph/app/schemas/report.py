from datetime import datetime
from typing import Any

from pydantic import BaseModel

from swrfph.app.db.models.core_types import ReportFormat, ReportStatus


class ReportTemplateRead(BaseModel):
    id: str
    name: str
    description: str | None
    category: str
    is_public: bool
    created_by: str
    config: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class ReportExecutionRead(BaseModel):
    id: str
    status: ReportStatus
    file_path: str | None
    file_size: int | None
    error_message: str | None
    started_at: datetime
    completed_at: datetime | None

    class Config:
        from_attributes = True


class ReportRead(BaseModel):
    id: str
    name: str
    description: str | None
    template_id: str | None
    created_by: str
    config: dict[str, Any]
    format: ReportFormat
    status: ReportStatus
    file_size: int | None
    error_message: str | None
    completed_at: datetime | None
    expires_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class ReportDetail(ReportRead):
    executions: list[ReportExecutionRead] = []
