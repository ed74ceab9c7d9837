from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import ReportFormat, ReportStatus
from swrfph.app.schemas.report import ReportDetail, ReportRead, ReportTemplateRead
from swrfph.services import reports

router = APIRouter(prefix="/reports")

runner = require(Capability.run_reports)


class ReportTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: str = Field(min_length=1, max_length=64)
    is_public: bool = False
    config: dict[str, Any]


class ReportTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=64)
    is_public: bool | None = None
    config: dict[str, Any] | None = None


class ReportCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    template_id: str | None = None
    config: dict[str, Any] | None = None
    format: ReportFormat
    scheduled_at: datetime | None = None


# ---------- templates ----------
@router.get("/templates/prebuilt", dependencies=[Depends(runner)])
def prebuilt_templates():
    return reports.PREBUILT_TEMPLATES


@router.post("/templates", response_model=ReportTemplateRead, status_code=201)
def create_template(payload: ReportTemplateCreate, user: User = Depends(runner), db: Session = Depends(get_db)):
    return reports.create_template(db, user_id=user.id, **payload.model_dump())


@router.get("/templates", response_model=list[ReportTemplateRead])
def list_templates(category: str | None = None, user: User = Depends(runner), db: Session = Depends(get_db)):
    return reports.list_templates(db, user_id=user.id, category=category)


@router.get("/templates/{template_id}", response_model=ReportTemplateRead)
def get_template(template_id: str, user: User = Depends(runner), db: Session = Depends(get_db)):
    return reports.get_template(db, template_id, user_id=user.id)


@router.put("/templates/{template_id}", response_model=ReportTemplateRead)
def update_template(
    template_id: str,
    payload: ReportTemplateUpdate,
    user: User = Depends(runner),
    db: Session = Depends(get_db),
):
    return reports.update_template(db, template_id, user_id=user.id, **payload.model_dump(exclude_unset=True))


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(template_id: str, user: User = Depends(runner), db: Session = Depends(get_db)):
    reports.delete_template(db, template_id, user_id=user.id)


# ---------- reports ----------
@router.post("/cleanup", dependencies=[Depends(require(Capability.maintain_reports))])
def cleanup_expired_files(db: Session = Depends(get_db)):
    count = reports.cleanup_expired_files(db)
    return {"message": f"Cleaned up {count} expired files", "count": count}


@router.post("", response_model=ReportRead, status_code=201)
def create_report(payload: ReportCreate, user: User = Depends(runner), db: Session = Depends(get_db)):
    return reports.create_report(db, user_id=user.id, **payload.model_dump())


@router.get("", response_model=list[ReportRead])
def list_reports(status: ReportStatus | None = None, user: User = Depends(runner), db: Session = Depends(get_db)):
    return reports.list_reports(db, user=user, status=status)


@router.get("/{report_id}", response_model=ReportDetail)
def get_report(report_id: str, user: User = Depends(runner), db: Session = Depends(get_db)):
    report = reports.get_report(db, report_id, user=user)
    detail = ReportDetail.model_validate(report)
    detail.executions = detail.executions[:10]
    return detail


@router.post("/{report_id}/execute")
def execute_report(
    report_id: str,
    user: User = Depends(runner),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return reports.execute_report(db, report_id, user=user, settings=settings)


@router.get("/{report_id}/download")
def download_report(report_id: str, user: User = Depends(runner), db: Session = Depends(get_db)):
    path, filename = reports.report_file(db, report_id, user=user)
    return FileResponse(path, filename=filename, media_type="application/octet-stream")


@router.delete("/{report_id}", status_code=204)
def delete_report(report_id: str, user: User = Depends(runner), db: Session = Depends(get_db)):
    reports.delete_report(db, report_id, user=user)
