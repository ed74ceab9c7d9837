from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.core_types import SettingCategory
from swrfph.app.schemas.setting import SettingRead
from swrfph.services import settings as app_settings

router = APIRouter(prefix="/settings")

readers = [Depends(require(Capability.read_settings))]
managers = [Depends(require(Capability.manage_settings))]


class SettingCreate(BaseModel):
    key: str = Field(min_length=1, max_length=128)
    value: str
    category: SettingCategory = SettingCategory.general


class SettingUpdate(BaseModel):
    value: str | None = None
    category: SettingCategory | None = None


class OrganizationSettings(BaseModel):
    org_name: str | None = None
    org_address: str | None = None
    org_contact: str | None = None
    org_phone: str | None = None


class NotificationSettings(BaseModel):
    email_alerts: bool | None = None
    sms_alerts: bool | None = None


class GeneralSettings(BaseModel):
    language: str | None = None
    timezone: str | None = None


@router.get("", response_model=list[SettingRead], dependencies=readers)
def list_settings(category: SettingCategory | None = None, db: Session = Depends(get_db)):
    if category:
        return app_settings.list_by_category(db, category)
    return app_settings.list_settings(db)


@router.get("/organization", response_model=list[SettingRead], dependencies=readers)
def organization_settings(db: Session = Depends(get_db)):
    return app_settings.list_by_category(db, SettingCategory.organization)


@router.put("/organization", response_model=list[SettingRead], dependencies=managers)
def update_organization_settings(payload: OrganizationSettings, db: Session = Depends(get_db)):
    return app_settings.upsert_group(db, SettingCategory.organization, payload.model_dump())


@router.get("/notifications", response_model=list[SettingRead], dependencies=readers)
def notification_settings(db: Session = Depends(get_db)):
    return app_settings.list_by_category(db, SettingCategory.notification)


@router.put("/notifications", response_model=list[SettingRead], dependencies=managers)
def update_notification_settings(payload: NotificationSettings, db: Session = Depends(get_db)):
    return app_settings.upsert_group(db, SettingCategory.notification, payload.model_dump())


@router.get("/general", response_model=list[SettingRead], dependencies=readers)
def general_settings(db: Session = Depends(get_db)):
    return app_settings.list_by_category(db, SettingCategory.general)


@router.put("/general", response_model=list[SettingRead], dependencies=managers)
def update_general_settings(payload: GeneralSettings, db: Session = Depends(get_db)):
    return app_settings.upsert_group(db, SettingCategory.general, payload.model_dump())


@router.get("/{key}", response_model=SettingRead, dependencies=readers)
def get_setting(key: str, db: Session = Depends(get_db)):
    return app_settings.get_setting(db, key)


@router.post("", response_model=SettingRead, status_code=201, dependencies=managers)
def create_setting(payload: SettingCreate, db: Session = Depends(get_db)):
    return app_settings.create_setting(db, **payload.model_dump())


@router.patch("/{key}", response_model=SettingRead, dependencies=managers)
def update_setting(key: str, payload: SettingUpdate, db: Session = Depends(get_db)):
    return app_settings.update_setting(db, key, **payload.model_dump())


@router.delete("/{key}", status_code=204, dependencies=managers)
def delete_setting(key: str, db: Session = Depends(get_db)):
    app_settings.delete_setting(db, key)
