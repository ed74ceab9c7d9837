"""
Key/value application settings, grouped by category.

Not to be confused with ``swrfph.app.core.config`` which holds process
configuration read from the environment.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from swrfph.app.core.errors import ConflictError, NotFoundError
from swrfph.app.db.models.models_v1 import Setting
from swrfph.app.db.models.core_types import SettingCategory

logger = logging.getLogger(__name__)

ORGANIZATION_KEYS = {
    "org_name": "org_name",
    "org_address": "org_address",
    "org_contact": "org_contact",
    "org_phone": "org_phone",
}
NOTIFICATION_KEYS = {"email_alerts": "email_alerts", "sms_alerts": "sms_alerts"}
GENERAL_KEYS = {"language": "language", "timezone": "timezone"}


def list_settings(db: Session) -> list[Setting]:
    return list(db.execute(select(Setting).order_by(Setting.category, Setting.key)).scalars().all())


def list_by_category(db: Session, category: SettingCategory) -> list[Setting]:
    return list(
        db.execute(select(Setting).where(Setting.category == category).order_by(Setting.key)).scalars().all()
    )


def get_setting(db: Session, key: str) -> Setting:
    setting = db.execute(select(Setting).where(Setting.key == key)).scalar_one_or_none()
    if not setting:
        raise NotFoundError("Setting", key)
    return setting


def create_setting(db: Session, *, key: str, value: str, category: SettingCategory) -> Setting:
    exists = db.execute(select(Setting.id).where(Setting.key == key)).first()
    if exists:
        raise ConflictError(f"Setting {key} already exists", key=key)

    setting = Setting(key=key, value=value, category=category)
    db.add(setting)
    db.commit()
    db.refresh(setting)
    return setting


def update_setting(
    db: Session,
    key: str,
    *,
    value: str | None = None,
    category: SettingCategory | None = None,
) -> Setting:
    setting = get_setting(db, key)
    if value is not None:
        setting.value = value
    if category is not None:
        setting.category = category
    db.commit()
    db.refresh(setting)
    logger.info("Setting %s updated", key)
    return setting


def delete_setting(db: Session, key: str) -> None:
    setting = get_setting(db, key)
    db.delete(setting)
    db.commit()


def _upsert(db: Session, key: str, value: str, category: SettingCategory) -> Setting:
    setting = db.execute(select(Setting).where(Setting.key == key)).scalar_one_or_none()
    if setting:
        setting.value = value
    else:
        setting = Setting(key=key, value=value, category=category)
        db.add(setting)
    return setting


def _stringify(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def upsert_group(db: Session, category: SettingCategory, values: dict) -> list[Setting]:
    """
    Write the non-empty ``values`` of one settings group and return the
    whole category afterwards.
    """
    allowed = {
        SettingCategory.organization: ORGANIZATION_KEYS,
        SettingCategory.notification: NOTIFICATION_KEYS,
        SettingCategory.general: GENERAL_KEYS,
    }.get(category, {})

    for field, value in values.items():
        key = allowed.get(field)
        if key is None or value is None or value == "":
            continue
        _upsert(db, key, _stringify(value), category)

    db.commit()
    return list_by_category(db, category)
