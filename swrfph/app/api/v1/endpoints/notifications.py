from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability, has_capability
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import NotificationType
from swrfph.app.schemas.notification import NotificationPage, NotificationRead
from swrfph.services import notifications

router = APIRouter(prefix="/notifications")

reader = require(Capability.read_notifications)


class NotificationCreate(BaseModel):
    event: str = Field(min_length=1, max_length=255)
    details: str = Field(min_length=1)
    type: NotificationType = NotificationType.system


def _scope(user: User) -> str | None:
    return None if has_capability(user.role, Capability.manage_notifications) else user.id


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: NotificationType | None = None,
    is_read: bool | None = None,
    search: str | None = None,
    user: User = Depends(reader),
    db: Session = Depends(get_db),
):
    return notifications.list_notifications(
        db,
        page=page,
        limit=limit,
        user_id=_scope(user),
        type=type,
        is_read=is_read,
        search=search,
    )


@router.get("/stats")
def notification_stats(user: User = Depends(reader), db: Session = Depends(get_db)):
    return notifications.notification_stats(db, user_id=_scope(user))


@router.post(
    "",
    response_model=NotificationRead,
    status_code=201,
    dependencies=[Depends(require(Capability.manage_notifications))],
)
def create_notification(payload: NotificationCreate, db: Session = Depends(get_db)):
    return notifications.create_system_notification(db, event=payload.event, details=payload.details, type=payload.type)


@router.patch("/read-all")
def mark_all_read(user: User = Depends(reader), db: Session = Depends(get_db)):
    return {"updated": notifications.mark_all_read(db, user_id=user.id)}


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: str, user: User = Depends(reader), db: Session = Depends(get_db)):
    return notifications.mark_read(db, notification_id, user_id=_scope(user))


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: str, user: User = Depends(reader), db: Session = Depends(get_db)):
    notifications.delete_notification(db, notification_id, user_id=_scope(user))
