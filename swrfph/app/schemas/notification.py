from datetime import datetime

from pydantic import BaseModel

from swrfph.app.db.models.core_types import NotificationType
from swrfph.app.schemas.common import Pagination


class NotificationRead(BaseModel):
    id: str
    user_id: str | None
    event: str
    details: str
    type: NotificationType
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    data: list[NotificationRead]
    pagination: Pagination
    stats: dict | None = None
