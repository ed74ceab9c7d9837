from __future__ import annotations

import logging

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from swrfph.app.core.errors import NotFoundError
from swrfph.app.db.models.models_v1 import Notification, User
from swrfph.app.db.models.core_types import NotificationType, Role
from swrfph.services.pagination import paginate

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    *,
    event: str,
    details: str,
    type: NotificationType,
    user_id: str | None = None,
) -> Notification:
    """
    Queue a notification in the caller's transaction (no commit).
    ``user_id=None`` makes it system wide.
    """
    notification = Notification(user_id=user_id, event=event, details=details, type=type, is_read=False)
    db.add(notification)
    return notification


def notify_providers(db: Session, *, event: str, details: str, type: NotificationType) -> int:
    provider_ids = db.execute(select(User.id).where(User.role == Role.provider)).scalars().all()
    for user_id in provider_ids:
        notify(db, event=event, details=details, type=type, user_id=user_id)
    return len(provider_ids)


def _visible_to(user_id: str):
    return or_(Notification.user_id == user_id, Notification.user_id.is_(None))


def _filtered(stmt, *, type: NotificationType | None, is_read: bool | None, search: str | None):
    if type is not None:
        stmt = stmt.where(Notification.type == type)
    if is_read is not None:
        stmt = stmt.where(Notification.is_read == is_read)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Notification.event.ilike(pattern), Notification.details.ilike(pattern)))
    return stmt


def notification_stats(db: Session, *, user_id: str | None = None) -> dict:
    stmt = select(Notification.type, Notification.is_read, func.count(Notification.id)).group_by(
        Notification.type, Notification.is_read
    )
    if user_id is not None:
        stmt = stmt.where(_visible_to(user_id))

    total = 0
    unread = 0
    by_type: dict[str, int] = {}
    for ntype, is_read, n in db.execute(stmt).all():
        total += n
        if not is_read:
            unread += n
        by_type[ntype.value] = by_type.get(ntype.value, 0) + n

    return {"total": total, "unread": unread, "by_type": by_type}


def list_notifications(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    user_id: str | None = None,
    type: NotificationType | None = None,
    is_read: bool | None = None,
    search: str | None = None,
) -> dict:
    """
    Newest first. With ``user_id`` only that user's own and system-wide
    notifications are listed.
    """
    stmt = select(Notification).order_by(Notification.created_at.desc(), Notification.id)
    if user_id is not None:
        stmt = stmt.where(_visible_to(user_id))
    stmt = _filtered(stmt, type=type, is_read=is_read, search=search)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination, "stats": notification_stats(db, user_id=user_id)}


def create_system_notification(db: Session, *, event: str, details: str, type: NotificationType) -> Notification:
    notification = notify(db, event=event, details=details, type=type)
    db.commit()
    db.refresh(notification)
    logger.info("System notification %s created: %s", notification.id, event)
    return notification


def _get_owned(db: Session, notification_id: str, user_id: str | None) -> Notification:
    """Load a notification the caller may change; admins pass ``user_id=None``.

    System-wide notices share one ``is_read`` flag, so providers can list them
    but neither mark nor delete them.
    """
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification", notification_id)
    if user_id is not None and notification.user_id != user_id:
        raise NotFoundError("Notification", notification_id)
    return notification


def mark_read(db: Session, notification_id: str, *, user_id: str | None = None) -> Notification:
    notification = _get_owned(db, notification_id, user_id)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, *, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return int(result.rowcount or 0)


def delete_notification(db: Session, notification_id: str, *, user_id: str | None = None) -> None:
    notification = _get_owned(db, notification_id, user_id)
    db.delete(notification)
    db.commit()
