from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swrfph.app.core.errors import ConflictError, NotFoundError, ValidationError
from swrfph.app.core.security import hash_password
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import Role
from swrfph.services.pagination import paginate

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = {
    "created_at": User.created_at,
    "name": User.name,
    "email": User.email,
}

MIN_PASSWORD_LENGTH = 8
MIN_UPDATED_PASSWORD_LENGTH = 6


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()


def list_users(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    role: Role | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    column = USER_SORT_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f"Cannot sort users by {sort_by}", allowed=sorted(USER_SORT_FIELDS))

    stmt = select(User).order_by(column.asc() if sort_order == "asc" else column.desc(), User.id)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        stmt = stmt.where(User.role == role)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination}


def create_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str,
    role: Role = Role.provider,
    bcrypt_rounds: int = 12,
) -> User:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ConflictError(f"User with email {email} already exists", email=email)

    user = User(email=email, name=name, password_hash=hash_password(password, bcrypt_rounds), role=role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # lost a race on the unique email
        db.rollback()
        raise ConflictError(f"User with email {email} already exists", email=email) from exc
    db.refresh(user)

    logger.info("User %s created with role %s", user.id, role.value)
    return user


def update_user(
    db: Session,
    user_id: str,
    *,
    email: str | None = None,
    name: str | None = None,
    password: str | None = None,
    role: Role | None = None,
    bcrypt_rounds: int = 12,
) -> User:
    user = get_user(db, user_id)

    if email is not None:
        email = email.strip().lower()
        other = get_user_by_email(db, email)
        if other and other.id != user.id:
            raise ConflictError(f"User with email {email} already exists", email=email)
        user.email = email
    if name is not None:
        user.name = name
    if role is not None:
        user.role = role
    if password is not None:
        if len(password) < MIN_UPDATED_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_UPDATED_PASSWORD_LENGTH} characters")
        user.password_hash = hash_password(password, bcrypt_rounds)

    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> None:
    user = get_user(db, user_id)
    db.delete(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User has orders and cannot be deleted", user_id=user_id) from exc
    logger.info("User %s deleted", user_id)


def user_stats(db: Session) -> dict:
    counts = dict(db.execute(select(User.role, func.count(User.id)).group_by(User.role)).all())
    recent = db.execute(select(User).order_by(User.created_at.desc(), User.id).limit(5)).scalars().all()
    return {
        "total_users": sum(counts.values()),
        "total_admins": counts.get(Role.admin, 0),
        "total_providers": counts.get(Role.provider, 0),
        "recent_users": recent,
    }
