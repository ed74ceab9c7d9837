"""
Login, token refresh and password reset.

The refresh token in use is stored on the user row; logging out (or logging
in again elsewhere) invalidates the previous one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from swrfph.app.core.config import Settings
from swrfph.app.core.errors import AuthenticationError, ValidationError
from swrfph.app.core.security import (
    ACCESS,
    REFRESH,
    create_token,
    decode_token,
    hash_password,
    new_reset_token,
    verify_password,
)
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import AuditAction, AuditSeverity, Role
from swrfph.services import audit, users

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If the email exists, a reset link has been sent."


def _issue_tokens(db: Session, settings: Settings, user: User) -> dict:
    claims = {"user_id": user.id, "email": user.email, "role": user.role.value}
    access_token = create_token(settings, token_type=ACCESS, **claims)
    refresh_token = create_token(settings, token_type=REFRESH, **claims)
    user.refresh_token = refresh_token
    return {"access_token": access_token, "refresh_token": refresh_token, "token_type": "bearer"}


def register(db: Session, settings: Settings, *, email: str, name: str, password: str) -> dict:
    user = users.create_user(
        db,
        email=email,
        name=name,
        password=password,
        role=Role.provider,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    tokens = _issue_tokens(db, settings, user)
    db.commit()
    return tokens


def login(
    db: Session,
    settings: Settings,
    *,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    user = users.get_user_by_email(db, email)

    if not user or not verify_password(password, user.password_hash):
        audit.record_audit_log(
            db,
            action=AuditAction.login_failed,
            resource="Authentication",
            description=f"Failed login attempt for {email}",
            details={"email": email},
            ip_address=ip_address,
            user_agent=user_agent,
            severity=AuditSeverity.medium,
        )
        audit.record_security_event(
            db,
            event_type=audit.FAILED_LOGIN_ATTEMPT,
            description=f"Failed login attempt for {email} from {ip_address or 'unknown'}",
            user_id=user.id if user else None,
            ip_address=ip_address,
            user_agent=user_agent,
            severity=AuditSeverity.medium,
            details={"email": email},
        )
        db.commit()
        raise AuthenticationError("Invalid credentials")

    tokens = _issue_tokens(db, settings, user)
    audit.record_audit_log(
        db,
        action=AuditAction.login,
        resource="Authentication",
        resource_id=user.id,
        description=f"User {user.email} logged in",
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        severity=AuditSeverity.low,
    )
    db.commit()

    logger.info("User %s logged in", user.id)
    return tokens


def refresh(db: Session, settings: Settings, *, refresh_token: str) -> dict:
    payload = decode_token(settings, refresh_token, expected_type=REFRESH)
    user = db.get(User, payload["sub"])
    if not user or user.refresh_token != refresh_token:
        raise AuthenticationError("Invalid refresh token")

    access_token = create_token(
        settings,
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        token_type=ACCESS,
    )
    return {"access_token": access_token, "token_type": "bearer"}


def logout(db: Session, user: User, *, ip_address: str | None = None, user_agent: str | None = None) -> None:
    user.refresh_token = None
    audit.record_audit_log(
        db,
        action=AuditAction.logout,
        resource="Authentication",
        resource_id=user.id,
        description=f"User {user.email} logged out",
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        severity=AuditSeverity.low,
    )
    db.commit()
    logger.info("User %s logged out", user.id)


def forgot_password(db: Session, settings: Settings, *, email: str) -> dict:
    user = users.get_user_by_email(db, email)
    if user:
        user.reset_token = new_reset_token()
        user.reset_expires = datetime.utcnow() + timedelta(minutes=settings.reset_token_minutes)
        db.commit()
        # no mail transport; operators pick the token up from the log
        logger.info("Password reset token for %s: %s", user.email, user.reset_token)

    # same answer whether or not the account exists
    return {"message": RESET_REQUESTED_MESSAGE}


def reset_password(db: Session, settings: Settings, *, token: str, new_password: str) -> dict:
    user = db.execute(select(User).where(User.reset_token == token)).scalar_one_or_none()
    if not user or not user.reset_expires or user.reset_expires < datetime.utcnow():
        raise ValidationError("Invalid or expired reset token")
    if len(new_password) < users.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {users.MIN_PASSWORD_LENGTH} characters")

    user.password_hash = hash_password(new_password, settings.bcrypt_rounds)
    user.reset_token = None
    user.reset_expires = None
    user.refresh_token = None
    db.commit()

    logger.info("Password reset for user %s", user.id)
    return {"message": "Password has been reset successfully"}
