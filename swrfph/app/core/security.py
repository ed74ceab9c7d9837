from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from swrfph.app.core.config import Settings
from swrfph.app.core.errors import AuthenticationError

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_token(settings: Settings, *, user_id: str, email: str, role: str, token_type: str) -> str:
    now = datetime.now(timezone.utc)
    if token_type == REFRESH:
        expires = now + timedelta(days=settings.refresh_token_days)
    else:
        expires = now + timedelta(minutes=settings.access_token_minutes)

    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": expires,
        # unique per token so two logins in the same second differ
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str, *, expected_type: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError("Invalid token")
    return payload


def new_reset_token() -> str:
    return secrets.token_hex(32)
