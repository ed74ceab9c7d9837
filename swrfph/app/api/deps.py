from __future__ import annotations

from typing import Callable, Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.errors import AuthenticationError, PermissionDeniedError
from swrfph.app.core.permissions import Capability, has_capability
from swrfph.app.core.security import ACCESS, decode_token
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.session import SessionLocal

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing or invalid authorization header")

    payload = decode_token(settings, credentials.credentials, expected_type=ACCESS)
    user = db.get(User, payload["sub"])
    if not user:
        raise AuthenticationError("Unknown user")

    # picked up by the audit middleware
    request.state.user_id = user.id
    return user


def require(capability: Capability) -> Callable[..., User]:
    """Dependency factory: authenticated user holding ``capability``."""

    def _checker(user: User = Depends(get_current_user)) -> User:
        if not has_capability(user.role, capability):
            raise PermissionDeniedError(
                f"Role {user.role.value} lacks {capability.value}",
                capability=capability.value,
            )
        return user

    return _checker
