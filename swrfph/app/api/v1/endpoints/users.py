from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.core_types import Role
from swrfph.app.schemas.user import UserPage, UserRead
from swrfph.services import users

router = APIRouter(prefix="/users", dependencies=[Depends(require(Capability.manage_users))])


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.provider


class UserUpdate(BaseModel):
    email: str | None = Field(default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str | None = Field(default=None, min_length=1, max_length=200)
    password: str | None = Field(default=None, min_length=6, max_length=128)
    role: Role | None = None


@router.get("", response_model=UserPage)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    role: Role | None = None,
    sort_by: Literal["created_at", "name", "email"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
):
    return users.list_users(
        db,
        page=page,
        limit=limit,
        search=search,
        role=role,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats/overview")
def user_stats(db: Session = Depends(get_db)):
    stats = users.user_stats(db)
    stats["recent_users"] = [UserRead.model_validate(u) for u in stats["recent_users"]]
    return stats


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return users.get_user(db, user_id)


@router.post("", response_model=UserRead, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    return users.create_user(db, bcrypt_rounds=settings.bcrypt_rounds, **payload.model_dump())


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return users.update_user(db, user_id, bcrypt_rounds=settings.bcrypt_rounds, **payload.model_dump())


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    users.delete_user(db, user_id)
