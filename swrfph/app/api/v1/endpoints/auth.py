from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_current_user, get_db
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.db.models.models_v1 import User
from swrfph.app.schemas.user import TokenPair, UserRead
from swrfph.services import auth

router = APIRouter(prefix="/auth")


class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=128)


class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshIn(BaseModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class ResetPasswordIn(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


def _client(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.post("/register", response_model=TokenPair, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    # public sign-up only ever creates providers; admins are created by admins
    return auth.register(db, settings, email=payload.email, name=payload.name, password=payload.password)


@router.post("/login", response_model=TokenPair)
def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return auth.login(db, settings, email=payload.email, password=payload.password, **_client(request))


@router.post("/refresh")
def refresh(payload: RefreshIn, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    return auth.refresh(db, settings, refresh_token=payload.refresh_token)


@router.get("/profile", response_model=UserRead)
def profile(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout(request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    auth.logout(db, user, **_client(request))
    return {"message": "Logged out successfully"}


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return auth.forgot_password(db, settings, email=payload.email)


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return auth.reset_password(db, settings, token=payload.token, new_password=payload.new_password)
