from datetime import datetime

from pydantic import BaseModel

from swrfph.app.db.models.core_types import Role
from swrfph.app.schemas.common import Pagination


class UserRead(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserPage(BaseModel):
    data: list[UserRead]
    pagination: Pagination


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
