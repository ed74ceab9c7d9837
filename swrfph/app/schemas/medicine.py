from datetime import datetime

from pydantic import BaseModel

from swrfph.app.schemas.common import Pagination


class MedicineRead(BaseModel):
    id: str
    name: str
    description: str | None
    price: float
    quantity: int  # stock on hand
    category: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MedicinePage(BaseModel):
    data: list[MedicineRead]
    pagination: Pagination
