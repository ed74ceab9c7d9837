from datetime import datetime

from pydantic import BaseModel

from swrfph.app.db.models.core_types import OrderStatus
from swrfph.app.schemas.common import Pagination


class OrderMedicineRead(BaseModel):
    id: str
    name: str
    category: str | None

    class Config:
        from_attributes = True


class OrderItemRead(BaseModel):
    id: str
    medicine_id: str
    quantity: int
    price: float  # unit price at order time
    medicine: OrderMedicineRead | None = None

    class Config:
        from_attributes = True


class OrderUserRead(BaseModel):
    name: str
    email: str

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: str
    user_id: str
    status: OrderStatus
    total_price: float
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead]
    user: OrderUserRead | None = None

    class Config:
        from_attributes = True


class OrderPage(BaseModel):
    data: list[OrderRead]
    pagination: Pagination
