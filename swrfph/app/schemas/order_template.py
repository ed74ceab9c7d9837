from datetime import datetime

from pydantic import BaseModel


class OrderTemplateItemRead(BaseModel):
    id: str
    medicine_id: str
    medicine_name: str
    quantity: int
    price: float


class OrderTemplateRead(BaseModel):
    id: str
    name: str
    description: str | None
    user_id: str
    items: list[OrderTemplateItemRead]
    created_at: datetime
    updated_at: datetime
