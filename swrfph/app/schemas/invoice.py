from datetime import date, datetime

from pydantic import BaseModel

from swrfph.app.db.models.core_types import InvoiceStatus


class InvoiceRead(BaseModel):
    id: str
    invoice_number: str
    order_id: str
    customer_name: str
    customer_email: str
    billing_address: str
    amount: float
    tax: float
    discount: float
    total_amount: float
    due_date: date
    status: InvoiceStatus
    created_at: datetime

    class Config:
        from_attributes = True
