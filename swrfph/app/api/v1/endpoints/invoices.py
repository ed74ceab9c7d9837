from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability, is_admin
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import InvoiceStatus
from swrfph.app.schemas.invoice import InvoiceRead
from swrfph.services import invoices

router = APIRouter(prefix="/invoices")

managers = [Depends(require(Capability.manage_invoices))]
reader = require(Capability.read_invoices)


class InvoiceCreate(BaseModel):
    order_id: str = Field(min_length=1, max_length=36)
    customer_name: str = Field(min_length=1, max_length=200)
    customer_email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    billing_address: str = Field(min_length=1)
    amount: float = Field(ge=0)
    tax: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    total_amount: float = Field(ge=0)
    due_date: date


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


def _scope(user: User) -> str | None:
    return None if is_admin(user.role) else user.id


@router.get("", response_model=list[InvoiceRead], dependencies=managers)
def list_invoices(db: Session = Depends(get_db)):
    return invoices.list_invoices(db)


@router.post("", response_model=InvoiceRead, status_code=201, dependencies=managers)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_db)):
    return invoices.create_invoice(db, **payload.model_dump())


@router.get("/order/{order_id}", response_model=InvoiceRead)
def invoice_for_order(order_id: str, user: User = Depends(reader), db: Session = Depends(get_db)):
    return invoices.get_invoice_for_order(db, order_id, user_id=_scope(user))


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: str, user: User = Depends(reader), db: Session = Depends(get_db)):
    return invoices.get_invoice(db, invoice_id, user_id=_scope(user))


@router.patch("/{invoice_id}/status", response_model=InvoiceRead, dependencies=managers)
def update_invoice_status(invoice_id: str, payload: InvoiceStatusUpdate, db: Session = Depends(get_db)):
    return invoices.update_invoice_status(db, invoice_id, payload.status)
