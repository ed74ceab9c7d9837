from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swrfph.app.core.errors import ConflictError, NotFoundError
from swrfph.app.db.models.models_v1 import Invoice, Order
from swrfph.app.db.models.core_types import InvoiceStatus

logger = logging.getLogger(__name__)


def next_invoice_number(db: Session) -> str:
    count = db.execute(select(func.count(Invoice.id))).scalar_one()
    return f"INV-{count + 1:03d}"


def list_invoices(db: Session) -> list[Invoice]:
    return list(db.execute(select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id)).scalars().all())


def get_invoice(db: Session, invoice_id: str, *, user_id: str | None = None) -> Invoice:
    """With ``user_id`` the invoice must belong to one of that user's orders."""
    invoice = db.get(Invoice, invoice_id)
    if not invoice or (user_id is not None and invoice.order.user_id != user_id):
        raise NotFoundError("Invoice", invoice_id)
    return invoice


def get_invoice_for_order(db: Session, order_id: str, *, user_id: str | None = None) -> Invoice:
    order = db.get(Order, order_id)
    if not order or (user_id is not None and order.user_id != user_id):
        raise NotFoundError("Order", order_id)

    invoice = db.execute(
        select(Invoice).where(Invoice.order_id == order_id).order_by(Invoice.created_at.desc())
    ).scalars().first()
    if not invoice:
        raise NotFoundError("Invoice", f"order:{order_id}")
    return invoice


def create_invoice(
    db: Session,
    *,
    order_id: str,
    customer_name: str,
    customer_email: str,
    billing_address: str,
    amount: Decimal | float,
    total_amount: Decimal | float,
    due_date: date,
    tax: Decimal | float = 0,
    discount: Decimal | float = 0,
) -> Invoice:
    if not db.get(Order, order_id):
        raise NotFoundError("Order", order_id)

    invoice = Invoice(
        invoice_number=next_invoice_number(db),
        order_id=order_id,
        customer_name=customer_name,
        customer_email=customer_email,
        billing_address=billing_address,
        amount=Decimal(str(amount)),
        tax=Decimal(str(tax)),
        discount=Decimal(str(discount)),
        total_amount=Decimal(str(total_amount)),
        due_date=due_date,
        status=InvoiceStatus.pending,
    )
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError as exc:
        # two invoices numbered from the same count
        db.rollback()
        raise ConflictError("Invoice number already taken, retry", invoice_number=invoice.invoice_number) from exc
    db.refresh(invoice)

    logger.info("Invoice %s created for order %s", invoice.invoice_number, order_id)
    return invoice


def update_invoice_status(db: Session, invoice_id: str, status: InvoiceStatus) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    invoice.status = status
    db.commit()
    db.refresh(invoice)
    return invoice
