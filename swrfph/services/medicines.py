from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from swrfph.app.core.errors import ConflictError, NotFoundError, ValidationError
from swrfph.app.db.models.models_v1 import Medicine, OrderItem, OrderTemplateItem
from swrfph.app.db.models.core_types import NotificationType
from swrfph.services import notifications
from swrfph.services.pagination import paginate

logger = logging.getLogger(__name__)

MEDICINE_SORT_FIELDS = {
    "name": Medicine.name,
    "price": Medicine.price,
    "quantity": Medicine.quantity,
    "created_at": Medicine.created_at,
    "category": Medicine.category,
}

MAX_PAGE_SIZE = 1000


def get_medicine(db: Session, medicine_id: str) -> Medicine:
    medicine = db.get(Medicine, medicine_id)
    if not medicine:
        raise NotFoundError("Medicine", medicine_id)
    return medicine


def list_medicines(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    category: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> dict:
    column = MEDICINE_SORT_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f"Cannot sort medicines by {sort_by}", allowed=sorted(MEDICINE_SORT_FIELDS))
    if limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must not exceed {MAX_PAGE_SIZE}")

    stmt = select(Medicine).order_by(column.desc() if sort_order == "desc" else column.asc(), Medicine.id)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Medicine.name.ilike(pattern), Medicine.description.ilike(pattern)))
    if category:
        stmt = stmt.where(Medicine.category == category)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    logger.debug("Listed %d medicines (%d total)", len(rows), pagination["total"])
    return {"data": rows, "pagination": pagination}


def _check_amounts(price: Decimal | float | None, quantity: int | None) -> None:
    if price is not None and Decimal(str(price)) < 0:
        raise ValidationError("price must be >= 0")
    if quantity is not None and quantity < 0:
        raise ValidationError("quantity must be >= 0")


def create_medicine(
    db: Session,
    *,
    name: str,
    price: Decimal | float,
    quantity: int,
    description: str | None = None,
    category: str | None = None,
) -> Medicine:
    _check_amounts(price, quantity)

    medicine = Medicine(
        name=name,
        description=description,
        price=Decimal(str(price)),
        quantity=quantity,
        category=category,
    )
    db.add(medicine)
    db.commit()
    db.refresh(medicine)

    logger.info("Medicine %s created (%s, qty %d)", medicine.id, name, quantity)
    return medicine


def update_medicine(db: Session, medicine_id: str, **changes) -> Medicine:
    """
    Partial update; keys left out (or None) are untouched.
    A price change notifies every provider.
    """
    medicine = get_medicine(db, medicine_id)
    changes = {k: v for k, v in changes.items() if v is not None}
    _check_amounts(changes.get("price"), changes.get("quantity"))

    old_price = Decimal(medicine.price)
    if "price" in changes:
        changes["price"] = Decimal(str(changes["price"]))

    for field, value in changes.items():
        setattr(medicine, field, value)

    if "price" in changes and changes["price"] != old_price:
        notifications.notify_providers(
            db,
            event="Price change",
            details=f"{medicine.name} price changed from {old_price} to {changes['price']}",
            type=NotificationType.price_change,
        )

    db.commit()
    db.refresh(medicine)
    logger.info("Medicine %s updated: %s", medicine.id, sorted(changes))
    return medicine


def delete_medicine(db: Session, medicine_id: str) -> None:
    medicine = get_medicine(db, medicine_id)

    ordered = db.execute(select(OrderItem.id).where(OrderItem.medicine_id == medicine_id).limit(1)).first()
    if ordered:
        raise ConflictError("Medicine is referenced by orders and cannot be deleted", medicine_id=medicine_id)

    db.execute(delete(OrderTemplateItem).where(OrderTemplateItem.medicine_id == medicine_id))
    db.delete(medicine)
    db.commit()
    logger.info("Medicine %s deleted", medicine_id)
