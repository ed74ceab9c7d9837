"""
Order service.

Placement is the only operation touching stock: validation, order creation
and stock decrement share one transaction. Status updates are plain admin
writes.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from swrfph.app.core.errors import (
    InsufficientStockError,
    NotFoundError,
    SwrfphError,
    TransactionError,
    ValidationError,
)
from swrfph.app.db.models.models_v1 import Medicine, Order, OrderItem, User
from swrfph.app.db.models.core_types import NotificationType, OrderStatus, PAST_ORDER_STATUSES
from swrfph.services import notifications
from swrfph.services.pagination import paginate

logger = logging.getLogger(__name__)


def merge_requested_items(items: Iterable[tuple[str, int]]) -> "OrderedDict[str, int]":
    """
    Collapse (medicine_id, quantity) pairs into one entry per medicine,
    keeping first-seen order and summing quantities.
    """
    merged: OrderedDict[str, int] = OrderedDict()
    for medicine_id, quantity in items:
        if not medicine_id:
            raise ValidationError("medicine_id is required")
        if int(quantity) < 1:
            raise ValidationError(
                f"Quantity for {medicine_id} must be at least 1",
                medicine_id=medicine_id,
                quantity=quantity,
            )
        merged[medicine_id] = merged.get(medicine_id, 0) + int(quantity)

    if not merged:
        raise ValidationError("An order needs at least one item")
    return merged


def _decrement_stock(db: Session, medicine: Medicine, quantity: int) -> None:
    # guarded so a concurrent placement that already took the stock cannot oversell
    result = db.execute(
        update(Medicine)
        .where(Medicine.id == medicine.id)
        .where(Medicine.quantity >= quantity)
        .values(quantity=Medicine.quantity - quantity, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = db.execute(select(Medicine.quantity).where(Medicine.id == medicine.id)).scalar_one()
        raise InsufficientStockError(medicine.id, medicine.name, int(available), quantity)


def place_order(db: Session, *, user_id: str, items: Iterable[tuple[str, int]]) -> Order:
    """
    Create a PENDING order for ``user_id`` and reserve its stock.

    Prices come from the medicines as they are now, never from the caller.
    Either the order, its items and every stock decrement are committed,
    or nothing is.
    """
    requested = merge_requested_items(items)

    try:
        if not db.get(User, user_id):
            raise NotFoundError("User", user_id)

        medicines = (
            db.execute(
                select(Medicine)
                .where(Medicine.id.in_(list(requested)))
                .with_for_update()
            )
            .scalars()
            .all()
        )
        by_id = {m.id: m for m in medicines}

        missing = [mid for mid in requested if mid not in by_id]
        if missing:
            raise NotFoundError("Medicine", missing)

        total_price = Decimal("0")
        lines: list[OrderItem] = []
        for medicine_id, quantity in requested.items():
            medicine = by_id[medicine_id]
            if medicine.quantity < quantity:
                raise InsufficientStockError(medicine.id, medicine.name, medicine.quantity, quantity)

            unit_price = Decimal(medicine.price)
            total_price += unit_price * quantity
            lines.append(OrderItem(medicine_id=medicine_id, quantity=quantity, price=unit_price))

        order = Order(
            user_id=user_id,
            status=OrderStatus.pending,
            total_price=total_price,
            items=lines,
        )
        db.add(order)
        db.flush()

        for medicine_id, quantity in requested.items():
            _decrement_stock(db, by_id[medicine_id], quantity)

        db.commit()
    except SwrfphError as exc:
        db.rollback()
        logger.warning("Order placement rejected for user %s: %s", user_id, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Order placement failed for user %s", user_id)
        raise TransactionError("order placement", exc) from exc

    logger.info("Order %s placed by user %s: %d items, total %s", order.id, user_id, len(lines), total_price)
    return load_order(db, order.id)


def _order_query():
    return select(Order).options(
        selectinload(Order.items).selectinload(OrderItem.medicine),
        selectinload(Order.user),
    )


def load_order(db: Session, order_id: str) -> Order:
    order = db.execute(_order_query().where(Order.id == order_id)).scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def get_order(db: Session, order_id: str, *, user_id: str | None = None) -> Order:
    """Fetch one order; with ``user_id`` only that user's orders are visible."""
    order = load_order(db, order_id)
    if user_id is not None and order.user_id != user_id:
        raise NotFoundError("Order", order_id)
    return order


def list_orders(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    status: OrderStatus | None = None,
    user_id: str | None = None,
):
    stmt = _order_query().order_by(Order.created_at.desc(), Order.id)
    if user_id:
        stmt = stmt.where(Order.user_id == user_id)
    if status:
        stmt = stmt.where(Order.status == status)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination}


def list_past_orders(db: Session, *, page: int = 1, limit: int = 10, user_id: str | None = None):
    stmt = (
        _order_query()
        .where(Order.status.in_(PAST_ORDER_STATUSES))
        .order_by(Order.created_at.desc(), Order.id)
    )
    if user_id:
        stmt = stmt.where(Order.user_id == user_id)

    rows, pagination = paginate(db, stmt, page=page, limit=limit)
    return {"data": rows, "pagination": pagination}


def update_order_status(db: Session, order_id: str, status: OrderStatus) -> Order:
    # any status may follow any other; no transition graph is enforced
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order", order_id)

    previous = order.status
    order.status = status
    notifications.notify(
        db,
        event="Order status updated",
        details=f"Order {order.id} moved from {previous.value} to {status.value}",
        type=NotificationType.order,
        user_id=order.user_id,
    )
    db.commit()

    logger.info("Order %s status %s -> %s", order.id, previous.value, status.value)
    return load_order(db, order.id)


def order_stats(db: Session, *, user_id: str | None = None) -> dict:
    stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
    revenue_stmt = select(func.coalesce(func.sum(Order.total_price), 0)).where(Order.status == OrderStatus.delivered)
    if user_id:
        stmt = stmt.where(Order.user_id == user_id)
        revenue_stmt = revenue_stmt.where(Order.user_id == user_id)

    counts = {status: int(n) for status, n in db.execute(stmt).all()}
    revenue = db.execute(revenue_stmt).scalar_one()

    return {
        "total_orders": sum(counts.values()),
        "pending_orders": counts.get(OrderStatus.pending, 0),
        "processing_orders": counts.get(OrderStatus.processing, 0),
        "shipped_orders": counts.get(OrderStatus.shipped, 0),
        "delivered_orders": counts.get(OrderStatus.delivered, 0),
        "cancelled_orders": counts.get(OrderStatus.cancelled, 0),
        "total_revenue": float(revenue or 0),
    }


def notify_order_placed(session_factory: Callable[[], Session], order_id: str, low_stock_threshold: int) -> None:
    """
    Post-commit notifications for a placed order.

    Runs after the response; failures are logged and never reach the caller,
    the order itself is already committed.
    """
    db = session_factory()
    try:
        order = load_order(db, order_id)
        notifications.notify(
            db,
            event="Order placed",
            details=f"Order {order.id} placed with {len(order.items)} items, total {order.total_price}",
            type=NotificationType.order,
            user_id=order.user_id,
        )
        for item in order.items:
            medicine = item.medicine
            if medicine.quantity < low_stock_threshold:
                notifications.notify(
                    db,
                    event="Low stock",
                    details=f"{medicine.name} is down to {medicine.quantity} units",
                    type=NotificationType.stock_alert,
                )
        db.commit()
    except (SQLAlchemyError, SwrfphError):
        db.rollback()
        logger.exception("Post-order notifications failed for order %s", order_id)
    finally:
        db.close()
