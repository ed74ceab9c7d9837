from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from swrfph.app.core.errors import NotFoundError
from swrfph.app.db.models.models_v1 import Medicine, Order, OrderItem, User
from swrfph.app.db.models.core_types import OrderStatus, Role
from swrfph.services.analytics import last_month_starts, month_start

logger = logging.getLogger(__name__)

# stock level classification, upper bounds (exclusive)
CRITICAL_STOCK = 10
LOW_STOCK = 25
WARNING_STOCK = 50

USAGE_WINDOW_DAYS = 30


def stock_level(quantity: int) -> str:
    if quantity < CRITICAL_STOCK:
        return "critical"
    if quantity < LOW_STOCK:
        return "low"
    if quantity < WARNING_STOCK:
        return "warning"
    return "good"


def percentage_change(old: float, new: float) -> int:
    if old == 0:
        return 100 if new > 0 else 0
    return round((new - old) / old * 100)


def _medicine_brief(m: Medicine) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "quantity": m.quantity,
        "category": m.category,
        "price": float(m.price),
        "description": m.description,
        "stock_level": stock_level(m.quantity),
    }


def _order_brief(o: Order, with_user: bool = False) -> dict:
    data = {
        "id": o.id,
        "user_id": o.user_id,
        "status": o.status.value,
        "total_price": float(o.total_price),
        "created_at": o.created_at,
        "updated_at": o.updated_at,
        "items": [{"id": i.id, "quantity": i.quantity, "price": float(i.price)} for i in o.items],
    }
    if with_user:
        data["user"] = {"name": o.user.name, "email": o.user.email}
    return data


def low_stock_summary(db: Session) -> dict:
    medicines = (
        db.execute(select(Medicine).where(Medicine.quantity < WARNING_STOCK).order_by(Medicine.quantity, Medicine.name))
        .scalars()
        .all()
    )
    groups: dict[str, list[dict]] = {"critical": [], "low": [], "warning": []}
    for m in medicines:
        groups[stock_level(m.quantity)].append(_medicine_brief(m))

    return {
        **groups,
        "total": len(medicines),
        "summary": {level: len(items) for level, items in groups.items()},
    }


def _sum_orders(db: Session, *, start: datetime, end: datetime, user_id: str | None = None, status=None) -> float:
    stmt = (
        select(func.coalesce(func.sum(Order.total_price), 0))
        .where(Order.created_at >= start)
        .where(Order.created_at < end)
    )
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    return float(db.execute(stmt).scalar_one() or 0)


def _count_orders(db: Session, *, start: datetime, end: datetime, user_id: str | None = None, status=None) -> int:
    stmt = select(func.count(Order.id)).where(Order.created_at >= start).where(Order.created_at < end)
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    return int(db.execute(stmt).scalar_one())


def _provider_month(db: Session, user_id: str, start: datetime, end: datetime) -> dict:
    return {
        "total_orders": _count_orders(db, start=start, end=end, user_id=user_id),
        "pending_orders": _count_orders(db, start=start, end=end, user_id=user_id, status=OrderStatus.pending),
        "completed_orders": _count_orders(db, start=start, end=end, user_id=user_id, status=OrderStatus.delivered),
        "total_spent": _sum_orders(db, start=start, end=end, user_id=user_id),
    }


def provider_stats(db: Session, *, user_id: str) -> dict:
    now = datetime.utcnow()
    this_month = month_start(now)
    last_month = month_start(now, -1)

    current = _provider_month(db, user_id, this_month, month_start(now, 1))
    previous = _provider_month(db, user_id, last_month, this_month)

    recent = (
        db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
            .limit(5)
        )
        .scalars()
        .all()
    )

    monthly_spending = [
        {
            "month": start.strftime("%Y-%m"),
            "amount": _sum_orders(
                db, start=start, end=month_start(start, 1), user_id=user_id, status=OrderStatus.delivered
            ),
        }
        for start in last_month_starts(6, now)
    ]

    return {
        "overview": {
            **current,
            "pending_orders_change": percentage_change(previous["pending_orders"], current["pending_orders"]),
            "completed_orders_change": percentage_change(previous["completed_orders"], current["completed_orders"]),
            "total_spent_change": percentage_change(previous["total_spent"], current["total_spent"]),
        },
        "recent_orders": [_order_brief(o) for o in recent],
        "low_stock_medicines": low_stock_summary(db),
        "monthly_spending": monthly_spending,
    }


def _admin_month(db: Session, start: datetime, end: datetime) -> dict:
    roles = dict(
        db.execute(select(User.role, func.count(User.id)).where(User.created_at < end).group_by(User.role)).all()
    )
    medicines = db.execute(select(func.count(Medicine.id)).where(Medicine.created_at < end)).scalar_one()
    return {
        "total_users": sum(roles.values()),
        "total_providers": roles.get(Role.provider, 0),
        "total_admins": roles.get(Role.admin, 0),
        "total_medicines": int(medicines),
        "total_orders": _count_orders(db, start=start, end=end),
        "total_revenue": _sum_orders(db, start=start, end=end, status=OrderStatus.delivered),
    }


def admin_stats(db: Session) -> dict:
    now = datetime.utcnow()
    this_month = month_start(now)

    current = _admin_month(db, this_month, month_start(now, 1))
    previous = _admin_month(db, month_start(now, -1), this_month)

    recent = (
        db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.user))
            .order_by(Order.created_at.desc(), Order.id)
            .limit(10)
        )
        .scalars()
        .all()
    )

    sold = func.sum(OrderItem.quantity).label("sold")
    top = db.execute(
        select(Medicine, sold, func.count(OrderItem.id))
        .join(OrderItem, OrderItem.medicine_id == Medicine.id)
        .group_by(Medicine.id)
        .order_by(sold.desc(), Medicine.name)
        .limit(5)
    ).all()

    monthly_revenue = [
        {
            "month": start.strftime("%Y-%m"),
            "revenue": _sum_orders(db, start=start, end=month_start(start, 1), status=OrderStatus.delivered),
        }
        for start in last_month_starts(6, now)
    ]

    return {
        "overview": {
            **current,
            "total_orders_change": percentage_change(previous["total_orders"], current["total_orders"]),
            "total_revenue_change": percentage_change(previous["total_revenue"], current["total_revenue"]),
            "total_users_change": percentage_change(previous["total_users"], current["total_users"]),
        },
        "recent_orders": [_order_brief(o, with_user=True) for o in recent],
        "low_stock_medicines": low_stock_summary(db),
        "top_medicines": [
            {"medicine": {"id": m.id, "name": m.name, "category": m.category}, "quantity": int(q or 0), "order_lines": int(n)}
            for m, q, n in top
        ],
        "monthly_revenue": monthly_revenue,
    }


def stock_recommendations(quantity: int, average_daily_usage: float) -> list[str]:
    recommendations = []
    level = stock_level(quantity)
    if level == "critical":
        recommendations.append("URGENT: Restock immediately - critical stock level")
    elif level == "low":
        recommendations.append("Order within 1-2 days to avoid stockout")
    elif level == "warning":
        recommendations.append("Consider placing an order soon")

    if average_daily_usage > 0:
        days_remaining = int(quantity // average_daily_usage)
        if days_remaining < 7:
            recommendations.append(f"Only {days_remaining} days of stock remaining at current usage rate")

    return recommendations or ["Stock levels are adequate"]


def stock_details(db: Session, medicine_id: str) -> dict:
    medicine = db.get(Medicine, medicine_id)
    if not medicine:
        raise NotFoundError("Medicine", medicine_id)

    since = datetime.utcnow() - timedelta(days=USAGE_WINDOW_DAYS)
    recent = db.execute(
        select(OrderItem.quantity, Order.id, Order.status, Order.created_at)
        .join(Order, Order.id == OrderItem.order_id)
        .where(OrderItem.medicine_id == medicine_id)
        .where(Order.created_at >= since)
        .order_by(Order.created_at.desc())
    ).all()

    ordered = sum(qty for qty, *_ in recent)
    usage = round(ordered / USAGE_WINDOW_DAYS, 2)

    return {
        "medicine": _medicine_brief(medicine),
        "stock_level": stock_level(medicine.quantity),
        "average_daily_usage": usage,
        "days_remaining": int(medicine.quantity // usage) if usage > 0 else None,
        "recent_activity": [
            {"order_id": oid, "quantity": qty, "status": status.value, "created_at": created}
            for qty, oid, status, created in recent[:10]
        ],
        "recommendations": stock_recommendations(medicine.quantity, usage),
    }
