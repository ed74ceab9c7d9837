"""
Read-only analytics over orders, users and medicines.

Period bucketing is done in pandas on the raw rows of the window; the
windows are small (months of orders) so nothing is pushed down to SQL
beyond the date filter.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

import pandas as pd
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from swrfph.app.core.errors import ValidationError
from swrfph.app.db.models.models_v1 import Medicine, Order, OrderItem, User
from swrfph.app.db.models.core_types import OrderStatus, Role

logger = logging.getLogger(__name__)

TREND_THRESHOLD_PCT = 10.0
ANNOUNCEMENT_WINDOW_DAYS = 30


def month_start(d: date | datetime, shift: int = 0) -> datetime:
    """First instant of the month of ``d``, moved by ``shift`` months."""
    index = d.year * 12 + (d.month - 1) + shift
    return datetime(index // 12, index % 12 + 1, 1)


def last_month_starts(months: int, now: datetime | None = None) -> list[datetime]:
    now = now or datetime.utcnow()
    return [month_start(now, -k) for k in range(months - 1, -1, -1)]


def _orders_frame(db: Session, stmt) -> pd.DataFrame:
    rows = [tuple(r) for r in db.execute(stmt).all()]
    df = pd.DataFrame(rows, columns=["id", "user_id", "status", "total_price", "created_at"])
    df["status"] = [OrderStatus(s).value for s in df["status"]]
    df["created_at"] = pd.to_datetime(df["created_at"])
    df["total_price"] = df["total_price"].astype(float)
    df["month"] = df["created_at"].dt.strftime("%Y-%m")
    return df


def _order_rows(since: datetime | None = None, until: datetime | None = None, user_id: str | None = None):
    stmt = select(Order.id, Order.user_id, Order.status, Order.total_price, Order.created_at)
    if since is not None:
        stmt = stmt.where(Order.created_at >= since)
    if until is not None:
        stmt = stmt.where(Order.created_at < until)
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    return stmt


# ---------- admin ----------
def revenue_trends(db: Session, *, months: int = 6) -> list[dict]:
    starts = last_month_starts(months)
    df = _orders_frame(db, _order_rows(since=starts[0]).where(Order.status != OrderStatus.cancelled))
    revenue = df.groupby("month")["total_price"].sum()

    return [
        {"month": start.isoformat(), "revenue": round(float(revenue.get(start.strftime("%Y-%m"), 0.0)), 2)}
        for start in starts
    ]


def user_growth(db: Session, *, months: int = 6) -> list[dict]:
    starts = last_month_starts(months)
    orders = _orders_frame(db, _order_rows(since=starts[0]))
    active = orders.groupby("month")["user_id"].nunique()

    created = pd.to_datetime(pd.Series(db.execute(select(User.created_at)).scalars().all(), dtype="object"))
    result = []
    for start in starts:
        end = month_start(start, 1)
        key = start.strftime("%Y-%m")
        result.append(
            {
                "month": start.isoformat(),
                "new_users": int(((created >= start) & (created < end)).sum()),
                "active_users": int(active.get(key, 0)),
                "total_users": int((created < end).sum()),
            }
        )
    return result


def medicine_performance(db: Session, *, limit: int = 10) -> list[dict]:
    sold = func.sum(OrderItem.quantity).label("sold")
    revenue = func.sum(OrderItem.quantity * OrderItem.price).label("revenue")
    rows = db.execute(
        select(Medicine, sold, revenue, func.count(OrderItem.id).label("lines"))
        .join(OrderItem, OrderItem.medicine_id == Medicine.id)
        .group_by(Medicine.id)
        .order_by(sold.desc(), Medicine.name)
        .limit(limit)
    ).all()

    return [
        {
            "medicine_id": medicine.id,
            "name": medicine.name,
            "category": medicine.category or "Uncategorized",
            "sales": int(sold_qty or 0),
            "revenue": float(rev or 0),
            "order_lines": int(lines),
            "stock": medicine.quantity,
        }
        for medicine, sold_qty, rev, lines in rows
    ]


def provider_performance(db: Session, *, limit: int = 10) -> list[dict]:
    revenue = func.coalesce(func.sum(Order.total_price), 0).label("revenue")
    order_count = func.count(Order.id).label("orders")

    rows = db.execute(
        select(User, order_count, revenue)
        .outerjoin(Order, Order.user_id == User.id)
        .where(User.role == Role.provider)
        .group_by(User.id)
        .order_by(revenue.desc(), User.name)
        .limit(limit)
    ).all()

    delivered_counts = dict(
        db.execute(
            select(Order.user_id, func.count(Order.id))
            .where(Order.status == OrderStatus.delivered)
            .group_by(Order.user_id)
        ).all()
    )

    result = []
    for user, n_orders, rev in rows:
        n_delivered = delivered_counts.get(user.id, 0)
        result.append(
            {
                "provider_id": user.id,
                "name": user.name or user.email,
                "orders": int(n_orders),
                "revenue": float(rev or 0),
                "completion_rate": round(100.0 * n_delivered / n_orders, 1) if n_orders else 0.0,
            }
        )
    return result


def seasonal_patterns(db: Session, *, year: int) -> list[dict]:
    starts = [datetime(year, m, 1) for m in range(1, 13)]
    df = _orders_frame(db, _order_rows(since=starts[0], until=datetime(year + 1, 1, 1)))
    grouped = df.groupby("month").agg(orders=("id", "count"), revenue=("total_price", "sum"))

    result = []
    for start in starts:
        key = start.strftime("%Y-%m")
        if key in grouped.index:
            n_orders, rev = int(grouped.loc[key, "orders"]), float(grouped.loc[key, "revenue"])
        else:
            n_orders, rev = 0, 0.0
        result.append({"month": start.strftime("%b"), "orders": n_orders, "revenue": round(rev, 2)})
    return result


def global_search(db: Session, *, query: str, type: str | None = None, limit: int = 10) -> list[dict]:
    if not query:
        return []
    if type not in (None, "order", "user", "medicine"):
        raise ValidationError(f"Unknown search type {type}")

    pattern = f"%{query}%"
    results: list[dict] = []

    if type in (None, "order"):
        for o in db.execute(select(Order).where(Order.id.ilike(pattern)).limit(limit)).scalars():
            results.append(
                {
                    "id": o.id,
                    "type": "order",
                    "title": f"Order #{o.id[:8]}",
                    "description": "Customer order",
                    "metadata": {"status": o.status.value, "date": o.created_at.isoformat(), "amount": float(o.total_price)},
                    "relevance": 0.9,
                }
            )

    if type in (None, "user"):
        stmt = select(User).where(or_(User.email.ilike(pattern), User.name.ilike(pattern))).limit(limit)
        for u in db.execute(stmt).scalars():
            results.append(
                {
                    "id": u.id,
                    "type": "user",
                    "title": u.name or u.email,
                    "description": "User account",
                    "metadata": {"role": u.role.value, "date": u.created_at.isoformat()},
                    "relevance": 0.8,
                }
            )

    if type in (None, "medicine"):
        for m in db.execute(select(Medicine).where(Medicine.name.ilike(pattern)).limit(limit)).scalars():
            results.append(
                {
                    "id": m.id,
                    "type": "medicine",
                    "title": m.name,
                    "description": m.description or "Medicine",
                    "metadata": {
                        "category": m.category,
                        "status": "active" if m.quantity > 0 else "inactive",
                        "amount": float(m.price),
                    },
                    "relevance": 0.7,
                }
            )

    return results[:limit]


# ---------- admin or provider (user_id=None means every user) ----------
def order_trends(db: Session, *, user_id: str | None, period: str = "month", periods: int = 6) -> list[dict]:
    now = datetime.utcnow()
    if period == "month":
        starts = last_month_starts(periods, now)
        ends = [month_start(s, 1) for s in starts]
        labels = [s.strftime("%b %Y") for s in starts]
    elif period == "week":
        this_week = datetime(now.year, now.month, now.day) - timedelta(days=now.weekday())
        starts = [this_week - timedelta(weeks=k) for k in range(periods - 1, -1, -1)]
        ends = [s + timedelta(weeks=1) for s in starts]
        labels = [f"Week of {s.date().isoformat()}" for s in starts]
    else:
        raise ValidationError("period must be 'week' or 'month'")

    df = _orders_frame(db, _order_rows(since=starts[0], user_id=user_id))

    result = []
    for start, end, label in zip(starts, ends, labels):
        in_bucket = (df["created_at"] >= start) & (df["created_at"] < end)
        result.append(
            {
                "period": label,
                "orders": int(in_bucket.sum()),
                "revenue": round(float(df.loc[in_bucket, "total_price"].sum()), 2),
            }
        )
    return result


def _items_frame(db: Session, *, user_id: str | None, months: int) -> pd.DataFrame:
    since = month_start(datetime.utcnow(), -(months - 1))
    stmt = (
        select(
            OrderItem.order_id,
            OrderItem.medicine_id,
            Medicine.name,
            Medicine.category,
            OrderItem.quantity,
            OrderItem.price,
            Order.created_at,
        )
        .join(Order, Order.id == OrderItem.order_id)
        .join(Medicine, Medicine.id == OrderItem.medicine_id)
        .where(Order.created_at >= since)
    )
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)

    rows = [tuple(r) for r in db.execute(stmt).all()]
    df = pd.DataFrame(
        rows,
        columns=["order_id", "medicine_id", "medicine_name", "category", "quantity", "price", "created_at"],
    )
    df["quantity"] = df["quantity"].astype(int)
    df["price"] = df["price"].astype(float)
    df["line_total"] = df["quantity"] * df["price"]
    df["category"] = df["category"].fillna("Uncategorized")
    df["created_at"] = pd.to_datetime(df["created_at"])
    return df


def top_ordered_medicines(db: Session, *, user_id: str | None, limit: int = 10, months: int = 6) -> list[dict]:
    df = _items_frame(db, user_id=user_id, months=months)
    if df.empty:
        return []

    grouped = (
        df.groupby(["medicine_id", "medicine_name"])
        .agg(
            total_quantity=("quantity", "sum"),
            total_orders=("order_id", "nunique"),
            last_ordered=("created_at", "max"),
        )
        .reset_index()
        .sort_values(["total_quantity", "medicine_name"], ascending=[False, True])
        .head(limit)
    )

    return [
        {
            "medicine_id": row.medicine_id,
            "medicine_name": row.medicine_name,
            "total_quantity": int(row.total_quantity),
            "total_orders": int(row.total_orders),
            "average_quantity": round(row.total_quantity / row.total_orders, 2),
            "last_ordered": row.last_ordered.to_pydatetime(),
        }
        for row in grouped.itertuples(index=False)
    ]


def spending_analysis(db: Session, *, user_id: str | None, months: int = 6) -> list[dict]:
    df = _items_frame(db, user_id=user_id, months=months)
    if df.empty:
        return []

    total = float(df["line_total"].sum())
    grouped = (
        df.groupby("category")
        .agg(total_spent=("line_total", "sum"), order_count=("order_id", "nunique"))
        .reset_index()
        .sort_values("total_spent", ascending=False)
    )

    return [
        {
            "category": row.category,
            "total_spent": round(float(row.total_spent), 2),
            "percentage": round(100.0 * row.total_spent / total, 2) if total > 0 else 0.0,
            "order_count": int(row.order_count),
            "average_order_value": round(float(row.total_spent) / row.order_count, 2) if row.order_count else 0.0,
        }
        for row in grouped.itertuples(index=False)
    ]


def order_frequency_metrics(db: Session, *, user_id: str | None, months: int = 6) -> dict:
    now = datetime.utcnow()
    since = month_start(now, -months)
    df = _orders_frame(db, _order_rows(since=since, user_id=user_id))

    total = len(df)
    weeks = max(((now - since).days + 6) // 7, 1)

    # orders in the first half of the window against the second half
    midpoint = since + (now - since) / 2
    first_half = int((df["created_at"] < midpoint).sum())
    second_half = total - first_half
    change = 0.0
    trend = "stable"
    if first_half > 0:
        change = 100.0 * (second_half - first_half) / first_half
        if change > TREND_THRESHOLD_PCT:
            trend = "increasing"
        elif change < -TREND_THRESHOLD_PCT:
            trend = "decreasing"

    return {
        "average_orders_per_week": round(total / weeks, 2),
        "average_orders_per_month": round(total / months, 2),
        "total_orders": total,
        "period": f"{months} months",
        "trend": trend,
        "change_percentage": round(abs(change), 2),
    }


# ---------- public ----------
def new_medicine_announcements(db: Session, *, limit: int = 5) -> list[dict]:
    since = datetime.utcnow() - timedelta(days=ANNOUNCEMENT_WINDOW_DAYS)
    medicines = db.execute(
        select(Medicine).where(Medicine.created_at >= since).order_by(Medicine.created_at.desc()).limit(limit)
    ).scalars()

    return [
        {
            "medicine_id": m.id,
            "medicine_name": m.name,
            "description": m.description or "",
            "category": m.category or "Uncategorized",
            "price": float(m.price),
            "added_date": m.created_at,
        }
        for m in medicines
    ]
