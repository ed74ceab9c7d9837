from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability, is_admin
from swrfph.app.db.models.models_v1 import User
from swrfph.services import analytics

router = APIRouter(prefix="/analytics")

admin_only = [Depends(require(Capability.view_analytics))]
own_analytics = require(Capability.view_own_analytics)


def _scope(user: User) -> str | None:
    return None if is_admin(user.role) else user.id


# ---------- admin ----------
@router.get("/revenue-trends", dependencies=admin_only)
def revenue_trends(months: int = Query(6, ge=1, le=36), db: Session = Depends(get_db)):
    return analytics.revenue_trends(db, months=months)


@router.get("/user-growth", dependencies=admin_only)
def user_growth(months: int = Query(6, ge=1, le=36), db: Session = Depends(get_db)):
    return analytics.user_growth(db, months=months)


@router.get("/medicine-performance", dependencies=admin_only)
def medicine_performance(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return analytics.medicine_performance(db, limit=limit)


@router.get("/provider-performance", dependencies=admin_only)
def provider_performance(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return analytics.provider_performance(db, limit=limit)


@router.get("/seasonal-patterns", dependencies=admin_only)
def seasonal_patterns(year: int | None = Query(None, ge=2000, le=2100), db: Session = Depends(get_db)):
    return analytics.seasonal_patterns(db, year=year or datetime.utcnow().year)


@router.get("/search", dependencies=admin_only)
def global_search(
    q: str = "",
    type: Literal["order", "user", "medicine"] | None = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return analytics.global_search(db, query=q, type=type, limit=limit)


# ---------- admin or provider ----------
@router.get("/order-trends")
def order_trends(
    period: Literal["week", "month"] = "month",
    periods: int = Query(6, ge=1, le=52),
    user: User = Depends(own_analytics),
    db: Session = Depends(get_db),
):
    return analytics.order_trends(db, user_id=_scope(user), period=period, periods=periods)


@router.get("/top-ordered-medicines")
def top_ordered_medicines(
    limit: int = Query(10, ge=1, le=100),
    months: int = Query(6, ge=1, le=36),
    user: User = Depends(own_analytics),
    db: Session = Depends(get_db),
):
    return analytics.top_ordered_medicines(db, user_id=_scope(user), limit=limit, months=months)


@router.get("/spending-analysis")
def spending_analysis(
    months: int = Query(6, ge=1, le=36),
    user: User = Depends(own_analytics),
    db: Session = Depends(get_db),
):
    return analytics.spending_analysis(db, user_id=_scope(user), months=months)


@router.get("/order-frequency-metrics")
def order_frequency_metrics(user: User = Depends(own_analytics), db: Session = Depends(get_db)):
    return analytics.order_frequency_metrics(db, user_id=_scope(user))


# ---------- public ----------
@router.get("/new-medicine-announcements")
def new_medicine_announcements(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return analytics.new_medicine_announcements(db, limit=limit)
