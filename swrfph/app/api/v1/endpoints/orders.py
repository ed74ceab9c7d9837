from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_current_user, get_db, require
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.permissions import Capability, is_admin
from swrfph.app.db.models.models_v1 import User
from swrfph.app.db.models.core_types import OrderStatus
from swrfph.app.schemas.order import OrderPage, OrderRead
from swrfph.services import orders

router = APIRouter(prefix="/orders")


class OrderItemIn(BaseModel):
    medicine_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(ge=1)


class OrderCreate(BaseModel):
    items: list[OrderItemIn] = Field(min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


def _scope(user: User) -> str | None:
    # admins see everyone's orders, providers only their own
    return None if is_admin(user.role) else user.id


@router.post("", response_model=OrderRead, status_code=201)
def place_order(
    payload: OrderCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require(Capability.place_orders)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = orders.place_order(
        db,
        user_id=user.id,
        items=[(item.medicine_id, item.quantity) for item in payload.items],
    )
    background_tasks.add_task(
        orders.notify_order_placed,
        request.app.state.session_factory,
        order.id,
        settings.low_stock_threshold,
    )
    return order


@router.get("", response_model=OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return orders.list_orders(db, page=page, limit=limit, status=status, user_id=_scope(user))


@router.get("/past", response_model=OrderPage)
def list_past_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return orders.list_past_orders(db, page=page, limit=limit, user_id=_scope(user))


@router.get("/stats")
def order_stats(user: User = Depends(require(Capability.view_order_stats)), db: Session = Depends(get_db)):
    return orders.order_stats(db, user_id=_scope(user))


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return orders.get_order(db, order_id, user_id=_scope(user))


@router.patch(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require(Capability.manage_orders))],
)
def update_order_status(order_id: str, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    return orders.update_order_status(db, order_id, payload.status)
