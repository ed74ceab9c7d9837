from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.models_v1 import User
from swrfph.app.schemas.order import OrderRead
from swrfph.app.schemas.order_template import OrderTemplateRead
from swrfph.services import order_templates, orders

router = APIRouter(prefix="/order-templates")

template_user = require(Capability.use_order_templates)


class TemplateItemIn(BaseModel):
    medicine_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(ge=1)


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    items: list[TemplateItemIn] = Field(min_length=1)


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    items: list[TemplateItemIn] | None = Field(default=None, min_length=1)


def _pairs(items: list[TemplateItemIn] | None):
    return None if items is None else [(i.medicine_id, i.quantity) for i in items]


@router.post("", response_model=OrderTemplateRead, status_code=201)
def create_template(payload: TemplateCreate, user: User = Depends(template_user), db: Session = Depends(get_db)):
    template = order_templates.create_template(
        db,
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        items=_pairs(payload.items),
    )
    return order_templates.to_dict(template)


@router.get("", response_model=list[OrderTemplateRead])
def list_templates(user: User = Depends(template_user), db: Session = Depends(get_db)):
    return [order_templates.to_dict(t) for t in order_templates.list_templates(db, user_id=user.id)]


@router.get("/{template_id}", response_model=OrderTemplateRead)
def get_template(template_id: str, user: User = Depends(template_user), db: Session = Depends(get_db)):
    return order_templates.to_dict(order_templates.get_template(db, template_id, user_id=user.id))


@router.put("/{template_id}", response_model=OrderTemplateRead)
def update_template(
    template_id: str,
    payload: TemplateUpdate,
    user: User = Depends(template_user),
    db: Session = Depends(get_db),
):
    template = order_templates.update_template(
        db,
        template_id,
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        items=_pairs(payload.items),
    )
    return order_templates.to_dict(template)


@router.delete("/{template_id}", status_code=204)
def delete_template(template_id: str, user: User = Depends(template_user), db: Session = Depends(get_db)):
    order_templates.delete_template(db, template_id, user_id=user.id)


@router.post(
    "/{template_id}/create-order",
    response_model=OrderRead,
    status_code=201,
    dependencies=[Depends(require(Capability.place_orders))],
)
def create_order_from_template(
    template_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(template_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = order_templates.create_order_from_template(db, template_id, user_id=user.id)
    background_tasks.add_task(
        orders.notify_order_placed,
        request.app.state.session_factory,
        order.id,
        settings.low_stock_threshold,
    )
    return order
