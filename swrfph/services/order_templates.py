from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from swrfph.app.core.errors import NotFoundError
from swrfph.app.db.models.models_v1 import Medicine, Order, OrderTemplate, OrderTemplateItem
from swrfph.services import orders

logger = logging.getLogger(__name__)


def to_dict(template: OrderTemplate) -> dict:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "user_id": template.user_id,
        "items": [
            {
                "id": item.id,
                "medicine_id": item.medicine_id,
                "medicine_name": item.medicine.name,
                "quantity": item.quantity,
                "price": float(item.price),
            }
            for item in template.items
        ],
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }


def _build_items(db: Session, items: Iterable[tuple[str, int]]) -> list[OrderTemplateItem]:
    requested = orders.merge_requested_items(items)
    medicines = db.execute(select(Medicine).where(Medicine.id.in_(list(requested)))).scalars().all()
    by_id = {m.id: m for m in medicines}

    missing = [mid for mid in requested if mid not in by_id]
    if missing:
        raise NotFoundError("Medicine", missing)

    # price is informative only; orders are always priced at placement time
    return [
        OrderTemplateItem(medicine_id=mid, quantity=qty, price=Decimal(by_id[mid].price))
        for mid, qty in requested.items()
    ]


def _load(db: Session, template_id: str, user_id: str) -> OrderTemplate:
    template = db.execute(
        select(OrderTemplate)
        .options(selectinload(OrderTemplate.items).selectinload(OrderTemplateItem.medicine))
        .where(OrderTemplate.id == template_id)
        .where(OrderTemplate.user_id == user_id)
    ).scalar_one_or_none()
    if not template:
        raise NotFoundError("OrderTemplate", template_id)
    return template


def create_template(
    db: Session,
    *,
    user_id: str,
    name: str,
    items: Iterable[tuple[str, int]],
    description: str | None = None,
) -> OrderTemplate:
    template = OrderTemplate(user_id=user_id, name=name, description=description, items=_build_items(db, items))
    db.add(template)
    db.commit()

    logger.info("Order template %s created for user %s", template.id, user_id)
    return _load(db, template.id, user_id)


def list_templates(db: Session, *, user_id: str) -> list[OrderTemplate]:
    return list(
        db.execute(
            select(OrderTemplate)
            .options(selectinload(OrderTemplate.items).selectinload(OrderTemplateItem.medicine))
            .where(OrderTemplate.user_id == user_id)
            .order_by(OrderTemplate.updated_at.desc(), OrderTemplate.id)
        )
        .scalars()
        .all()
    )


def get_template(db: Session, template_id: str, *, user_id: str) -> OrderTemplate:
    return _load(db, template_id, user_id)


def update_template(
    db: Session,
    template_id: str,
    *,
    user_id: str,
    name: str | None = None,
    description: str | None = None,
    items: Iterable[tuple[str, int]] | None = None,
) -> OrderTemplate:
    template = _load(db, template_id, user_id)

    if name is not None:
        template.name = name
    if description is not None:
        template.description = description
    if items is not None:
        # replace, never merge with the previous list
        template.items = _build_items(db, items)

    db.commit()
    db.expire_all()
    return _load(db, template_id, user_id)


def delete_template(db: Session, template_id: str, *, user_id: str) -> None:
    template = _load(db, template_id, user_id)
    db.delete(template)
    db.commit()
    logger.info("Order template %s deleted", template_id)


def create_order_from_template(db: Session, template_id: str, *, user_id: str) -> Order:
    template = _load(db, template_id, user_id)
    items = [(item.medicine_id, item.quantity) for item in template.items]
    return orders.place_order(db, user_id=user_id, items=items)
