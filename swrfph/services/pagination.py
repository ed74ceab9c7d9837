from __future__ import annotations

import math
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


def paginate(db: Session, stmt: Select, *, page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    """
    Run ``stmt`` for one page and count the full result.

    Returns (rows, pagination) with pagination = {page, limit, total, pages}.
    """
    page = max(int(page), 1)
    limit = max(int(limit), 1)

    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().unique().all()

    return list(rows), {
        "page": page,
        "limit": limit,
        "total": int(total),
        "pages": math.ceil(total / limit) if total else 0,
    }
