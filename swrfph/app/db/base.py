from __future__ import annotations

import enum
import uuid

from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Enum type persisted by value ("PENDING"), not by member name."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
