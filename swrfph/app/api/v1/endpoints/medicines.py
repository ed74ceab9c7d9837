from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability
from swrfph.app.schemas.medicine import MedicinePage, MedicineRead
from swrfph.services import medicines

router = APIRouter(prefix="/medicines")


class MedicineCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: float = Field(ge=0)
    quantity: int = Field(ge=0)
    category: str | None = Field(default=None, max_length=100)


class MedicineUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=100)


@router.get("", response_model=MedicinePage)
def list_medicines(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=medicines.MAX_PAGE_SIZE),
    search: str | None = None,
    category: str | None = None,
    sort_by: Literal["name", "price", "quantity", "created_at", "category"] = "name",
    sort_order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
):
    return medicines.list_medicines(
        db,
        page=page,
        limit=limit,
        search=search,
        category=category,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/{medicine_id}", response_model=MedicineRead)
def get_medicine(medicine_id: str, db: Session = Depends(get_db)):
    return medicines.get_medicine(db, medicine_id)


@router.post(
    "",
    response_model=MedicineRead,
    status_code=201,
    dependencies=[Depends(require(Capability.manage_inventory))],
)
def create_medicine(payload: MedicineCreate, db: Session = Depends(get_db)):
    return medicines.create_medicine(db, **payload.model_dump())


@router.patch(
    "/{medicine_id}",
    response_model=MedicineRead,
    dependencies=[Depends(require(Capability.manage_inventory))],
)
def update_medicine(medicine_id: str, payload: MedicineUpdate, db: Session = Depends(get_db)):
    return medicines.update_medicine(db, medicine_id, **payload.model_dump(exclude_unset=True))


@router.delete(
    "/{medicine_id}",
    status_code=204,
    dependencies=[Depends(require(Capability.manage_inventory))],
)
def delete_medicine(medicine_id: str, db: Session = Depends(get_db)):
    medicines.delete_medicine(db, medicine_id)
