from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from swrfph.app.api.deps import get_db, require
from swrfph.app.core.permissions import Capability
from swrfph.app.db.models.models_v1 import User
from swrfph.services import dashboard

router = APIRouter(prefix="/dashboard")

viewer = require(Capability.view_dashboard)


@router.get("/provider")
def provider_stats(user: User = Depends(viewer), db: Session = Depends(get_db)):
    return dashboard.provider_stats(db, user_id=user.id)


@router.get("/admin", dependencies=[Depends(require(Capability.view_admin_dashboard))])
def admin_stats(db: Session = Depends(get_db)):
    return dashboard.admin_stats(db)


@router.get("/low-stock", dependencies=[Depends(viewer)])
def low_stock(db: Session = Depends(get_db)):
    return dashboard.low_stock_summary(db)


@router.get("/stock-details/{medicine_id}", dependencies=[Depends(viewer)])
def stock_details(medicine_id: str, db: Session = Depends(get_db)):
    return dashboard.stock_details(db, medicine_id)
