from fastapi import APIRouter

from swrfph.app.api.v1.endpoints.auth import router as auth_router
from swrfph.app.api.v1.endpoints.users import router as users_router
from swrfph.app.api.v1.endpoints.medicines import router as medicines_router
from swrfph.app.api.v1.endpoints.orders import router as orders_router
from swrfph.app.api.v1.endpoints.order_templates import router as order_templates_router
from swrfph.app.api.v1.endpoints.notifications import router as notifications_router
from swrfph.app.api.v1.endpoints.audit import router as audit_router
from swrfph.app.api.v1.endpoints.settings import router as settings_router
from swrfph.app.api.v1.endpoints.invoices import router as invoices_router
from swrfph.app.api.v1.endpoints.analytics import router as analytics_router
from swrfph.app.api.v1.endpoints.dashboard import router as dashboard_router
from swrfph.app.api.v1.endpoints.reports import router as reports_router

router = APIRouter()
router.include_router(auth_router, tags=["auth"])
router.include_router(users_router, tags=["users"])
router.include_router(medicines_router, tags=["medicines"])
router.include_router(orders_router, tags=["orders"])
router.include_router(order_templates_router, tags=["order_templates"])
router.include_router(notifications_router, tags=["notifications"])
router.include_router(audit_router, tags=["audit"])
router.include_router(settings_router, tags=["settings"])
router.include_router(invoices_router, tags=["invoices"])
router.include_router(analytics_router, tags=["analytics"])
router.include_router(dashboard_router, tags=["dashboard"])
router.include_router(reports_router, tags=["reports"])
