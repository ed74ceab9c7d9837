from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swrfph.app.api.audit_middleware import AuditMiddleware
from swrfph.app.api.v1.endpoints.health import router as health_router
from swrfph.app.api.v1.router import router as v1_router
from swrfph.app.core.config import Settings, get_settings
from swrfph.app.core.errors import register_exception_handlers
from swrfph.app.core.logging_config import configure_logging
from swrfph.app.db.session import SessionLocal


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="SWRFPH Pharmacy Supply", version="0.1.0")
    app.state.session_factory = SessionLocal

    app.add_middleware(AuditMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
