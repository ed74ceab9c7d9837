"""Typed errors raised by the service layer.

Each error knows the HTTP status it maps to and a stable ``code`` that API
clients can switch on. ``register_exception_handlers`` turns them into a
uniform JSON body::

    {"error": {"code": "insufficient_stock", "message": "...", "details": {...}}}
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SwrfphError(Exception):
    """Base exception for all service errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(SwrfphError):
    """Raised when one or more referenced entities do not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, ids: str | Iterable[str]):
        self.entity = entity
        self.ids = [ids] if isinstance(ids, str) else list(ids)
        if len(self.ids) == 1:
            msg = f"{entity} {self.ids[0]} not found"
        else:
            msg = f"{entity} with ids {', '.join(self.ids)} not found"
        super().__init__(msg, entity=entity, ids=self.ids)


class ValidationError(SwrfphError):
    """Raised when input is malformed or violates a business rule."""

    status_code = 400
    code = "validation_error"


class InsufficientStockError(ValidationError):
    """Raised when a medicine cannot cover the requested quantity."""

    code = "insufficient_stock"

    def __init__(self, medicine_id: str, medicine_name: str, available: int, requested: int):
        self.medicine_id = medicine_id
        self.medicine_name = medicine_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {medicine_name}. Available: {available}, Requested: {requested}",
            medicine_id=medicine_id,
            available=available,
            requested=requested,
        )


class ConflictError(SwrfphError):
    """Raised when a unique value is already taken."""

    status_code = 409
    code = "conflict"


class AuthenticationError(SwrfphError):
    status_code = 401
    code = "unauthorized"


class PermissionDeniedError(SwrfphError):
    status_code = 403
    code = "forbidden"


class TransactionError(SwrfphError):
    """Raised when the storage layer fails underneath an operation."""

    status_code = 503
    code = "transaction_failed"

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage failure during {operation}", operation=operation)


async def _handle_swrfph_error(request: Request, exc: SwrfphError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
        headers={"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SwrfphError, _handle_swrfph_error)
