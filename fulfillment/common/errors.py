"""
Shared error taxonomy and FastAPI error handlers.

Each ServiceError subclass carries the HTTP status it maps to, so command
handlers raise domain errors and the web layer renders them uniformly as
``{"error": "<message>"}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ── Validation / business rules (400) ────────────


class ValidationFailed(ServiceError):
    status_code = 400


class InsufficientInventory(ServiceError):
    status_code = 400


class InvalidTransition(ServiceError):
    """An order status write that would leave a terminal state."""

    status_code = 400


# ── Missing entities (404) ───────────────────────


class ProductNotFound(ServiceError):
    status_code = 404


class OrderNotFound(ServiceError):
    status_code = 404


# ── Infrastructure (500) ─────────────────────────


class StoreError(ServiceError):
    """Transaction aborted or the store could not be reached."""

    status_code = 500


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
