"""
Domain error taxonomy and global exception handlers.

Workflows raise these; handlers turn them into JSON without leaking
stack traces. ``Forbidden`` never carries the reason to the client.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Base class for every business-rule failure surfaced to callers."""

    status_code: int = 400
    error_code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(WorkflowError):
    """Malformed, missing or contradictory input."""

    status_code = 422
    error_code = "VALIDATION_ERROR"


class InsufficientBalance(WorkflowError):
    status_code = 409
    error_code = "INSUFFICIENT_BALANCE"


InsufficientCredits = InsufficientBalance


class OverlappingRequest(WorkflowError):
    status_code = 409
    error_code = "OVERLAPPING_REQUEST"


class DuplicateForDate(WorkflowError):
    status_code = 409
    error_code = "DUPLICATE_FOR_DATE"


class InvalidTransition(WorkflowError):
    status_code = 409
    error_code = "INVALID_TRANSITION"


class AlreadyReviewed(InvalidTransition):
    error_code = "ALREADY_REVIEWED"


class ConcurrentUpdate(InvalidTransition):
    """Optimistic version check lost against a concurrent writer."""

    error_code = "CONCURRENT_UPDATE"


class Forbidden(WorkflowError):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, reason: str = "") -> None:
        # The reason is for server logs only.
        self.reason = reason
        super().__init__("Forbidden")


class NotFound(WorkflowError):
    status_code = 404
    error_code = "NOT_FOUND"


class StoreUnavailable(WorkflowError):
    """Infrastructure failure; callers may retry with backoff."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"


async def _workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if isinstance(exc, Forbidden):
        logger.warning("Forbidden %s %s: %s", request.method, request.url.path, exc.reason)
    elif isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc.message)
    headers = {"Retry-After": "1"} if isinstance(exc, StoreUnavailable) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.error_code, "success": False},
        headers=headers,
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _operational_error_handler(_request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database unavailable: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=503,
        content={"detail": "Store unavailable", "code": StoreUnavailable.error_code, "success": False},
        headers={"Retry-After": "1"},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(WorkflowError, _workflow_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, _operational_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
