"""HTTP translation of booking domain errors."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from rentalops.errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Seconds a client should wait before retrying a transient storage failure
RETRY_AFTER_SECONDS = 5


def booking_error_response(exc: BookingError) -> JSONResponse:
    """Build the JSON response for a domain error.

    Storage failures never expose driver detail to the caller.
    """
    if isinstance(exc, ValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": exc.detail,
                "reason": exc.reason,
                "field": exc.field,
                "retryable": False,
            },
        )
    if isinstance(exc, NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "detail": str(exc),
                "reason": "not_found",
                "retryable": False,
            },
        )
    if isinstance(exc, ConflictError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": str(exc),
                "reason": "version_conflict",
                "expected_version": exc.expected_version,
                "current_version": exc.actual_version,
                "retryable": False,
            },
        )
    if isinstance(exc, PersistenceError):
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.retryable else None
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": (
                    "Storage temporarily unavailable, please retry"
                    if exc.retryable
                    else "The request could not be stored"
                ),
                "reason": "persistence_error",
                "retryable": exc.retryable,
            },
            headers=headers,
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "retryable": False},
    )


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error(
            "booking_persistence_error",
            path=request.url.path,
            retryable=exc.retryable,
            cause=type(exc.__cause__).__name__ if exc.__cause__ else None,
        )
    return booking_error_response(exc)


def setup_error_handlers(app: FastAPI) -> None:
    """Register domain error handlers on the application."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
