"""Standardized error handling for the judge API.

This module provides:
1. Custom exception classes for caller-facing faults
2. Exception handlers for FastAPI
3. Standard error response models

Faults that happen while a program runs (compile errors, runtime errors,
timeouts, oversized output) are never raised through here. They are
recorded on the submission's test case results instead.

Usage:
    from judge.errors import NotFoundError, ValidationError

    if problem is None:
        raise NotFoundError(detail="Problem not found", problem_id=problem_id)

    # Register handlers in main.py:
    from judge.errors import register_exception_handlers
    register_exception_handlers(app)
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    detail: str | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    """Base class for API errors."""

    status_code: int = 500
    error: str = "internal_error"
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: str | None = None,
        error_code: str | None = None,
        **context: Any,
    ) -> None:
        self.detail = detail or self.__class__.detail
        self.error_code = error_code
        self.context = context if context else None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.error,
            detail=self.detail,
            error_code=self.error_code,
            context=self.context,
        )


class ValidationError(APIError):
    """Request failed validation before dispatch (400)."""

    status_code = 400
    error = "validation_error"
    detail = "Invalid request"


class ForbiddenError(APIError):
    """Forbidden error (403)."""

    status_code = 403
    error = "forbidden"
    detail = "Access denied"


class NotFoundError(APIError):
    """Resource not found error (404)."""

    status_code = 404
    error = "not_found"
    detail = "Resource not found"


class ExecutionTimeoutError(APIError):
    """Interactive execution exceeded its wall-clock budget (408)."""

    status_code = 408
    error = "timeout"
    detail = "Code execution timed out"


class RateLimitedError(APIError):
    """Too many requests from one client (429)."""

    status_code = 429
    error = "rate_limited"
    detail = "Too many requests, try again later"


class DatabaseError(APIError):
    """Database error (500)."""

    status_code = 500
    error = "database_error"
    detail = "Database operation failed"


class ConfigurationError(APIError):
    """A required toolchain is missing on the host (503)."""

    status_code = 503
    error = "configuration_error"
    detail = "Toolchain not available on this host"


class ServiceUnavailableError(APIError):
    """Service unavailable error (503)."""

    status_code = 503
    error = "service_unavailable"
    detail = "Service temporarily unavailable"


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors."""
    logger.warning(
        "API error: %s (status=%d, path=%s)",
        exc.detail,
        exc.status_code,
        request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception("Unhandled exception: %s (path=%s)", exc, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_error",
            detail="An unexpected error occurred",
        ).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
