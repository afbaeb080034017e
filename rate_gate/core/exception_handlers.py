"""Global exception handlers for consistent error responses.

Design:
- StoreAppError → 503 (the counter backend is unavailable)
- ResolutionAppError / ConfigurationAppError → 500 (server-side fault)
- Other AppError → 400
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for tracing

The rate limit middleware runs outside FastAPI's routing layer, so its errors
only reach the server-error handler. ``general_exception_handler`` therefore
delegates ``AppError`` instances to ``app_error_handler``.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from rate_gate.core.errors import AppError, ConfigurationAppError, ResolutionAppError, StoreAppError
from rate_gate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for_error(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""

    if isinstance(exc, StoreAppError):
        return 503
    if isinstance(exc, (ResolutionAppError, ConfigurationAppError)):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with a consistent JSON body.

    Args:
        request: Incoming request.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``error.code``, ``error.message``, ``error.request_id``
        and, when present, ``error.details``.
    """

    status_code = status_for_error(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message; no stack trace reaches
    the client.
    """

    if isinstance(exc, AppError):
        return await app_error_handler(request, exc)

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
