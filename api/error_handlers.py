"""Global exception handlers for FastAPI.

Every error body has the shape {"success": false, "error": {...}}.
Internal server errors (500s) are logged but not exposed to clients.
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.exceptions import CrosspostException

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "-"


def create_error_response(
    code: str,
    message: str,
    details: Any = None,
) -> dict[str, Any]:
    """Create standardized error response structure.

    Args:
        code: Machine-readable error code
        message: Human-readable error message
        details: Optional additional context

    Returns:
        Error response dictionary
    """
    error = {
        "code": code,
        "message": message,
    }
    if details:
        error["details"] = details
    return {"success": False, "error": error}


async def crosspost_exception_handler(
    request: Request, exc: CrosspostException
) -> JSONResponse:
    """Handle CrosspostException and subclasses.

    Client errors are routine and logged at INFO; only 5xx responses are
    logged as errors.
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "API error: %s (code=%s, status=%d, path=%s, request_id=%s)",
        exc.message,
        exc.error_code,
        exc.status_code,
        request.url.path,
        _request_id(request),
        extra={"details": exc.details},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=exc.error_code,
            message=exc.message,
            details=exc.details if exc.details else None,
        ),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as INVALID_CONTENT."""
    errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error.get("loc", []))
        errors.append(
            {
                "field": loc,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
        )

    logger.info(
        "Validation error: %d field errors (path=%s)",
        len(errors),
        request.url.path,
    )

    return JSONResponse(
        status_code=400,
        content=create_error_response(
            code="INVALID_CONTENT",
            message="Invalid request data",
            details={"errors": errors},
        ),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle Starlette/FastAPI HTTPExceptions in the same envelope."""
    status_code_map = {
        400: "BAD_REQUEST",
        401: "AUTHENTICATION_REQUIRED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "UNPROCESSABLE_ENTITY",
        500: "INTERNAL_SERVER_ERROR",
    }

    error_code = status_code_map.get(exc.status_code, "ERROR")
    message = str(exc.detail) if exc.detail else "An error occurred"

    if exc.status_code >= 500:
        logger.error(
            "HTTP error %d: %s (path=%s)",
            exc.status_code,
            message,
            request.url.path,
        )
    else:
        logger.info(
            "HTTP error %d: %s (path=%s)",
            exc.status_code,
            message,
            request.url.path,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(code=error_code, message=message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the full traceback and return a generic message."""
    logger.error(
        "Unhandled exception: %s (path=%s, request_id=%s)\n%s",
        str(exc),
        request.url.path,
        _request_id(request),
        traceback.format_exc(),
    )

    return JSONResponse(
        status_code=500,
        content=create_error_response(
            code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred",
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app."""
    app.add_exception_handler(CrosspostException, crosspost_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
