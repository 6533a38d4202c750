"""
Error Handling for Bookshop

Centralized error handling:
- Structured error responses
- Logging of errors
- Exception translation
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Iterable

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshop.errors import BookshopException

from .logging import get_request_id

# Request parts FastAPI prefixes onto error locations
_LOCATION_PARTS = {"body", "query", "path", "header", "cookie"}

_HTTP_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def create_error_response(error: str, code: str, status_code: int) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "code": code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def format_validation_errors(errors: Iterable[dict[str, Any]]) -> str:
    """
    Flatten pydantic error entries into one readable line.

    Each entry becomes ``"field: message"`` (nested fields dotted); model
    level errors carry no field. Entries are joined with ``", "``.
    """
    parts = []
    for error in errors:
        location = [
            str(part) for part in error.get("loc", ())
            if part not in _LOCATION_PARTS
        ]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{'.'.join(location)}: {message}" if location else message)
    return ", ".join(parts) or "Invalid request"


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(BookshopException)
    async def bookshop_exception_handler(request: Request, exc: BookshopException):
        if exc.status_code >= 500:
            logger.error(f"Bookshop error on {request.url.path}: {exc.code} - {exc.message}")
        else:
            logger.warning(f"Bookshop error on {request.url.path}: {exc.code} - {exc.message}")
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = format_validation_errors(exc.errors())
        logger.warning(f"Validation error on {request.url.path}: {message}")
        return create_error_response(
            error=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(PydanticValidationError)
    async def validation_exception_handler(request: Request, exc: PydanticValidationError):
        message = format_validation_errors(exc.errors())
        logger.warning(f"Validation error on {request.url.path}: {message}")
        return create_error_response(
            error=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return create_error_response(
            error=str(exc.detail),
            code=_HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception [request {get_request_id()}]: "
            f"{type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        # Don't expose internal error details
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
