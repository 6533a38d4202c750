"""
API middleware components.

Provides cross-cutting concerns for the API:
- Error handling
- CORS configuration
- Request logging
"""

from .error_handler import (
    create_error_response,
    format_validation_errors,
    setup_exception_handlers,
)

from .cors import cors_origins, setup_cors

from .logging import (
    StructuredLogFormatter,
    RequestLoggingMiddleware,
    setup_logging,
    get_request_id,
    redact_sensitive_data,
)


__all__ = [
    # Error handling
    "create_error_response",
    "format_validation_errors",
    "setup_exception_handlers",
    # CORS
    "cors_origins",
    "setup_cors",
    # Logging
    "StructuredLogFormatter",
    "RequestLoggingMiddleware",
    "setup_logging",
    "get_request_id",
    "redact_sensitive_data",
]
