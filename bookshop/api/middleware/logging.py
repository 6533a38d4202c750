"""
Request logging middleware.

Every request gets an id (taken from ``X-Request-ID`` or generated),
echoed back on the response and attached to log records. Credentials
never reach the log: the Authorization header and password/OTP/token
body fields are replaced before logging.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
REDACTED = "[REDACTED]"

# Body fields carrying credentials
SECRET_FIELDS = frozenset({
    "password",
    "new_password",
    "confirm_password",
    "current_password",
    "otp",
    "token",
})
SECRET_HEADERS = frozenset({"authorization", "cookie"})
QUIET_PATHS = frozenset({"/health"})
MAX_LOGGED_BODY = 10_000
SLOW_REQUEST_SECONDS = 2.0

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("bookshop.api")


def get_request_id() -> str:
    """Id of the request being handled, or "" outside a request."""
    return request_id_var.get()


def redact_sensitive_data(data: Any, fields: frozenset = SECRET_FIELDS) -> Any:
    """Replace credential fields anywhere in a decoded JSON body."""
    if isinstance(data, dict):
        return {
            key: REDACTED if key.lower() in fields else redact_sensitive_data(value, fields)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, fields) for item in data]
    return data


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record, tagged with the request id."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        for key in ("request", "status_code", "duration_ms"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and timing for each request."""

    def __init__(self, app: FastAPI, log_body: bool = False):
        super().__init__(app)
        self.log_body = log_body

    async def _read_body(self, request: Request) -> Optional[str]:
        body = await request.body()
        if not body:
            return None
        if len(body) > MAX_LOGGED_BODY:
            return f"[{len(body)} bytes]"
        try:
            return json.dumps(redact_sensitive_data(json.loads(body)))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "[unparseable body]"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request_id_var.set(request_id)

        if request.url.path in QUIET_PATHS:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        details = {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "headers": {
                key: REDACTED if key.lower() in SECRET_HEADERS else value
                for key, value in request.headers.items()
            },
        }
        if self.log_body:
            details["body"] = await self._read_body(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        slow = elapsed > SLOW_REQUEST_SECONDS
        response.headers[REQUEST_ID_HEADER] = request_id

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or slow:
            level = logging.WARNING
        else:
            level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if slow:
            message = f"[SLOW] {message}"

        logger.log(
            level,
            message,
            extra={
                "request": details,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


def setup_logging(app: FastAPI, log_body: bool = False, structured: bool = True) -> None:
    """Install the request logger; with ``structured`` emit JSON lines."""
    if structured:
        bookshop_logger = logging.getLogger("bookshop")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in bookshop_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            bookshop_logger.addHandler(handler)
        bookshop_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, log_body=log_body)
