"""
CORS Configuration

Origins come from ``Settings.cors_origins``. With none configured,
development accepts any origin (without credentials) and every other
environment accepts none.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..dependencies import Settings

ALLOWED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["Accept", "Content-Type", "Authorization", "X-Request-ID"]


def cors_origins(settings: Settings) -> list[str]:
    if settings.cors_origins:
        return list(settings.cors_origins)
    if settings.environment == "development":
        return ["*"]
    return []


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware for the application."""
    origins = cors_origins(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )
