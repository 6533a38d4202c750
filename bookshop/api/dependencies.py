"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database sessions
- The Redis session store
- Service instances (auth, catalog, profile, users)
- Bearer token authentication
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..accounts.service import ProfileService, UserService
from ..auth.service import AuthService
from ..catalog.service import CatalogService
from ..errors import UnauthorizedError
from ..mailer import SmtpMailer
from ..security import PasswordHasher
from ..storage.session_store import SessionStore


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./bookshop.db"
    database_echo: bool = False

    # Session store
    redis_url: str = "redis://localhost:6379/0"

    # Tokens and passwords
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 7 * 24 * 60 * 60
    otp_ttl_seconds: int = 10 * 60
    bcrypt_rounds: int = 10

    # SMTP (password reset codes)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_use_tls: bool = True
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None

    # CORS
    cors_origins: list[str] = field(default_factory=list)

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", cls.token_ttl_seconds)),
            otp_ttl_seconds=int(os.getenv("OTP_TTL_SECONDS", cls.otp_ttl_seconds)),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", cls.bcrypt_rounds)),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", cls.smtp_port)),
            smtp_use_tls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
            smtp_user=os.getenv("SMTP_USER"),
            smtp_password=os.getenv("SMTP_PASSWORD"),
            smtp_from=os.getenv("SMTP_FROM"),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
                if origin.strip()
            ],
            environment=os.getenv("BOOKSHOP_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Database
# =============================================================================

# Global engine and session factory (initialized in lifespan)
_engine = None
_async_session_factory = None


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite only enforces foreign keys when asked, per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _foreign_keys_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_database(settings: Settings) -> None:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    _engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    enable_sqlite_foreign_keys(_engine)

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession for database operations.
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database first.")

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create database tables."""
    from ..storage.models import Base
    if _engine is None:
        raise RuntimeError("Database not initialized.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_database() -> None:
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


# =============================================================================
# Session Store
# =============================================================================

_session_store: Optional[SessionStore] = None


def init_session_store(settings: Settings) -> SessionStore:
    """Connect the Redis-backed session store."""
    global _session_store
    client = Redis.from_url(settings.redis_url, decode_responses=True)
    _session_store = SessionStore(client)
    return _session_store


def get_session_store() -> SessionStore:
    """Dependency for the session store."""
    if _session_store is None:
        raise RuntimeError("Session store not initialized. Call init_session_store first.")
    return _session_store


async def close_session_store() -> None:
    global _session_store
    if _session_store is not None:
        await _session_store.close()
    _session_store = None


# =============================================================================
# Service Dependencies
# =============================================================================

@lru_cache()
def _password_hasher(rounds: int) -> PasswordHasher:
    return PasswordHasher(rounds=rounds)


def get_password_hasher(settings: Settings = Depends(get_settings)) -> PasswordHasher:
    """Dependency for the password hasher."""
    return _password_hasher(settings.bcrypt_rounds)


def get_mailer(settings: Settings = Depends(get_settings)) -> SmtpMailer:
    """Dependency for OTP e-mail delivery."""
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_from,
        use_tls=settings.smtp_use_tls,
        otp_ttl_minutes=settings.otp_ttl_seconds // 60,
    )


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    session_store: SessionStore = Depends(get_session_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    mailer: SmtpMailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    """Dependency for the auth service."""
    return AuthService(
        session=db,
        session_store=session_store,
        hasher=hasher,
        secret_key=settings.jwt_secret,
        mailer=mailer,
        algorithm=settings.jwt_algorithm,
        token_ttl_seconds=settings.token_ttl_seconds,
        otp_ttl_seconds=settings.otp_ttl_seconds,
    )


def get_catalog_service(db: AsyncSession = Depends(get_db)) -> CatalogService:
    """Dependency for the catalog service."""
    return CatalogService(db)


def get_profile_service(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> ProfileService:
    """Dependency for the profile service."""
    return ProfileService(db, hasher)


def get_user_service(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserService:
    """Dependency for generic user management."""
    return UserService(db, hasher)


# =============================================================================
# Authentication Dependencies
# =============================================================================

bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Extract the bearer token from the Authorization header.

    Raises:
        UnauthorizedError: Header missing or not a Bearer credential.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("No token provided")
    return credentials.credentials


async def get_current_account_id(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> int:
    """Require a live session token and return its account id."""
    return await auth_service.authenticate(token)
