"""
Pytest configuration and fixtures for Bookshop tests.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bookshop.api.dependencies import (
    Settings,
    enable_sqlite_foreign_keys,
    get_db,
    get_mailer,
    get_session_store,
    get_settings,
)
from bookshop.api.main import create_app
from bookshop.auth.service import AuthService
from bookshop.errors import EmailDeliveryError
from bookshop.security import PasswordHasher
from bookshop.storage.models import Base
from bookshop.storage.session_store import SessionStore
from bookshop.storage.user_repository import UserRepository

TEST_SECRET = "test-secret-key"
TEST_BCRYPT_ROUNDS = 4


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        database_echo=False,
        redis_url="redis://localhost:6379/15",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
        environment="test",
        debug=True,
    )


# =============================================================================
# Mailer Doubles
# =============================================================================

class RecordingMailer:
    """Keeps every reset code instead of sending it."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_otp(self, email: str, otp: str) -> None:
        self.sent.append((email, otp))

    def last_otp_for(self, email: str) -> str:
        return [otp for recipient, otp in self.sent if recipient == email][-1]


class FailingMailer:
    async def send_otp(self, email: str, otp: str) -> None:
        raise EmailDeliveryError("SMTP delivery failed: connection refused")


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def session_store() -> AsyncGenerator[SessionStore, None]:
    """Session store over a private fake Redis server."""
    store = SessionStore(FakeAsyncRedis(server=FakeServer(), decode_responses=True))
    yield store
    await store.close()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def auth_service(db_session, session_store, hasher, mailer) -> AuthService:
    return AuthService(
        session=db_session,
        session_store=session_store,
        hasher=hasher,
        secret_key=TEST_SECRET,
        mailer=mailer,
    )


@pytest_asyncio.fixture
async def make_account(db_session, hasher):
    """Factory inserting an account directly; returns its id."""

    async def _make(username: str, password: str = "pw123456") -> int:
        user = await UserRepository(db_session).add(
            username,
            f"{username}@example.com",
            hasher.hash(password),
        )
        await db_session.commit()
        return user.id

    return _make


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def app(session_factory, session_store, mailer):
    """Create FastAPI application wired to the in-memory stores."""
    application = create_app(get_test_settings())

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_settings] = get_test_settings
    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_session_store] = lambda: session_store
    application.dependency_overrides[get_mailer] = lambda: mailer

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def sample_book_data() -> dict:
    """Sample book payload for testing."""
    return {
        "title": "Dune",
        "description": "Desert planet, spice, politics.",
        "price": 19.99,
        "category": "Science Fiction",
        "author": "Frank Herbert",
        "thumbnail": "https://example.com/dune.jpg",
        "tags": ["classic", "space opera"],
    }
