"""
Bookshop API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bookshop import __version__
from bookshop.storage.session_store import SessionStore

from .schemas import HealthResponse
from .routes import auth, books, my_books, profile, users
from .middleware import setup_cors, setup_exception_handlers, setup_logging
from .dependencies import (
    Settings,
    close_session_store,
    create_tables,
    dispose_database,
    get_db,
    get_session_store,
    get_settings,
    init_database,
    init_session_store,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize the database engine and create tables
    - Connect the Redis session store
    - Dispose both on shutdown
    """
    settings = get_settings()
    logger.info(f"Starting Bookshop in {settings.environment} mode")

    try:
        logger.info("Initializing database...")
        init_database(settings)
        await create_tables()

        logger.info("Connecting session store...")
        init_session_store(settings)

        app.state.settings = settings
        logger.info("Bookshop started successfully")

        yield

    finally:
        logger.info("Shutting down Bookshop...")
        await close_session_store()
        await dispose_database()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Bookshop",
        description="Bookstore backend: accounts, sessions and a tagged book catalog.",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware (order matters - first added = outermost)
    # ==========================================================================

    # 1. Logging (captures everything)
    setup_logging(
        app,
        log_body=settings.debug,
        structured=settings.environment != "development",
    )

    # 2. Exception handling
    setup_exception_handlers(app)

    # 3. CORS
    setup_cors(app, settings)

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(auth.router)
    app.include_router(profile.router)
    app.include_router(my_books.router)
    app.include_router(books.router)
    app.include_router(users.router)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Bookshop",
            "version": __version__,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(
        db: AsyncSession = Depends(get_db),
        session_store: SessionStore = Depends(get_session_store),
    ) -> HealthResponse:
        """
        Health check endpoint.

        Returns status of the database and the session store.
        """
        components = {}
        overall_healthy = True

        try:
            await db.execute(text("SELECT 1"))
            components["database"] = "healthy"
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            components["database"] = f"unhealthy: {str(e)}"
            overall_healthy = False

        try:
            await session_store.ping()
            components["redis"] = "healthy"
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            components["redis"] = f"unhealthy: {str(e)}"
            overall_healthy = False

        return HealthResponse(
            status="healthy" if overall_healthy else "degraded",
            version=__version__,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "bookshop.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        workers=1 if settings.debug else 4,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
