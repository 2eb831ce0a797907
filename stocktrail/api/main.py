"""
StockTrail API

FastAPI application entry point.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request
from sqlalchemy import text

from .schemas import HealthResponse
from .routes import (
    activity,
    auth,
    borrowing,
    dashboard,
    inventory,
    users,
)
from .middleware import (
    setup_cors,
    setup_logging,
    setup_exception_handlers,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    get_session_factory,
    init_database,
    create_tables,
    dispose_database,
    Settings,
)

VERSION = "1.0.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

async def bootstrap_superadmin(settings: Settings) -> None:
    """Create the configured first Superadmin if the store has none."""
    from stocktrail.identity import IdentityService

    if not (settings.bootstrap_admin_email and settings.bootstrap_admin_password):
        return

    async with get_session_factory()() as session:
        user = await IdentityService(session).bootstrap_superadmin(
            name=settings.bootstrap_admin_name,
            email=settings.bootstrap_admin_email,
            password=settings.bootstrap_admin_password,
        )
    if user is not None:
        logger.info(f"Created initial Superadmin {settings.bootstrap_admin_email}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database connections
    - Create tables
    - Seed the first Superadmin
    - Dispose the connection pool on shutdown
    """
    settings = app.state.settings
    logger.info(f"Starting StockTrail in {settings.environment} mode")

    try:
        logger.info("Initializing database...")
        init_database(settings)
        await create_tables()
        await bootstrap_superadmin(settings)

        logger.info("StockTrail started successfully")

        yield

    finally:
        logger.info("Shutting down StockTrail...")
        await dispose_database()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
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
        title="StockTrail",
        description="Inventory and borrowing tracker for committee-managed assets and consumables.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.started_at = time.time()
    app.dependency_overrides[get_settings] = lambda: settings

    # ==========================================================================
    # Middleware (order matters - last added = outermost)
    # ==========================================================================

    setup_exception_handlers(app)

    setup_cors(
        app,
        config=get_cors_config(settings.environment, settings.cors_allowed_origins),
    )

    setup_logging(
        app,
        config=LoggingConfig(
            enabled=True,
            log_request_body=settings.debug,
        ),
        structured=settings.environment != "development",
    )

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api"

    for router in (
        auth.router,
        inventory.router,
        dashboard.router,
        borrowing.router,
        activity.history_router,
        activity.notifications_router,
        users.users_router,
        users.settings_router,
    ):
        app.include_router(router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """Liveness plus a round trip to the database."""
        try:
            async with get_session_factory()() as session:
                await session.execute(text("SELECT 1"))
            database = "connected"
        except RuntimeError:
            database = "not_initialized"
        except Exception as e:
            logger.error(f"Health check database probe failed: {e}")
            database = "unavailable"

        return HealthResponse(
            status="healthy" if database == "connected" else "degraded",
            version=VERSION,
            uptime_seconds=round(time.time() - request.app.state.started_at, 2),
            database=database,
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
        "stocktrail.api.main:app",
        host=os.getenv("STOCKTRAIL_HOST", "0.0.0.0"),
        port=int(os.getenv("STOCKTRAIL_PORT", "8000")),
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
