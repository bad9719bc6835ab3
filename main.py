"""
Sanprinon Lite - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.database import create_engine_and_session_factory, init_db
from app.routers import billing, cron, expenses, ledger, reconciliations, reports, webhooks
from app.services.account_registry import seed_default_chart_of_accounts
from app.services.job_trigger import JobTrigger
from app.utils.error_handling import ErrorTrackingMiddleware, setup_exception_handlers

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_chart_of_accounts(app: FastAPI) -> None:
    """Make sure the default chart of accounts exists."""
    async with app.state.session_factory() as session:
        created = await seed_default_chart_of_accounts(session)
        await session.commit()
        if created:
            logger.info(f"Seeded {len(created)} chart of accounts rows")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    engine, session_factory = create_engine_and_session_factory(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.job_trigger = JobTrigger(
        timeout_seconds=settings.chained_job_timeout_seconds,
        bearer_token=settings.cron_secret or None,
    )

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db(engine)
        logger.info("Database tables initialized")
        try:
            await seed_chart_of_accounts(app)
        except Exception as e:
            logger.warning(f"Chart of accounts seeding skipped: {e}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await app.state.job_trigger.drain(timeout=settings.chained_job_timeout_seconds)
    await engine.dispose()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Double-entry ledger core for small property management",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(ErrorTrackingMiddleware)
setup_exception_handlers(app)


# ===========================================
# ROUTERS
# ===========================================

app.include_router(ledger.router)
app.include_router(billing.router)
app.include_router(expenses.router)
app.include_router(reports.router)
app.include_router(cron.router)
app.include_router(reconciliations.router)
app.include_router(webhooks.router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "0.1.0",
        "environment": settings.app_env,
    }
