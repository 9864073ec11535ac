"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from corp_hr.api.applications import router as applications_router
from corp_hr.api.deps import require_api_key
from corp_hr.api.errors import setup_exception_handlers
from corp_hr.api.notes import router as notes_router
from corp_hr.api.recommendations import router as recommendations_router
from corp_hr.api.roles import router as roles_router
from corp_hr.core.database import db
from corp_hr.core.logging import logger, setup_logging
from corp_hr.middleware import AccessLogMiddleware, CallerContextMiddleware, setup_rate_limiting
from corp_hr.services.hr import hr
from corp_hr.services.scheduler import (
    scheduler,
    setup_scheduler,
    shutdown_scheduler,
    start_scheduler,
)

# Configure logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    logger.info("application_starting")
    await db.connect()

    setup_scheduler()
    start_scheduler()

    logger.info("application_ready")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    shutdown_scheduler()
    await db.disconnect()
    logger.info("application_stopped")


# Create FastAPI app
app = FastAPI(
    title="Corporation HR",
    description="Applications, recommendations, HR notes and HR roles for corporations",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware runs in reverse order of registration: caller context first, then access log
app.add_middleware(AccessLogMiddleware)
app.add_middleware(CallerContextMiddleware)

setup_exception_handlers(app)
setup_rate_limiting(app)

# Include routers
api_dependencies = [Depends(require_api_key)]
app.include_router(applications_router, dependencies=api_dependencies)
app.include_router(recommendations_router, dependencies=api_dependencies)
app.include_router(notes_router, dependencies=api_dependencies)
app.include_router(roles_router, dependencies=api_dependencies)


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Health check endpoint.

    Verifies database connectivity and reports pool and role cache stats.

    Returns:
        dict: Health status with database, scheduler, pool, and cache information

    Raises:
        HTTPException: 503 if database is unavailable
    """
    try:
        await db.fetchval("SELECT 1")

        # Get connection pool stats
        if not db.pool:
            raise RuntimeError("Database pool not initialized")

        pool_size = db.pool.get_size()
        pool_free = db.pool.get_idle_size()

        return {
            "status": "healthy",
            "database": "connected",
            "scheduler": "running" if scheduler.running else "stopped",
            "pool": {
                "size": pool_size,
                "free": pool_free,
                "in_use": pool_size - pool_free,
            },
            "role_cache": hr.role_cache.stats(),
        }
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        raise HTTPException(status_code=503, detail="Database unavailable") from e


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Corporation HR Service"}
