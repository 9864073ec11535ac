"""Scheduler service for background jobs."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from corp_hr.core.config import settings
from corp_hr.services.hr import hr

logger = get_logger()

# Create scheduler instance
scheduler = AsyncIOScheduler()


async def sweep_expired_roles() -> None:
    """
    Deactivate roles whose expiry has passed.

    Permission checks already ignore expired rows, so this only keeps the
    is_active flag and the cached role listings honest.
    """
    logger.info("expired_role_sweep_started")

    try:
        corporations = await hr.deactivate_expired_roles()
        logger.info("expired_role_sweep_completed", corporations_affected=corporations)
    except Exception as e:
        logger.error("expired_role_sweep_error", error=str(e))
        raise


def setup_scheduler() -> None:
    """
    Configure scheduler with all background jobs.

    Jobs:
    - sweep_expired_roles: Every EXPIRED_ROLE_SWEEP_MINUTES (default 60)

    Jobs use coalesce=True and max_instances=1 to prevent overlaps.
    """
    scheduler.add_job(
        sweep_expired_roles,
        trigger="interval",
        minutes=settings.expired_role_sweep_minutes,
        id="sweep_expired_roles",
        replace_existing=True,
        coalesce=True,  # Skip if previous run still executing
        max_instances=1,  # Only one instance at a time
    )

    logger.info("scheduler_configured", jobs=1)


def start_scheduler() -> None:
    """Start the scheduler."""
    scheduler.start()
    logger.info("scheduler_started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    scheduler.shutdown(wait=True)
    logger.info("scheduler_shutdown")
