"""
Background Job Scheduler.

WHAT: Configures and manages APScheduler for background tasks.

WHY: The quote expiry sweep must run without user requests.

HOW: Uses APScheduler with AsyncIOScheduler for async job support and an
in-memory job store (jobs are re-registered on every startup).

Example:
    # In main.py startup:
    from quote_engine.services.scheduler import start_scheduler, shutdown_scheduler

    @app.on_event("startup")
    async def startup():
        await start_scheduler()
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger

from quote_engine.services.expiry_service import (
    EXPIRY_SWEEP_INTERVAL_SECONDS,
    get_expiry_service,
)


logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "quote_expiry_sweep"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def start_scheduler() -> None:
    """
    Start the background job scheduler.

    HOW:
    1. Creates AsyncIOScheduler with memory job store
    2. Registers the quote expiry sweep
    3. Starts the scheduler

    Note: Call this from FastAPI startup event.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    job_defaults = {
        "coalesce": True,  # Combine multiple missed runs into one
        "max_instances": 1,  # Only one sweep at a time
        "misfire_grace_time": 60,
    }

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone="UTC",
    )

    _register_expiry_job()

    _scheduler.start()
    logger.info(
        f"Scheduler started with quote expiry sweep every {EXPIRY_SWEEP_INTERVAL_SECONDS} seconds"
    )


def _register_expiry_job() -> None:
    """Register the quote expiry sweep job."""
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    expiry_service = get_expiry_service()

    _scheduler.add_job(
        func=expiry_service.expire_overdue_quotes,
        trigger=IntervalTrigger(seconds=EXPIRY_SWEEP_INTERVAL_SECONDS),
        id=EXPIRY_JOB_ID,
        name="Quote Expiry Sweep",
        replace_existing=True,
    )

    logger.info(f"Registered quote expiry sweep job (interval: {EXPIRY_SWEEP_INTERVAL_SECONDS}s)")


async def shutdown_scheduler() -> None:
    """
    Shut down the background job scheduler.

    Note: Call this from FastAPI shutdown event.
    """
    global _scheduler

    if _scheduler is None:
        logger.info("Scheduler not running")
        return

    if not _scheduler.running:
        logger.info("Scheduler already stopped")
        _scheduler = None
        return

    logger.info("Shutting down scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down successfully")


def get_scheduler_status() -> dict:
    """
    Get scheduler status information for health checks.

    Returns:
        Dict with scheduler status and job details
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
