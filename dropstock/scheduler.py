"""
Scheduled tasks for the reservation system.
The expiration sweep runs inside the FastAPI process on a fixed interval.
"""

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dropstock.core.config import Settings, get_settings
from dropstock.core.utils import utc_now
from dropstock.database import async_session
from dropstock.integrations.notifier import WebSocketEventEmitter
from dropstock.services.expiration_sweeper import ExpirationSweeper, SweepResult

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "expire_reservations"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

# One sweeper per process so manual and scheduled ticks share its tick lock
_sweeper: Optional[ExpirationSweeper] = None


def get_sweeper() -> ExpirationSweeper:
    global _sweeper

    if _sweeper is None:
        _sweeper = ExpirationSweeper(async_session, emitter=WebSocketEventEmitter())
    return _sweeper


async def expire_reservations_task():
    """Task to expire overdue reservations and return their stock"""
    try:
        await get_sweeper().sweep()
    except Exception as e:
        # Already logged by the sweeper; the next tick retries
        logger.warning(f"Expiration sweep tick failed: {e}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} executed at {utc_now().isoformat()}")


def create_scheduler(settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()

    # Add job event listeners
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    scheduler.add_job(
        expire_reservations_task,
        IntervalTrigger(seconds=settings.SWEEP_INTERVAL_SECONDS),
        id=SWEEP_JOB_ID,
        name="Expire Reservations",
        replace_existing=True,
        max_instances=1,  # ticks never overlap
        coalesce=True,
    )
    logger.info(f"Expiration sweep scheduled every {settings.SWEEP_INTERVAL_SECONDS}s")

    return scheduler


async def start_scheduler(settings: Optional[Settings] = None):
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(settings)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def trigger_sweep_manually() -> SweepResult:
    """Run one sweep tick now. Errors propagate to the caller."""
    logger.info("Manually triggering expiration sweep...")
    return await get_sweeper().sweep()


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
