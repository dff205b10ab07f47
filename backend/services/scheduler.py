"""Background scheduler for periodic tasks.

Uses APScheduler to run the expired-token sweep and the metric history
retention sweep in the background.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import Settings
from services.token_cleanup import TokenCleanupJob

logger = logging.getLogger(__name__)


async def cleanup_expired_tokens(job: TokenCleanupJob):
    """Background task to refresh or evict expired credentials."""
    try:
        removed = await job.cleanup_expired_tokens()
        logger.info(f"Scheduled token cleanup removed {removed} credentials")
    except Exception as e:
        logger.error(f"Scheduled token cleanup failed: {e}")


async def purge_metric_history(job: TokenCleanupJob):
    """Background task to drop metric samples past retention."""
    try:
        await job.purge_history()
    except Exception as e:
        logger.error(f"Scheduled history cleanup failed: {e}")


def create_scheduler(job: TokenCleanupJob, settings: Settings) -> AsyncIOScheduler:
    """Build a scheduler with all maintenance jobs registered (not started)."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        cleanup_expired_tokens,
        trigger=IntervalTrigger(minutes=settings.token_cleanup_interval_minutes),
        args=[job],
        id="token_cleanup",
        name="Refresh or evict expired credentials",
        replace_existing=True,
    )

    scheduler.add_job(
        purge_metric_history,
        trigger=IntervalTrigger(hours=settings.history_cleanup_interval_hours),
        args=[job],
        id="history_cleanup",
        name="Delete metric samples past retention",
        replace_existing=True,
    )

    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler):
    """Start the background scheduler."""
    if scheduler.running:
        logger.info("Scheduler already running")
        return
    scheduler.start()
    logger.info("Background scheduler started (token cleanup + history retention)")


def stop_scheduler(scheduler: AsyncIOScheduler):
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
