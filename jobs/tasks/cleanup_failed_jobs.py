"""Cleanup task for failed jobs past their retention period."""

import dramatiq
from loguru import logger

from app.config.constants import DRAMATIQ_TIME_LIMIT_CLEANUP, LOCK_CLEANUP_FAILED_JOBS
from app.services.container import ServiceContainer
from app.utils.distributed_lock import DistributedLock
from jobs.async_runner import run_async, task_context


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT_CLEANUP)
def cleanup_failed_jobs() -> None:
    """
    Delete old failed jobs.

    - Deletes their upstream subscriptions (best-effort)
    - Removes webhooks and delivery logs
    - Removes the job rows
    """
    logger.info("Starting failed jobs cleanup...")

    try:
        deleted = run_async(_cleanup_failed_jobs_async())
        logger.info(f"Failed jobs cleanup completed: {deleted} deleted")
    except Exception as e:
        logger.exception(f"Failed jobs cleanup failed: {e}")
        raise  # For dramatiq retry


async def _cleanup_failed_jobs_async() -> int:
    """Async implementation of the cleanup task."""
    async with task_context() as ctx:
        return await run_failed_jobs_cleanup(ctx.services, ctx.lock)


async def run_failed_jobs_cleanup(
    services: ServiceContainer, lock: DistributedLock
) -> int:
    """Delete old failed jobs under the distributed lock."""
    async with lock.lock(LOCK_CLEANUP_FAILED_JOBS, timeout=600) as acquired:
        if not acquired:
            return 0
        return await services.job_processor.cleanup_failed_jobs()
