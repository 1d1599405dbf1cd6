"""
Pending jobs task.

One scheduler tick: start due pending jobs, then recover interrupted
ones. Overlapping ticks across workers are skipped via the
distributed lock.
"""

from typing import Any

import dramatiq
from loguru import logger

from app.config.constants import DRAMATIQ_TIME_LIMIT_TICK, LOCK_PROCESS_PENDING_JOBS
from app.config.settings import settings
from app.services.container import ServiceContainer
from app.utils.distributed_lock import DistributedLock
from jobs.async_runner import run_async, task_context


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT_TICK)
def process_pending_jobs() -> None:
    """
    Run one scheduler tick.

    Not retried: the next tick picks up whatever this one missed.
    """
    logger.info("Starting pending jobs tick...")

    try:
        result = run_async(_process_pending_jobs_async())
        logger.info(f"Pending jobs tick completed: {result}")
    except Exception as e:
        logger.exception(f"Pending jobs tick failed: {e}")


async def _process_pending_jobs_async() -> dict[str, Any] | None:
    """Async implementation of the tick task."""
    async with task_context() as ctx:
        return await run_pending_jobs_tick(ctx.services, ctx.lock)


async def run_pending_jobs_tick(
    services: ServiceContainer, lock: DistributedLock
) -> dict[str, Any] | None:
    """
    Run a tick under the distributed lock.

    Args:
        services: Service container
        lock: Distributed lock

    Returns:
        Tick result, or None if another worker holds the lock
    """
    budget = settings.scheduler_tick_timeout
    async with lock.lock(LOCK_PROCESS_PENDING_JOBS, timeout=int(budget) + 5) as acquired:
        if not acquired:
            return None
        return await services.scheduler.tick(budget)
