"""
Webhook cleanup task.

Reconciles upstream Helius subscriptions with local records: deletes
orphaned subscriptions and requeues jobs whose subscription vanished.
"""

from typing import Any

import dramatiq
from loguru import logger

from app.config.constants import DRAMATIQ_TIME_LIMIT_CLEANUP, LOCK_CLEANUP_WEBHOOKS
from app.services.container import ServiceContainer
from app.utils.distributed_lock import DistributedLock
from jobs.async_runner import run_async, task_context


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT_CLEANUP)
def cleanup_webhooks() -> None:
    """Reconcile webhooks for all users."""
    logger.info("Starting webhook cleanup task...")

    try:
        result = run_async(_cleanup_webhooks_async())
        logger.info(f"Webhook cleanup task completed: {result}")
    except Exception as e:
        logger.exception(f"Webhook cleanup task failed: {e}")
        raise  # For dramatiq retry


async def _cleanup_webhooks_async() -> dict[str, Any] | None:
    """Async implementation of the cleanup task."""
    async with task_context() as ctx:
        return await run_webhook_cleanup(ctx.services, ctx.lock)


async def run_webhook_cleanup(
    services: ServiceContainer, lock: DistributedLock
) -> dict[str, Any] | None:
    """
    Reconcile webhooks under the distributed lock.

    Returns:
        Reconciliation counts, or None if another worker holds the lock
    """
    async with lock.lock(LOCK_CLEANUP_WEBHOOKS, timeout=600) as acquired:
        if not acquired:
            return None
        return await services.job_processor.reconcile_webhooks()
