"""
Cron trigger handlers.

Module: cron.py
External cron entry points for the scheduler tick and webhook
cleanup, guarded by the shared cron secret and the distributed lock.
"""

from aiohttp import web
from loguru import logger

from api.handlers.common import LOCK_KEY, SETTINGS_KEY, get_services
from app.config.constants import LOCK_CLEANUP_WEBHOOKS, LOCK_PROCESS_PENDING_JOBS
from app.utils.security import verify_bearer_token


def _authorize(request: web.Request) -> None:
    verify_bearer_token(
        request.headers.get("Authorization"),
        request.app[SETTINGS_KEY].cron_secret,
    )


async def process_jobs_handler(request: web.Request) -> web.Response:
    """POST /api/cron/process-jobs"""
    _authorize(request)
    services = get_services(request)
    settings = request.app[SETTINGS_KEY]
    lock = request.app[LOCK_KEY]

    async with lock.lock(
        LOCK_PROCESS_PENDING_JOBS, timeout=int(settings.scheduler_tick_timeout) + 5
    ) as acquired:
        if not acquired:
            return web.json_response(
                {"success": True, "skipped": "tick already running"}
            )
        result = await services.scheduler.tick(settings.scheduler_tick_timeout)

    logger.info(f"Cron tick finished: {result}")
    return web.json_response({"success": True, **result})


async def cleanup_webhooks_handler(request: web.Request) -> web.Response:
    """POST /api/cron/cleanup-webhooks"""
    _authorize(request)
    services = get_services(request)
    lock = request.app[LOCK_KEY]

    async with lock.lock(LOCK_CLEANUP_WEBHOOKS, timeout=300) as acquired:
        if not acquired:
            return web.json_response(
                {"success": True, "skipped": "cleanup already running"}
            )
        result = await services.job_processor.reconcile_webhooks()

    return web.json_response({"success": True, **result})
