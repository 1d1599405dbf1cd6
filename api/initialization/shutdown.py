"""
API Initialization - Shutdown Module.

Module: shutdown.py
Handles graceful shutdown of the API.
Waits for background job starts, then releases services and connections.
"""

import asyncio

from aiohttp import web
from loguru import logger

from api.handlers.common import BACKGROUND_TASKS_KEY, SERVICES_KEY


BACKGROUND_TASKS_TIMEOUT = 30.0


async def wait_background_tasks(
    app: web.Application, timeout: float = BACKGROUND_TASKS_TIMEOUT
) -> None:
    """Let in-flight background work finish, cancelling it at the deadline."""
    tasks = list(app[BACKGROUND_TASKS_KEY])
    if not tasks:
        return

    logger.info(f"Waiting for {len(tasks)} background task(s)...")
    done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(f"Cancelled {len(pending)} background task(s) at shutdown")


async def shutdown_handler(app: web.Application) -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    await wait_background_tasks(app)

    try:
        await app[SERVICES_KEY].close()
    except Exception as e:
        logger.warning(f"Error closing services: {e}")

    logger.info("Graceful shutdown complete")
