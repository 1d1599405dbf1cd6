"""
Async runner for dramatiq tasks.

Provides a thread-safe way to run async code in dramatiq actors, and a
per-run service container bound to the current event loop.
"""

import asyncio
import threading
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

from app.config.settings import settings
from app.services.container import ServiceContainer, build_services
from app.utils.distributed_lock import DistributedLock
from app.utils.redis_utils import connect_redis
from jobs.utils.database import create_task_engine, create_task_session_maker

T = TypeVar("T")

# Thread-local storage for event loops
_thread_local = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Get or create event loop for current thread.

    Creates a new event loop for each thread and reuses it.
    This prevents "Future attached to a different loop" errors.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.loop = loop
        logger.debug(f"Created new event loop for thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine in the thread's event loop.

    This is the recommended way to run async code in dramatiq actors.
    It reuses the same event loop per thread, preventing connection issues.

    Args:
        coro: Async coroutine to run

    Returns:
        Result of the coroutine
    """
    loop = get_event_loop()
    try:
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.exception(f"Error running async coroutine: {e}")
        raise


@dataclass
class TaskContext:
    """Services and lock of one task run."""

    services: ServiceContainer
    lock: DistributedLock


@asynccontextmanager
async def task_context() -> AsyncGenerator[TaskContext, None]:
    """
    Build services for one task run on the current event loop.

    A NullPool engine is used so no connection outlives the run; the
    engine, Redis client and service resources are released on exit.

    Usage:
        async with task_context() as ctx:
            async with ctx.lock.lock("name") as acquired:
                ...

    Yields:
        TaskContext
    """
    engine = create_task_engine()
    redis_client = await connect_redis()
    services = build_services(
        create_task_session_maker(engine), settings, redis_client=redis_client
    )

    try:
        yield TaskContext(services=services, lock=DistributedLock(redis_client))
    finally:
        await services.close()
        if redis_client:
            await redis_client.aclose()
        await engine.dispose()
