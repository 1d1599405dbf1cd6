"""
Periodic task scheduler.

Enqueues the dramatiq tasks on their intervals; workers run them:

    python jobs/scheduler.py
    dramatiq jobs.broker jobs.tasks.process_pending_jobs \\
        jobs.tasks.cleanup_webhooks jobs.tasks.cleanup_failed_jobs
"""

import asyncio
import signal
import sys
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from dramatiq import Actor
from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.initialization.logging import setup_logging  # noqa: E402
from app.config.settings import Settings, settings  # noqa: E402
from jobs.broker import broker  # noqa: E402, F401
from jobs.health import (  # noqa: E402
    record_dispatch,
    set_scheduler,
    start_health_server,
    stop_health_server,
)
from jobs.tasks.cleanup_failed_jobs import cleanup_failed_jobs  # noqa: E402
from jobs.tasks.cleanup_webhooks import cleanup_webhooks  # noqa: E402
from jobs.tasks.process_pending_jobs import process_pending_jobs  # noqa: E402


FAILED_JOBS_CLEANUP_HOURS = 24


def dispatch(actor: Actor) -> None:
    """Enqueue an actor and record the dispatch for health checks."""
    actor.send()
    record_dispatch(actor.actor_name)
    logger.debug(f"Enqueued {actor.actor_name}")


def create_scheduler(config: Settings) -> AsyncIOScheduler:
    """
    Build the scheduler with all periodic tasks.

    Job ids match actor names so health output lines up with worker logs.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    schedule = [
        (process_pending_jobs, IntervalTrigger(seconds=config.scheduler_interval_seconds)),
        (
            cleanup_webhooks,
            IntervalTrigger(minutes=config.webhook_cleanup_interval_minutes),
        ),
        (cleanup_failed_jobs, IntervalTrigger(hours=FAILED_JOBS_CLEANUP_HOURS)),
    ]
    for actor, trigger in schedule:
        scheduler.add_job(
            dispatch,
            trigger,
            args=[actor],
            id=actor.actor_name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT/SIGTERM."""
    setup_logging("scheduler")

    scheduler = create_scheduler(settings)
    scheduler.start()
    set_scheduler(scheduler)
    logger.info(
        f"Scheduler started: tick every {settings.scheduler_interval_seconds}s, "
        f"webhook cleanup every {settings.webhook_cleanup_interval_minutes}m"
    )

    health_runner = await start_health_server(port=settings.health_check_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        scheduler.shutdown(wait=False)
        set_scheduler(None)
        await stop_health_server(health_runner)
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scheduler stopped by user (KeyboardInterrupt)")
