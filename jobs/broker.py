"""
Dramatiq broker configuration.

Redis-based message broker for the indexing engine's periodic tasks.

Run workers with:
    dramatiq jobs.broker jobs.tasks.process_pending_jobs \
        jobs.tasks.cleanup_webhooks jobs.tasks.cleanup_failed_jobs
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage
from loguru import logger

from app.config.settings import settings
from app.utils.redis_utils import get_redis_url_masked

redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

# Retries and ShutdownNotifications are part of the default stack;
# retry counts and backoff are set per actor.
# CurrentMessage exposes the message ID to actors for logging.
redis_broker.add_middleware(CurrentMessage())

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(f"Dramatiq broker initialized: {get_redis_url_masked()}")
