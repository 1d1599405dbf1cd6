"""
Job Notifier.

Publishes job status changes on Redis pub/sub. The WebSocket gateway
subscribes to ``job-updates:{user_id}`` and pushes them to the browser.
Publishing is fire-and-forget: a Redis outage never fails a job
transition.
"""

import asyncio
import json
from typing import Any

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.models.indexing_job import IndexingJob
from app.utils.datetime_utils import isoformat_or_none, utc_now


JOB_UPDATES_CHANNEL = "job-updates:{user_id}"
PUBLISH_TIMEOUT = 2.0


def build_job_update(job: IndexingJob, event: str) -> dict[str, Any]:
    """
    Build the pub/sub message of a job update.

    Args:
        job: Indexing job
        event: Event name (e.g. "status_changed", "progress")

    Returns:
        JSON-serializable message
    """
    return {
        "event": event,
        "jobId": job.id,
        "status": job.status,
        "progress": job.progress,
        "error": job.error_message,
        "nextRetryAt": isoformat_or_none(job.next_retry_at),
        "timestamp": utc_now().isoformat(),
    }


class JobNotifier:
    """Publisher of job update triggers."""

    def __init__(self, redis_client: Redis | None = None) -> None:
        """
        Initialize notifier.

        Args:
            redis_client: Redis client; None disables publishing
        """
        self.redis_client = redis_client

    async def publish(self, job: IndexingJob, event: str = "status_changed") -> bool:
        """
        Publish a job update.

        Args:
            job: Indexing job
            event: Event name

        Returns:
            True if the message was handed to Redis
        """
        if self.redis_client is None:
            return False

        channel = JOB_UPDATES_CHANNEL.format(user_id=job.user_id)
        message = json.dumps(build_job_update(job, event))
        try:
            await asyncio.wait_for(
                self.redis_client.publish(channel, message),
                timeout=PUBLISH_TIMEOUT,
            )
        except (RedisError, TimeoutError) as e:
            logger.warning(f"Failed to publish update for job {job.id}: {e}")
            return False

        logger.debug(f"Published {event} for job {job.id} on {channel}")
        return True
