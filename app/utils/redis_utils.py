"""Redis connection utilities.

Helpers for creating Redis connections from settings.
"""

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from app.config.settings import settings


async def get_redis_client() -> redis.Redis:
    """
    Create and return a Redis client with settings from config.

    Returns:
        redis.Redis: Configured Redis client with decode_responses=True
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


async def connect_redis() -> redis.Redis | None:
    """
    Create a client and check that Redis answers.

    Redis only backs job notifications and distributed locks, so an
    unreachable server degrades those features instead of failing.

    Returns:
        Connected client, or None when Redis is unreachable
    """
    client = await get_redis_client()
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(
            f"Redis unavailable at {get_redis_url_masked()}: {e}. "
            "Job notifications disabled, using local locks"
        )
        await client.aclose()
        return None

    logger.info(f"Redis connected: {get_redis_url_masked()}")
    return client


def get_redis_url_masked() -> str:
    """
    Build Redis URL with masked password for safe logging.

    Returns:
        str: redis://[:***@]host:port/db
    """
    auth = ":***@" if settings.redis_password else ""
    return f"redis://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
