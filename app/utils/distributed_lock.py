"""
Distributed lock.

Redis-based mutual exclusion for periodic tasks that may run on
several workers at once. Falls back to a process-local lock when
Redis is unavailable.
"""

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config.constants import (
    DISTRIBUTED_LOCK_BLOCKING_TIMEOUT,
    DISTRIBUTED_LOCK_TIMEOUT,
)

# Compare-and-delete so a worker never releases a lock it no longer owns
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_local_locks: dict[str, asyncio.Lock] = {}


class DistributedLock:
    """
    Lock keyed by name.

    Example:
        lock = DistributedLock(redis_client=redis_client)
        async with lock.lock("process_pending_jobs", timeout=60) as acquired:
            if acquired:
                ...
    """

    def __init__(
        self,
        redis_client: Redis | None = None,
        prefix: str = "lock:",
    ) -> None:
        self.redis_client = redis_client
        self.prefix = prefix

    @asynccontextmanager
    async def lock(
        self,
        name: str,
        timeout: int = DISTRIBUTED_LOCK_TIMEOUT,
        blocking_timeout: float = DISTRIBUTED_LOCK_BLOCKING_TIMEOUT,
    ) -> AsyncIterator[bool]:
        """
        Acquire the lock for the duration of the block.

        Args:
            name: Lock name
            timeout: Lock expiry in seconds (protects against crashed holders)
            blocking_timeout: How long to wait for acquisition

        Yields:
            True if the lock is held, False if acquisition timed out
        """
        if self.redis_client is None:
            async with self._local_lock(name, blocking_timeout) as acquired:
                yield acquired
            return

        key = f"{self.prefix}{name}"
        token = uuid.uuid4().hex
        acquired = False

        try:
            acquired = await self._acquire(key, token, timeout, blocking_timeout)
        except RedisError as e:
            logger.warning(f"Redis lock unavailable for '{name}', using local lock: {e}")
            async with self._local_lock(name, blocking_timeout) as local_acquired:
                yield local_acquired
            return

        if not acquired:
            logger.info(f"Lock '{name}' is held by another worker, skipping")

        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await self.redis_client.eval(_RELEASE_SCRIPT, 1, key, token)
                except RedisError as e:
                    logger.warning(f"Failed to release lock '{name}': {e}")

    async def _acquire(
        self, key: str, token: str, timeout: int, blocking_timeout: float
    ) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + blocking_timeout
        while True:
            if await self.redis_client.set(key, token, nx=True, ex=timeout):
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.1)

    @asynccontextmanager
    async def _local_lock(
        self, name: str, blocking_timeout: float
    ) -> AsyncIterator[bool]:
        local = _local_locks.setdefault(name, asyncio.Lock())
        try:
            await asyncio.wait_for(local.acquire(), timeout=blocking_timeout)
        except TimeoutError:
            yield False
            return

        try:
            yield True
        finally:
            local.release()
