"""
Rate Limiter.

In-memory token buckets keyed by service name or delivery key.
Gates outbound Helius API calls and inbound webhook deliveries.

Buckets are process-local, never persisted and refilled lazily on
each check. One instance is built by the composition root and
shared by reference; there is no module-level singleton.
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from app.config.constants import (
    HELIUS_RATE_LIMIT_MAX_REQUESTS,
    HELIUS_RATE_LIMIT_WINDOW_MS,
    RATE_LIMIT_DEFAULT_MAX_WAIT_MS,
    RATE_LIMIT_MAX_BUCKETS,
    RATE_LIMIT_WAIT_INTERVAL_MS,
    WEBHOOK_RATE_LIMIT_MAX_REQUESTS,
    WEBHOOK_RATE_LIMIT_WINDOW_MS,
)


@dataclass(frozen=True)
class RateLimitConfig:
    """Bucket capacity and refill window."""

    max_requests: int
    window_ms: int


@dataclass
class TokenBucket:
    """Mutable bucket state."""

    tokens: float
    last_refill: float  # milliseconds on the limiter clock
    window_ms: int


HELIUS_SERVICE = "helius"

DEFAULT_RATE_LIMITS: dict[str, RateLimitConfig] = {
    HELIUS_SERVICE: RateLimitConfig(
        max_requests=HELIUS_RATE_LIMIT_MAX_REQUESTS,
        window_ms=HELIUS_RATE_LIMIT_WINDOW_MS,
    ),
}


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """
    Token-bucket rate limiter.

    A service without a configured bucket is unlimited. Refill adds
    whole windows only: floor(elapsed / window) * capacity, capped at
    capacity.

    The bucket map holds at most max_buckets entries. Buckets idle for a
    full window are dropped first, since a fresh bucket is identical;
    then the least recently used ones.
    """

    def __init__(
        self,
        configs: dict[str, RateLimitConfig] | None = None,
        clock: Callable[[], float] = _monotonic_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_buckets: int = RATE_LIMIT_MAX_BUCKETS,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            configs: Bucket configuration per service name
            clock: Millisecond clock (injectable for tests)
            sleep: Async sleep used by wait_for_token
            max_buckets: Bound on tracked keys
        """
        self._configs = dict(DEFAULT_RATE_LIMITS if configs is None else configs)
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()
        self._max_buckets = max_buckets
        self._lock = asyncio.Lock()
        self._clock = clock
        self._sleep = sleep
        self._warned_unconfigured: set[str] = set()

    def configure(self, key: str, max_requests: int, window_ms: int) -> None:
        """
        Register or replace the bucket configuration of a key.

        Args:
            key: Service name or delivery key
            max_requests: Bucket capacity
            window_ms: Refill window
        """
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")
        self._configs[key] = RateLimitConfig(max_requests, window_ms)
        self._buckets.pop(key, None)

    async def check_limit(self, service: str) -> bool:
        """
        Take a token for a configured service without blocking.

        Args:
            service: Service name

        Returns:
            True if a token was taken (or the service is unlimited)
        """
        config = self._configs.get(service)
        if config is None:
            if service not in self._warned_unconfigured:
                self._warned_unconfigured.add(service)
                logger.warning(
                    f"No rate limit configured for '{service}', treating as unlimited"
                )
            return True
        return await self._take(service, config)

    async def check_rate(
        self,
        key: str,
        max_requests: int = WEBHOOK_RATE_LIMIT_MAX_REQUESTS,
        window_ms: int = WEBHOOK_RATE_LIMIT_WINDOW_MS,
    ) -> bool:
        """
        Take a token for an ad hoc key without blocking.

        A configured key uses its registered bucket; otherwise the
        given capacity and window apply.

        Args:
            key: Bucket key, e.g. "webhook:<id>"
            max_requests: Capacity for unregistered keys
            window_ms: Window for unregistered keys

        Returns:
            True if a token was taken
        """
        config = self._configs.get(key) or RateLimitConfig(max_requests, window_ms)
        return await self._take(key, config)

    async def wait_for_token(
        self,
        service: str,
        max_wait_ms: int = RATE_LIMIT_DEFAULT_MAX_WAIT_MS,
    ) -> bool:
        """
        Wait until a token is available or the deadline passes.

        Polls every 100 ms. Only for outbound calls that can afford a
        short wait; inbound deliveries must use check_rate.

        Args:
            service: Service name
            max_wait_ms: Maximum wait

        Returns:
            True if a token was taken, False on timeout
        """
        deadline = self._clock() + max_wait_ms
        while True:
            if await self.check_limit(service):
                return True
            if self._clock() >= deadline:
                logger.warning(
                    f"Rate limit wait timed out for '{service}' after {max_wait_ms}ms"
                )
                return False
            await self._sleep(RATE_LIMIT_WAIT_INTERVAL_MS / 1000)

    async def get_remaining(self, key: str) -> float | None:
        """
        Tokens left in a bucket after refill, None if unlimited.

        Args:
            key: Bucket key

        Returns:
            Remaining tokens
        """
        config = self._configs.get(key)
        async with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return float(config.max_requests) if config else None
            if config:
                self._refill(bucket, config, self._clock())
            return bucket.tokens

    def reset(self, key: str | None = None) -> None:
        """
        Drop bucket state.

        Args:
            key: Bucket to drop, or all buckets when None
        """
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)

    async def _take(self, key: str, config: RateLimitConfig) -> bool:
        # Refill and decrement are one read-modify-write
        async with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(
                    tokens=float(config.max_requests),
                    last_refill=now,
                    window_ms=config.window_ms,
                )
                self._buckets[key] = bucket
                self._evict(now)
            else:
                self._refill(bucket, config, now)
                self._buckets.move_to_end(key)

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return True

            logger.debug(f"Rate limit exhausted for '{key}'")
            return False

    def _evict(self, now: float) -> None:
        if len(self._buckets) <= self._max_buckets:
            return

        idle = [
            key for key, bucket in self._buckets.items()
            if now - bucket.last_refill >= bucket.window_ms
        ]
        for key in idle:
            del self._buckets[key]

        while len(self._buckets) > self._max_buckets:
            key, _ = self._buckets.popitem(last=False)
            logger.debug(f"Evicted rate limit bucket '{key}'")

    @staticmethod
    def _refill(bucket: TokenBucket, config: RateLimitConfig, now: float) -> None:
        elapsed = now - bucket.last_refill
        windows = int(elapsed // config.window_ms)
        if windows > 0:
            bucket.tokens = min(
                float(config.max_requests),
                bucket.tokens + windows * config.max_requests,
            )
            bucket.last_refill = now
