"""
Circuit breaker for Helius API calls.

Opens after consecutive failures, rejects calls while open, and lets a
single probe through after the reset timeout (half-open).
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from loguru import logger

from app.utils.exceptions import UpstreamError, is_transient


T = TypeVar("T")


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitStats:
    failures: int = 0
    last_failure: float = 0.0
    total_calls: int = 0
    successful_calls: int = 0


class CircuitOpenError(UpstreamError):
    """Raised without calling upstream while the circuit is open."""

    default_message = "Upstream provider unavailable (circuit open)"


class CircuitBreaker:
    """
    Circuit breaker with bounded retries.

    Only transient failures (timeouts, transport errors, 5xx/429
    responses) are retried and counted; client errors pass straight
    through.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.max_retries = max(max_retries, 1)
        self.retry_delay = retry_delay
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.stats = CircuitStats()

    def _allow_request(self) -> bool:
        if self.state != CircuitState.OPEN:
            return True
        if self._clock() - self.stats.last_failure >= self.reset_timeout:
            self.state = CircuitState.HALF_OPEN
            logger.info(f"Circuit '{self.name}' half-open, probing upstream")
            return True
        return False

    def _record_success(self) -> None:
        self.stats.total_calls += 1
        self.stats.successful_calls += 1
        self.stats.failures = 0
        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.CLOSED
            logger.info(f"Circuit '{self.name}' closed after successful recovery")

    def _record_failure(self) -> None:
        self.stats.total_calls += 1
        self.stats.failures += 1
        self.stats.last_failure = self._clock()
        if (
            self.state == CircuitState.HALF_OPEN
            or self.stats.failures >= self.failure_threshold
        ):
            if self.state != CircuitState.OPEN:
                logger.warning(
                    f"Circuit '{self.name}' opened after {self.stats.failures} failures"
                )
            self.state = CircuitState.OPEN

    @staticmethod
    def _is_retryable(exc: BaseException) -> bool:
        if isinstance(exc, UpstreamError) and exc.upstream_status is not None:
            return exc.upstream_status >= 500 or exc.upstream_status == 429
        return is_transient(exc)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation through the breaker.

        Args:
            operation: Zero-argument coroutine factory

        Returns:
            Operation result

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: The last failure once retries are exhausted
        """
        for attempt in range(1, self.max_retries + 1):
            if not self._allow_request():
                raise CircuitOpenError(
                    f"Service {self.name} is unavailable (circuit open)"
                )
            try:
                result = await operation()
            except Exception as e:
                if not self._is_retryable(e):
                    raise
                self._record_failure()
                logger.warning(
                    f"{self.name} call failed (attempt {attempt}/{self.max_retries}): {e}"
                )
                if attempt >= self.max_retries or self.state == CircuitState.OPEN:
                    raise
                await asyncio.sleep(self.retry_delay)
                continue

            self._record_success()
            return result

        raise UpstreamError(f"All retries failed for {self.name}")
