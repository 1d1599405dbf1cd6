"""
Job Scheduler Service.

One scheduler tick: start a batch of due pending jobs concurrently,
then recover interrupted jobs. Triggered by APScheduler, the dramatiq
actor or the cron endpoint; overlapping ticks across workers are
prevented by the caller's distributed lock.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.constants import (
    DEFAULT_JOB_START_TIMEOUT,
    DEFAULT_SCHEDULER_BATCH_SIZE,
    DEFAULT_SCHEDULER_TICK_TIMEOUT,
)
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.services.base_service import BaseService, log_operation
from app.services.job_processor import JobProcessor, StartOutcome
from app.utils.datetime_utils import utc_now


class JobSchedulerService(BaseService):
    """Scans for due pending jobs and starts them."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        job_processor: JobProcessor,
        batch_size: int = DEFAULT_SCHEDULER_BATCH_SIZE,
        job_start_timeout: float = DEFAULT_JOB_START_TIMEOUT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize scheduler service.

        Args:
            session_maker: Product database session factory
            job_processor: Starts and recovers jobs
            batch_size: Jobs started per tick
            job_start_timeout: Budget for one start (seconds)
            clock: Current UTC time (injectable for tests)
        """
        super().__init__(session_maker)
        self.job_processor = job_processor
        self.batch_size = batch_size
        self.job_start_timeout = job_start_timeout
        self.clock = clock

    async def find_due_jobs(self) -> list[int]:
        """
        IDs of pending jobs eligible to start, oldest first.

        Returns:
            At most batch_size job IDs
        """
        async with self.session_maker() as session:
            jobs = await IndexingJobRepository(session).find_due_pending(
                self.clock(), self.batch_size
            )
            return [job.id for job in jobs]

    @log_operation
    async def run_tick(self) -> dict[str, Any]:
        """
        Run one tick.

        Each start runs with its own timeout and session; one failing
        start never affects its siblings. Recovery runs afterwards
        whatever happened to the batch.

        Returns:
            {"processed", "succeeded", "failed", "skipped", "recovered"}, or
            {"message": "No pending jobs", "recovered": n}
        """
        job_ids = await self.find_due_jobs()

        if not job_ids:
            recovered = await self.job_processor.recover_interrupted_jobs()
            return {"message": "No pending jobs", "recovered": recovered}

        self.logger.info(f"Starting {len(job_ids)} pending job(s): {job_ids}")
        results = await asyncio.gather(
            *(self._start(job_id) for job_id in job_ids),
            return_exceptions=True,
        )

        succeeded = failed = skipped = 0
        for job_id, result in zip(job_ids, results):
            if isinstance(result, BaseException):
                failed += 1
                self.logger.error(f"Job {job_id} start raised: {result!r}")
            elif result == StartOutcome.STARTED:
                succeeded += 1
            elif result == StartOutcome.FAILED:
                failed += 1
            else:
                skipped += 1

        recovered = await self.job_processor.recover_interrupted_jobs()
        return {
            "processed": len(job_ids),
            "succeeded": succeeded,
            "failed": failed,
            "skipped": skipped,
            "recovered": recovered,
        }

    async def _start(self, job_id: int) -> StartOutcome:
        return await asyncio.wait_for(
            self.job_processor.start_job(job_id), timeout=self.job_start_timeout
        )

    async def tick(self, budget: float = DEFAULT_SCHEDULER_TICK_TIMEOUT) -> dict[str, Any]:
        """
        Run one tick under a wall-clock budget.

        Args:
            budget: Maximum duration of the tick (seconds)

        Returns:
            Tick result

        Raises:
            TimeoutError: If the tick exceeded its budget
        """
        try:
            return await asyncio.wait_for(self.run_tick(), timeout=budget)
        except TimeoutError:
            self.logger.error(f"Scheduler tick exceeded {budget}s budget")
            raise
