"""
Job Processor Recovery Mixin.

Crash recovery, failed-job cleanup and webhook reconciliation.
"""

from datetime import timedelta
from typing import Any

from app.models.enums import JobStatus
from app.models.indexing_job import IndexingJob
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.repositories.webhook_repository import WebhookRepository

from .constants import validate_transition


class RecoveryMixin:
    """Mixin providing recovery and cleanup sweeps."""

    def retry_delay_seconds(self, retry_count: int) -> int:
        """Backoff before the given retry: base * 2**(retry_count - 1)."""
        return self.retry_base_seconds * 2 ** max(retry_count - 1, 0)

    async def recover_interrupted_jobs(self) -> int:
        """
        Requeue jobs whose worker died mid-flight.

        Running (or initializing) jobs not updated within the staleness
        threshold go back to pending with an exponential next_retry_at,
        resuming from their last checkpoint. A job interrupted more than
        max_retries times is failed instead.

        Returns:
            Number of jobs requeued
        """
        now = self.clock()
        threshold = now - timedelta(minutes=self.stale_minutes)
        changed: list[IndexingJob] = []
        recovered = 0

        async with self.session() as session:
            repo = IndexingJobRepository(session)
            for job in await repo.find_stale_in_flight(threshold):
                self._restore_checkpoint(job)

                if job.retry_count >= self.max_retries:
                    validate_transition(job.status, JobStatus.FAILED)
                    job.status = JobStatus.FAILED.value
                    job.next_retry_at = None
                    job.error_message = (
                        f"Job interrupted after {job.retry_count} retries"
                    )
                    self.logger.error(
                        f"Job {job.id} exceeded {self.max_retries} recoveries, marked failed"
                    )
                else:
                    validate_transition(job.status, JobStatus.PENDING)
                    job.retry_count += 1
                    delay = self.retry_delay_seconds(job.retry_count)
                    job.next_retry_at = now + timedelta(seconds=delay)
                    job.status = JobStatus.PENDING.value
                    recovered += 1
                    self.logger.warning(
                        f"Recovered stale job {job.id}, retry {job.retry_count} in {delay}s",
                        extra={
                            "job_id": job.id,
                            "retry_count": job.retry_count,
                            "last_processed_block": job.last_processed_block,
                        },
                    )
                changed.append(job)

        for job in changed:
            await self.notify(job)
        return recovered

    @staticmethod
    def _restore_checkpoint(job: IndexingJob) -> None:
        checkpoints = job.checkpoints
        if not checkpoints:
            return
        block = checkpoints[-1].get("block")
        if block is None:
            return
        config = dict(job.config or {})
        config["lastProcessedBlock"] = block
        job.config = config
        job.last_processed_block = block

    async def cleanup_failed_jobs(self) -> int:
        """
        Delete failed jobs older than the retention period.

        Upstream subscriptions are deleted first (best-effort), then
        the job's webhooks, logs and the job itself.

        Returns:
            Number of jobs deleted
        """
        threshold = self.clock() - timedelta(days=self.failed_retention_days)
        deleted = 0

        async with self.session() as session:
            repo = IndexingJobRepository(session)
            webhook_repo = WebhookRepository(session)
            for job in await repo.find_failed_before(threshold):
                job_id = job.id
                await self.registrar.delete_for_job(session, job_id)
                await webhook_repo.delete_for_job(job_id)
                if await repo.delete(job_id):
                    deleted += 1

        if deleted:
            self.logger.info(f"Deleted {deleted} failed job(s) older than {threshold:%Y-%m-%d}")
        return deleted

    async def reconcile_webhooks(self, user_id: str | None = None) -> dict[str, Any]:
        """
        Reconcile webhooks and requeue jobs whose subscription vanished.

        Args:
            user_id: Restrict to one user's subscriptions

        Returns:
            Dict with deleted, failed, missing_upstream and requeued counts
        """
        requeued: list[IndexingJob] = []

        async with self.session() as session:
            result = await self.registrar.reconcile(session, user_id)

            repo = IndexingJobRepository(session)
            for job_id in sorted(set(result.orphaned_local)):
                job = await repo.get_by_id(job_id, for_update=True)
                if job is None or job.status != JobStatus.RUNNING:
                    continue
                job.status = JobStatus.PENDING.value
                job.next_retry_at = None
                requeued.append(job)
                self.logger.warning(f"Job {job_id} lost its webhook, requeued")

        for job in requeued:
            await self.notify(job)

        return {
            "deleted": result.deleted,
            "failed": result.failed,
            "missing_upstream": len(result.orphaned_local),
            "requeued": len(requeued),
        }
