"""
Job Processor Lifecycle Mixin.

Starting jobs, manual status changes and cancellation.
"""

from typing import Any

from app.models.enums import JobStatus
from app.models.indexing_job import IndexingJob
from app.models.webhook import Webhook
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.repositories.webhook_repository import WebhookRepository
from app.utils.datetime_utils import isoformat_or_none
from app.utils.exceptions import NotFoundError, ValidationError

from .constants import STARTABLE_STATUSES, StartOutcome, validate_transition


MAX_ERROR_MESSAGE_LENGTH = 1000


class LifecycleMixin:
    """Mixin providing job start and status transitions."""

    async def start_job(self, job_id: int) -> StartOutcome:
        """
        Start a job: move it to running and ensure its webhook exists.

        A job that is not initializing or pending is left alone. A
        registrar failure marks the job failed and is not raised; it is
        not retried automatically.

        retry_count survives a start, so repeated crash recoveries add up
        toward max_retries; only a manual retry clears it.

        Args:
            job_id: Indexing job ID

        Returns:
            STARTED, SKIPPED or FAILED
        """
        async with self.session_maker() as session:
            repo = IndexingJobRepository(session)
            job = await repo.get_by_id(job_id, for_update=True)

            if job is None:
                self.logger.warning(f"Job {job_id} not found, nothing to start")
                return StartOutcome.SKIPPED
            if job.status not in STARTABLE_STATUSES:
                self.logger.debug(f"Job {job_id} is {job.status}, not startable")
                return StartOutcome.SKIPPED

            validate_transition(job.status, JobStatus.RUNNING)
            job.status = JobStatus.RUNNING.value
            job.error_message = None
            await session.commit()

            try:
                webhook = await self.registrar.create(session, job)
                job.next_retry_at = None
                await session.commit()
            except Exception as e:
                await session.rollback()
                error = (str(e) or type(e).__name__)[:MAX_ERROR_MESSAGE_LENGTH]
                self.logger.error(f"Failed to start job {job_id}: {error}")

                job = await repo.get_by_id(job_id, for_update=True)
                if job is not None and job.status == JobStatus.RUNNING:
                    job.status = JobStatus.FAILED.value
                    job.error_message = error
                    await session.commit()
                    await self.notify(job)
                return StartOutcome.FAILED

            # A cancel may have landed while the subscription was created
            await session.refresh(job)
            if job.status == JobStatus.CANCELLED:
                self.logger.info(
                    f"Job {job_id} was cancelled during start, removing webhook"
                )
                await self.registrar.delete(session, webhook.id)
                await session.commit()
                return StartOutcome.SKIPPED

        self.logger.info(
            f"Job {job_id} started with webhook {webhook.helius_webhook_id}"
        )
        await self.notify(job)
        return StartOutcome.STARTED

    async def update_job_status(
        self,
        job_id: int,
        user_id: str,
        status: JobStatus,
        error: str | None = None,
        expected_status: JobStatus | None = None,
    ) -> IndexingJob:
        """
        Apply a manual status change.

        The row is re-read under a lock and both ownership and the
        transition are checked against the committed state.

        Args:
            job_id: Indexing job ID
            user_id: Caller user ID
            status: Target status
            error: Error message to record
            expected_status: Only act if the job is currently in this status

        Returns:
            Updated job

        Raises:
            NotFoundError: If the job does not exist or is not the caller's
            ValidationError: If the transition is not allowed
        """
        async with self.session() as session:
            repo = IndexingJobRepository(session)
            job = await repo.get_owned(job_id, user_id, for_update=True)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")

            previous = job.status
            if expected_status is not None and previous != expected_status:
                raise ValidationError(
                    f"Job {job_id} is {previous}, expected {expected_status}"
                )
            validate_transition(previous, status)

            job.status = JobStatus(status).value
            if status == JobStatus.PENDING:
                job.next_retry_at = None
                job.error_message = None
                job.retry_count = 0
            if error is not None:
                job.error_message = error[:MAX_ERROR_MESSAGE_LENGTH]

        self.logger.info(f"Job {job_id}: {previous} -> {job.status} (user {user_id})")
        await self.notify(job)
        return job

    async def cancel_job(self, job_id: int, user_id: str) -> IndexingJob:
        """
        Cancel a job and delete its webhooks.

        Webhook deletion is best-effort: local records are marked
        deleted regardless of the upstream outcome.

        Args:
            job_id: Indexing job ID
            user_id: Caller user ID

        Returns:
            Cancelled job
        """
        job = await self.update_job_status(job_id, user_id, JobStatus.CANCELLED)

        async with self.session() as session:
            removed = await self.registrar.delete_for_job(session, job_id)

        if removed:
            self.logger.info(f"Removed {removed} webhook(s) of cancelled job {job_id}")
        return job

    async def get_job_status(self, job_id: int, user_id: str) -> dict[str, Any]:
        """
        Read-only status projection of a job.

        Args:
            job_id: Indexing job ID
            user_id: Caller user ID

        Returns:
            Dict with id, status, progress, error, next_retry_at,
            retry_count and webhooks

        Raises:
            NotFoundError: If the job does not exist or is not the caller's
        """
        async with self.session_maker() as session:
            job = await IndexingJobRepository(session).get_owned(job_id, user_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            webhooks = await WebhookRepository(session).find_all(
                indexing_job_id=job.id
            )

        return serialize_job(job, webhooks)


def serialize_job(job: IndexingJob, webhooks: list[Webhook] | None = None) -> dict[str, Any]:
    """
    JSON projection of a job.

    Args:
        job: Indexing job
        webhooks: Webhooks to embed; omitted from the result when None

    Returns:
        Dict safe to return to the job owner (no webhook secrets)
    """
    data: dict[str, Any] = {
        "id": job.id,
        "type": job.type,
        "status": job.status,
        "progress": job.progress,
        "error": job.error_message,
        "next_retry_at": isoformat_or_none(job.next_retry_at),
        "retry_count": job.retry_count,
        "last_processed_block": job.last_processed_block,
        "config": job.config,
        "created_at": isoformat_or_none(job.created_at),
        "updated_at": isoformat_or_none(job.updated_at),
    }
    if webhooks is not None:
        data["webhooks"] = [
            {
                "id": webhook.id,
                "helius_webhook_id": webhook.helius_webhook_id,
                "url": webhook.url,
                "status": webhook.status,
                "created_at": isoformat_or_none(webhook.created_at),
            }
            for webhook in webhooks
        ]
    return data
