"""
Job Service.

User-facing control surface of indexing jobs: create, inspect, list,
pause/resume/cancel, retry, delete and delivery log access. Status
changes are delegated to the JobProcessor so every transition goes
through the same table and row lock.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.constants import WEBHOOK_LOGS_DEFAULT_LIMIT
from app.models.enums import JobAction, JobStatus
from app.repositories.database_connection_repository import (
    DatabaseConnectionRepository,
)
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.repositories.webhook_log_repository import WebhookLogRepository
from app.repositories.webhook_repository import WebhookRepository
from app.schemas.jobs import CreateJobRequest
from app.services.base_service import BaseService
from app.services.job_processor import JobProcessor, serialize_job
from app.services.webhook_registrar import WebhookRegistrar
from app.utils.datetime_utils import isoformat_or_none
from app.utils.exceptions import NotFoundError, ValidationError


MAX_PAGE_SIZE = 100


class JobService(BaseService):
    """Job control operations scoped to the calling user."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        job_processor: JobProcessor,
        registrar: WebhookRegistrar,
    ) -> None:
        """
        Initialize job service.

        Args:
            session_maker: Product database session factory
            job_processor: Owner of job status changes
            registrar: Webhook registrar (job deletion)
        """
        super().__init__(session_maker)
        self.job_processor = job_processor
        self.registrar = registrar

    async def create_job(self, user_id: str, request: CreateJobRequest) -> dict[str, Any]:
        """
        Create a job in the initializing state.

        The caller starts it (the API does so in the background).

        Args:
            user_id: Owner
            request: Validated create request

        Returns:
            Serialized job

        Raises:
            NotFoundError: If the database connection is not the user's
        """
        async with self.session() as session:
            connection = await DatabaseConnectionRepository(session).get_owned(
                request.db_connection_id, user_id
            )
            if connection is None:
                raise NotFoundError("Database connection not found")

            job = await IndexingJobRepository(session).create(
                user_id=user_id,
                db_connection_id=connection.id,
                type=request.type,
                status=JobStatus.INITIALIZING.value,
                progress=0,
                config=request.to_config(),
            )

        self.logger.info(
            f"Job {job.id} created for user {user_id}",
            extra={"categories": request.categories, "connection_id": connection.id},
        )
        return serialize_job(job)

    async def get_job_status(self, job_id: int, user_id: str) -> dict[str, Any]:
        """Status projection of one of the user's jobs."""
        return await self.job_processor.get_job_status(job_id, user_id)

    async def list_jobs(
        self,
        user_id: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """
        List the user's jobs, newest first.

        Args:
            user_id: Owner
            status: Optional status filter
            limit: Page size (capped)
            offset: Rows to skip

        Returns:
            {"jobs": [...], "total": n, "limit": ..., "offset": ...}
        """
        if status is not None and status not in {s.value for s in JobStatus}:
            raise ValidationError(f"Unknown job status: {status}")
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        async with self.session_maker() as session:
            jobs, total = await IndexingJobRepository(session).find_by_user(
                user_id, status=status, limit=limit, offset=offset
            )

        return {
            "jobs": [serialize_job(job) for job in jobs],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def apply_action(
        self, job_id: int, user_id: str, action: JobAction
    ) -> dict[str, Any]:
        """
        Pause, resume or cancel a job.

        Args:
            job_id: Indexing job ID
            user_id: Caller
            action: Requested action

        Returns:
            Serialized job after the transition
        """
        if action == JobAction.PAUSE:
            job = await self.job_processor.update_job_status(
                job_id, user_id, JobStatus.PAUSED
            )
        elif action == JobAction.RESUME:
            job = await self.job_processor.update_job_status(
                job_id, user_id, JobStatus.RUNNING, expected_status=JobStatus.PAUSED
            )
        elif action == JobAction.CANCEL:
            job = await self.job_processor.cancel_job(job_id, user_id)
        else:
            raise ValidationError(f"Unknown action: {action}")
        return serialize_job(job)

    async def retry_job(self, job_id: int, user_id: str) -> dict[str, Any]:
        """
        Requeue a failed job; the next scheduler tick starts it.

        Args:
            job_id: Indexing job ID
            user_id: Caller

        Returns:
            Serialized job

        Raises:
            ValidationError: If the job is not failed
        """
        job = await self.job_processor.update_job_status(
            job_id, user_id, JobStatus.PENDING, expected_status=JobStatus.FAILED
        )
        return serialize_job(job)

    async def delete_job(self, job_id: int, user_id: str) -> None:
        """
        Delete a job with its webhooks and delivery logs.

        Upstream subscriptions are removed first (best-effort).

        Args:
            job_id: Indexing job ID
            user_id: Caller

        Raises:
            NotFoundError: If the job does not exist or is not the caller's
        """
        async with self.session() as session:
            repo = IndexingJobRepository(session)
            job = await repo.get_owned(job_id, user_id, for_update=True)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")

            await self.registrar.delete_for_job(session, job_id)
            await WebhookRepository(session).delete_for_job(job_id)
            await repo.delete(job_id)

        self.logger.info(f"Job {job_id} deleted by user {user_id}")

    async def list_webhook_logs(
        self,
        webhook_id: int,
        user_id: str,
        limit: int = WEBHOOK_LOGS_DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        """
        Recent delivery logs of one of the user's webhooks.

        Args:
            webhook_id: Local webhook ID
            user_id: Caller
            limit: Max number of logs (capped)

        Returns:
            Logs, newest first
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        async with self.session_maker() as session:
            webhook = await WebhookRepository(session).get_by_id(webhook_id)
            if webhook is None or webhook.user_id != user_id:
                raise NotFoundError(f"Webhook {webhook_id} not found")
            logs = await WebhookLogRepository(session).find_recent(webhook_id, limit)

        return [
            {
                "id": log.id,
                "status": log.status,
                "attempt": log.attempt,
                "payload": log.payload,
                "response": log.response,
                "error": log.error,
                "timestamp": isoformat_or_none(log.timestamp),
            }
            for log in logs
        ]
