"""
Job Processor Core Service.

Main service class that combines the lifecycle, progress and recovery
mixins around one set of injected collaborators.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.indexing_job import IndexingJob
from app.services.base_service import BaseService
from app.services.job_notifier import JobNotifier
from app.services.webhook_registrar import WebhookRegistrar
from app.utils.datetime_utils import utc_now

from .lifecycle_mixin import LifecycleMixin
from .progress_mixin import ProgressMixin
from .recovery_mixin import RecoveryMixin


class JobProcessor(LifecycleMixin, ProgressMixin, RecoveryMixin, BaseService):
    """
    Indexing job lifecycle engine.

    Owns every status change of a job:
    - start (webhook registration)
    - manual pause/resume/cancel/retry
    - delivery progress and completion
    - crash recovery with exponential backoff
    - failed-job cleanup and webhook reconciliation
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        registrar: WebhookRegistrar,
        notifier: JobNotifier | None = None,
        max_retries: int = 3,
        retry_base_seconds: int = 60,
        stale_minutes: int = 30,
        failed_retention_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize job processor.

        Args:
            session_maker: Product database session factory
            registrar: Webhook registrar
            notifier: Job update publisher
            max_retries: Recoveries before a job is failed
            retry_base_seconds: Base of the exponential retry delay
            stale_minutes: Inactivity after which an in-flight job is stale
            failed_retention_days: Age at which failed jobs are deleted
            clock: Current UTC time (injectable for tests)
        """
        super().__init__(session_maker)
        self.registrar = registrar
        self.notifier = notifier or JobNotifier()
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self.stale_minutes = stale_minutes
        self.failed_retention_days = failed_retention_days
        self.clock = clock

    async def notify(self, job: IndexingJob, event: str = "status_changed") -> None:
        """Publish a job update; never raises."""
        await self.notifier.publish(job, event)
