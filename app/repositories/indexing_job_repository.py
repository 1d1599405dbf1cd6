"""
Indexing Job repository.

Data access layer for indexing jobs, including the scheduler scan
and crash-recovery queries.
"""

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import JobStatus
from app.models.indexing_job import IndexingJob
from app.repositories.base import BaseRepository


class IndexingJobRepository(BaseRepository[IndexingJob]):
    """Repository for indexing jobs."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(IndexingJob, session)

    async def get_owned(
        self, job_id: int, user_id: str, for_update: bool = False
    ) -> IndexingJob | None:
        """
        Get a job only if it belongs to the user.

        Args:
            job_id: Job ID
            user_id: Caller user ID
            for_update: Lock the row before a status transition

        Returns:
            Job or None if missing or owned by someone else
        """
        job = await self.get_by_id(job_id, for_update=for_update)
        if job is None or job.user_id != user_id:
            return None
        return job

    async def find_due_pending(
        self, now: datetime, limit: int
    ) -> list[IndexingJob]:
        """
        Get pending jobs eligible to start, oldest first.

        A job is eligible when next_retry_at is unset or not in the future.

        Args:
            now: Current time
            limit: Batch size

        Returns:
            Up to limit jobs ordered by creation time
        """
        stmt = (
            select(IndexingJob)
            .where(
                IndexingJob.status == JobStatus.PENDING.value,
                or_(
                    IndexingJob.next_retry_at.is_(None),
                    IndexingJob.next_retry_at <= now,
                ),
            )
            .order_by(IndexingJob.created_at.asc(), IndexingJob.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_stale_in_flight(
        self, updated_before: datetime
    ) -> list[IndexingJob]:
        """
        Get running or initializing jobs not updated since the threshold.

        Initializing jobs only linger here when a start was interrupted.

        Args:
            updated_before: Staleness threshold

        Returns:
            Stale jobs, least recently updated first
        """
        stmt = (
            select(IndexingJob)
            .where(
                IndexingJob.status.in_(
                    (JobStatus.RUNNING.value, JobStatus.INITIALIZING.value)
                ),
                IndexingJob.updated_at < updated_before,
            )
            .order_by(IndexingJob.updated_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_failed_before(
        self, updated_before: datetime
    ) -> list[IndexingJob]:
        """Get failed jobs last touched before the threshold."""
        stmt = select(IndexingJob).where(
            IndexingJob.status == JobStatus.FAILED.value,
            IndexingJob.updated_at < updated_before,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_user(
        self,
        user_id: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[IndexingJob], int]:
        """
        List a user's jobs, newest first.

        Args:
            user_id: Owner
            status: Optional status filter
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (jobs, total_count)
        """
        filters = [IndexingJob.user_id == user_id]
        if status:
            filters.append(IndexingJob.status == status)

        count_stmt = select(func.count(IndexingJob.id)).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = (
            select(IndexingJob)
            .where(*filters)
            .order_by(IndexingJob.created_at.desc(), IndexingJob.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
