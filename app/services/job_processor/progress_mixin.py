"""
Job Processor Progress Mixin.

Bookkeeping after successful deliveries: last processed slot,
checkpoints, progress and completion.
"""

from app.config.constants import CHECKPOINT_INTERVAL_SLOTS, MAX_CHECKPOINTS
from app.models.enums import JobStatus
from app.models.indexing_job import IndexingJob


class ProgressMixin:
    """Mixin providing delivery progress tracking."""

    def record_delivery_progress(self, job: IndexingJob, max_slot: int | None) -> bool:
        """
        Record a processed delivery on the job.

        Mutates the job in the caller's session; the caller commits.
        The job is always touched so that a job receiving deliveries is
        never considered stale.

        Args:
            job: Indexing job (attached to the caller's session)
            max_slot: Highest slot in the delivery, None if unknown

        Returns:
            True if the job reached its end slot and is now completed
        """
        job.updated_at = self.clock()
        if max_slot is None:
            return False
        if job.last_processed_block is not None and max_slot <= job.last_processed_block:
            return False

        filters = job.filters
        config = dict(job.config or {})
        config["lastProcessedBlock"] = max_slot
        job.last_processed_block = max_slot

        checkpoints = list(config.get("checkpoints") or [])
        base = checkpoints[-1]["block"] if checkpoints else filters.get("startSlot")
        if base is None or max_slot - base >= CHECKPOINT_INTERVAL_SLOTS:
            checkpoints.append({"block": max_slot, "timestamp": self.clock().isoformat()})
            config["checkpoints"] = checkpoints[-MAX_CHECKPOINTS:]
        job.config = config

        start_slot = filters.get("startSlot")
        end_slot = filters.get("endSlot")
        if start_slot is None or end_slot is None or end_slot <= start_slot:
            return False

        job.progress = max(
            0, min(100, int((max_slot - start_slot) * 100 / (end_slot - start_slot)))
        )
        if max_slot >= end_slot and job.status == JobStatus.RUNNING:
            job.status = JobStatus.COMPLETED.value
            job.progress = 100
            self.logger.info(f"Job {job.id} reached end slot {end_slot}, completed")
            return True
        return False

    async def finalize_completed(self, job_id: int) -> None:
        """
        Release the webhooks of a completed job.

        Args:
            job_id: Indexing job ID
        """
        async with self.session() as session:
            removed = await self.registrar.delete_for_job(session, job_id)
        self.logger.info(f"Job {job_id} completed, removed {removed} webhook(s)")
