"""Integration tests for the job lifecycle engine."""

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from app.models import IndexingJob, JobStatus, Webhook, WebhookLog, WebhookStatus
from app.services.job_processor import StartOutcome
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.exceptions import NotFoundError, ValidationError


async def load_job(session_maker, job_id) -> IndexingJob | None:
    async with session_maker() as session:
        return await session.get(IndexingJob, job_id)


async def load_webhooks(session_maker, job_id) -> list[Webhook]:
    async with session_maker() as session:
        result = await session.execute(
            select(Webhook).where(Webhook.indexing_job_id == job_id)
        )
        return list(result.scalars())


@pytest.fixture
def processor(services):
    return services.job_processor


class TestStartJob:
    """Tests for start_job."""

    @pytest.mark.asyncio
    async def test_start_registers_webhook(self, processor, helius, session_maker, make_job):
        job = await make_job(status=JobStatus.PENDING, retry_count=2)

        assert await processor.start_job(job.id) == StartOutcome.STARTED

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.RUNNING
        assert stored.retry_count == 2
        assert stored.error_message is None
        [webhook] = await load_webhooks(session_maker, job.id)
        assert webhook.status == WebhookStatus.ACTIVE
        assert len(helius.created) == 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, processor, helius, make_job):
        job = await make_job(status=JobStatus.INITIALIZING)

        assert await processor.start_job(job.id) == StartOutcome.STARTED
        assert await processor.start_job(job.id) == StartOutcome.SKIPPED
        assert len(helius.created) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [JobStatus.PAUSED, JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED]
    )
    async def test_non_startable_skipped(self, processor, helius, make_job, status):
        job = await make_job(status=status)

        assert await processor.start_job(job.id) == StartOutcome.SKIPPED
        assert helius.created == []

    @pytest.mark.asyncio
    async def test_missing_job_skipped(self, processor):
        assert await processor.start_job(424242) == StartOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_registrar_failure_fails_job(
        self, processor, helius, session_maker, make_job, upstream_error
    ):
        job = await make_job(status=JobStatus.PENDING)
        helius.fail_create = upstream_error

        assert await processor.start_job(job.id) == StartOutcome.FAILED

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.FAILED
        assert "HTTP 500" in stored.error_message
        assert await load_webhooks(session_maker, job.id) == []

    @pytest.mark.asyncio
    async def test_cancel_during_start_removes_webhook(
        self, processor, helius, session_maker, make_job
    ):
        job = await make_job(status=JobStatus.PENDING)
        original_create = helius.create_webhook

        async def create_then_cancel(*args, **kwargs):
            async with session_maker() as session:
                await session.execute(
                    update(IndexingJob)
                    .where(IndexingJob.id == job.id)
                    .values(status=JobStatus.CANCELLED.value)
                )
                await session.commit()
            return await original_create(*args, **kwargs)

        helius.create_webhook = create_then_cancel

        assert await processor.start_job(job.id) == StartOutcome.SKIPPED

        [webhook] = await load_webhooks(session_maker, job.id)
        assert webhook.status == WebhookStatus.DELETED
        assert helius.webhooks == {}


class TestManualTransitions:
    """Tests for update_job_status and cancel_job."""

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, processor, make_job, user_id):
        job = await make_job(status=JobStatus.RUNNING)

        paused = await processor.update_job_status(job.id, user_id, JobStatus.PAUSED)
        assert paused.status == JobStatus.PAUSED

        resumed = await processor.update_job_status(
            job.id, user_id, JobStatus.RUNNING, expected_status=JobStatus.PAUSED
        )
        assert resumed.status == JobStatus.RUNNING

    @pytest.mark.asyncio
    async def test_invalid_transition_rejected(self, processor, session_maker, make_job, user_id):
        job = await make_job(status=JobStatus.COMPLETED)

        with pytest.raises(ValidationError):
            await processor.update_job_status(job.id, user_id, JobStatus.RUNNING)

        assert (await load_job(session_maker, job.id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_expected_status_mismatch(self, processor, make_job, user_id):
        job = await make_job(status=JobStatus.RUNNING)

        with pytest.raises(ValidationError):
            await processor.update_job_status(
                job.id, user_id, JobStatus.PENDING, expected_status=JobStatus.FAILED
            )

    @pytest.mark.asyncio
    async def test_other_users_job_not_found(self, processor, make_job):
        job = await make_job(status=JobStatus.RUNNING, user_id="user-1")

        with pytest.raises(NotFoundError):
            await processor.update_job_status(job.id, "user-2", JobStatus.PAUSED)

    @pytest.mark.asyncio
    async def test_requeue_resets_retry_state(self, processor, session_maker, make_job, user_id):
        job = await make_job(
            status=JobStatus.FAILED,
            retry_count=3,
            error_message="boom",
            next_retry_at=utc_now(),
        )

        await processor.update_job_status(job.id, user_id, JobStatus.PENDING)

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.PENDING
        assert stored.retry_count == 0
        assert stored.error_message is None
        assert stored.next_retry_at is None

    @pytest.mark.asyncio
    async def test_cancel_deletes_webhooks(
        self, processor, helius, session_maker, make_job, make_webhook, user_id
    ):
        job = await make_job(status=JobStatus.RUNNING)
        webhook = await make_webhook(job)

        cancelled = await processor.cancel_job(job.id, user_id)

        assert cancelled.status == JobStatus.CANCELLED
        assert webhook.helius_webhook_id not in helius.webhooks
        [stored] = await load_webhooks(session_maker, job.id)
        assert stored.status == WebhookStatus.DELETED

    @pytest.mark.asyncio
    async def test_job_status_projection(self, processor, make_job, make_webhook, user_id):
        job = await make_job(status=JobStatus.RUNNING)
        webhook = await make_webhook(job)

        status = await processor.get_job_status(job.id, user_id)

        assert status["status"] == "running"
        assert status["webhooks"][0]["helius_webhook_id"] == webhook.helius_webhook_id
        assert "secret" not in status["webhooks"][0]


class TestRecovery:
    """Tests for crash recovery and cleanup sweeps."""

    @pytest.mark.asyncio
    async def test_stale_running_job_requeued(self, processor, session_maker, make_job):
        stale = utc_now() - timedelta(hours=1)
        job = await make_job(status=JobStatus.RUNNING, updated_at=stale)
        fresh = await make_job(status=JobStatus.RUNNING)

        before = utc_now()
        assert await processor.recover_interrupted_jobs() == 1

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.PENDING
        assert stored.retry_count == 1
        delay = ensure_utc(stored.next_retry_at) - before
        assert timedelta(seconds=55) <= delay <= timedelta(seconds=65)
        assert (await load_job(session_maker, fresh.id)).status == JobStatus.RUNNING

    @pytest.mark.asyncio
    async def test_recovery_resumes_from_checkpoint(self, processor, session_maker, make_job):
        job = await make_job(
            status=JobStatus.RUNNING,
            updated_at=utc_now() - timedelta(hours=1),
            last_processed_block=5400,
        )
        async with session_maker() as session:
            stored = await session.get(IndexingJob, job.id)
            stored.config = {
                **stored.config,
                "lastProcessedBlock": 5400,
                "checkpoints": [{"block": 4000}, {"block": 5000}],
            }
            stored.updated_at = utc_now() - timedelta(hours=1)
            await session.commit()

        await processor.recover_interrupted_jobs()

        stored = await load_job(session_maker, job.id)
        assert stored.last_processed_block == 5000
        assert stored.config["lastProcessedBlock"] == 5000

    @pytest.mark.asyncio
    async def test_retries_exhausted_fails_job(self, processor, session_maker, make_job):
        job = await make_job(
            status=JobStatus.RUNNING,
            updated_at=utc_now() - timedelta(hours=1),
            retry_count=processor.max_retries,
        )

        assert await processor.recover_interrupted_jobs() == 0

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == f"Job interrupted after {processor.max_retries} retries"

    @pytest.mark.asyncio
    async def test_repeated_crashes_fail_job(self, processor, session_maker, make_job):
        """Recover and restart cycles count toward max_retries."""
        job = await make_job(status=JobStatus.RUNNING)

        for _ in range(processor.max_retries + 1):
            async with session_maker() as session:
                await session.execute(
                    update(IndexingJob)
                    .where(IndexingJob.id == job.id)
                    .values(updated_at=utc_now() - timedelta(hours=1))
                )
                await session.commit()

            await processor.recover_interrupted_jobs()
            if (await load_job(session_maker, job.id)).status == JobStatus.PENDING:
                assert await processor.start_job(job.id) == StartOutcome.STARTED

        stored = await load_job(session_maker, job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.retry_count == processor.max_retries

    @pytest.mark.asyncio
    async def test_cleanup_failed_jobs(
        self, processor, helius, session_maker, make_job, make_webhook
    ):
        old = await make_job(
            status=JobStatus.FAILED, updated_at=utc_now() - timedelta(days=30)
        )
        recent = await make_job(status=JobStatus.FAILED)
        webhook = await make_webhook(old)
        async with session_maker() as session:
            session.add(WebhookLog(webhook_id=webhook.id, status="failed", payload={}))
            await session.commit()

        assert await processor.cleanup_failed_jobs() == 1

        assert await load_job(session_maker, old.id) is None
        assert await load_job(session_maker, recent.id) is not None
        assert await load_webhooks(session_maker, old.id) == []
        assert webhook.helius_webhook_id not in helius.webhooks
        async with session_maker() as session:
            logs = (await session.execute(select(WebhookLog))).scalars().all()
        assert logs == []

    @pytest.mark.asyncio
    async def test_reconcile_requeues_jobs_without_subscription(
        self, processor, session_maker, make_job, make_webhook
    ):
        job = await make_job(status=JobStatus.RUNNING)
        await make_webhook(job, helius_id="hw-vanished")

        result = await processor.reconcile_webhooks()

        assert result["missing_upstream"] == 1
        assert result["requeued"] == 1
        assert (await load_job(session_maker, job.id)).status == JobStatus.PENDING
