"""Unit tests for job status transitions, backoff and progress."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from app.models import IndexingJob, JobStatus
from app.services.job_processor import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    JobProcessor,
    can_transition,
    validate_transition,
)
from app.utils.exceptions import ValidationError


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def processor():
    return JobProcessor(
        MagicMock(),
        MagicMock(),
        retry_base_seconds=60,
        clock=lambda: NOW,
    )


def make_job(status=JobStatus.RUNNING, filters=None, **fields) -> IndexingJob:
    return IndexingJob(
        id=1,
        user_id="user-1",
        db_connection_id=1,
        type="webhook",
        status=status.value,
        progress=0,
        config={"categories": {"transactions": True}, "filters": filters or {}},
        **fields,
    )


class TestTransitions:
    """Tests for the transition table."""

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {JobStatus.COMPLETED, JobStatus.CANCELLED}

    @pytest.mark.parametrize(
        "current,target",
        [
            ("initializing", "running"),
            ("pending", "running"),
            ("running", "paused"),
            ("paused", "running"),
            ("running", "pending"),
            ("failed", "pending"),
            ("running", "completed"),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("completed", "running"),
            ("cancelled", "pending"),
            ("paused", "completed"),
            ("pending", "paused"),
            ("failed", "running"),
            ("running", "bogus"),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(ValidationError, match="Invalid status transition"):
            validate_transition(current, target)

    def test_every_status_in_table(self):
        assert set(ALLOWED_TRANSITIONS) == set(JobStatus)


class TestRetryBackoff:
    """Tests for the exponential retry delay."""

    @pytest.mark.parametrize("retry,expected", [(1, 60), (2, 120), (3, 240), (4, 480)])
    def test_delay_doubles(self, processor, retry, expected):
        assert processor.retry_delay_seconds(retry) == expected


class TestDeliveryProgress:
    """Tests for record_delivery_progress bookkeeping."""

    def test_touches_job_without_slot(self, processor):
        job = make_job()

        assert processor.record_delivery_progress(job, None) is False
        assert job.updated_at == NOW
        assert job.last_processed_block is None

    def test_records_last_block_and_first_checkpoint(self, processor):
        job = make_job()

        processor.record_delivery_progress(job, 5000)

        assert job.last_processed_block == 5000
        assert job.config["lastProcessedBlock"] == 5000
        assert job.config["checkpoints"] == [
            {"block": 5000, "timestamp": NOW.isoformat()}
        ]

    def test_older_slot_ignored(self, processor):
        job = make_job(last_processed_block=5000)

        processor.record_delivery_progress(job, 4000)

        assert job.last_processed_block == 5000

    def test_checkpoint_interval(self, processor):
        """A new checkpoint needs 1000 slots since the last one."""
        job = make_job(filters={"startSlot": 0, "endSlot": 100_000})

        for slot in (1000, 1500, 2000, 2999, 3000):
            processor.record_delivery_progress(job, slot)

        assert [c["block"] for c in job.config["checkpoints"]] == [1000, 2000, 3000]

    def test_checkpoints_capped(self, processor):
        job = make_job()

        for slot in range(1000, 9000, 1000):
            processor.record_delivery_progress(job, slot)

        blocks = [c["block"] for c in job.config["checkpoints"]]
        assert blocks == [4000, 5000, 6000, 7000, 8000]

    def test_progress_percentage(self, processor):
        job = make_job(filters={"startSlot": 1000, "endSlot": 2000})

        processor.record_delivery_progress(job, 1250)

        assert job.progress == 25
        assert job.status == JobStatus.RUNNING

    def test_completion_at_end_slot(self, processor):
        job = make_job(filters={"startSlot": 1000, "endSlot": 2000})

        assert processor.record_delivery_progress(job, 2500) is True
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100

    def test_no_completion_without_range(self, processor):
        job = make_job()

        assert processor.record_delivery_progress(job, 10**9) is False
        assert job.progress == 0
        assert job.status == JobStatus.RUNNING
