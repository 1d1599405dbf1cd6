"""Unit tests for job update publishing and the distributed lock."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.models import IndexingJob
from app.services.job_notifier import JobNotifier, build_job_update
from app.utils.distributed_lock import DistributedLock


def make_job() -> IndexingJob:
    return IndexingJob(
        id=7,
        user_id="user-1",
        status="running",
        progress=40,
        error_message=None,
    )


class TestJobNotifier:
    """Tests for Redis pub/sub job updates."""

    def test_message_shape(self):
        message = build_job_update(make_job(), "progress")

        assert message["event"] == "progress"
        assert message["jobId"] == 7
        assert message["status"] == "running"
        assert message["progress"] == 40
        assert message["nextRetryAt"] is None

    @pytest.mark.asyncio
    async def test_publishes_on_user_channel(self, mock_redis_client):
        notifier = JobNotifier(mock_redis_client)

        assert await notifier.publish(make_job()) is True

        channel, payload = mock_redis_client.publish.call_args.args
        assert channel == "job-updates:user-1"
        assert json.loads(payload)["event"] == "status_changed"

    @pytest.mark.asyncio
    async def test_without_redis_is_noop(self):
        assert await JobNotifier(None).publish(make_job()) is False

    @pytest.mark.asyncio
    async def test_redis_failure_is_swallowed(self, mock_redis_client):
        """A Redis outage never fails the caller."""
        mock_redis_client.publish.side_effect = RedisConnectionError("down")

        assert await JobNotifier(mock_redis_client).publish(make_job()) is False


class TestDistributedLock:
    """Tests for lock acquisition and release."""

    @pytest.mark.asyncio
    async def test_redis_lock_acquire_and_release(self, mock_redis_client):
        lock = DistributedLock(mock_redis_client)

        async with lock.lock("tick", timeout=30) as acquired:
            assert acquired is True

        key = mock_redis_client.set.call_args.args[0]
        assert key == "lock:tick"
        assert mock_redis_client.set.call_args.kwargs == {"nx": True, "ex": 30}
        mock_redis_client.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_lock_held_elsewhere(self, mock_redis_client):
        mock_redis_client.set = AsyncMock(return_value=None)
        lock = DistributedLock(mock_redis_client)

        async with lock.lock("tick", blocking_timeout=0) as acquired:
            assert acquired is False

        mock_redis_client.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_lock_is_exclusive(self):
        lock = DistributedLock(None)

        async with lock.lock("local-test") as outer:
            assert outer is True
            async with lock.lock("local-test", blocking_timeout=0.05) as inner:
                assert inner is False

        async with lock.lock("local-test") as again:
            assert again is True

    @pytest.mark.asyncio
    async def test_falls_back_to_local_on_redis_error(self, mock_redis_client):
        mock_redis_client.set.side_effect = RedisConnectionError("down")
        lock = DistributedLock(mock_redis_client)

        async with lock.lock("fallback-test") as acquired:
            assert acquired is True
