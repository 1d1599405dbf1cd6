"""Integration tests for the HTTP API."""

import asyncio
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from sqlalchemy import func, select

from api.handlers.common import BACKGROUND_TASKS_KEY
from api.initialization.application import create_app
from app.config.settings import settings
from app.models import JobStatus, Webhook, WebhookLog
from app.services.event_processors.tables import program_interactions, transactions


AUTH = {"X-User-Id": "user-1"}
CRON_AUTH = {"Authorization": f"Bearer {settings.cron_secret}"}


class HeldLock:
    """Lock that another worker always holds."""

    @asynccontextmanager
    async def lock(self, name, timeout=60, blocking_timeout=5.0):
        yield False


@pytest_asyncio.fixture
async def app(services):
    return create_app(services, settings)


@pytest_asyncio.fixture
async def client(app):
    async with TestClient(TestServer(app)) as client:
        yield client


async def drain_background(app) -> None:
    tasks = list(app[BACKGROUND_TASKS_KEY])
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


class TestJobsApi:
    """Tests for the job control routes."""

    @pytest.mark.asyncio
    async def test_requires_user_id(self, client):
        response = await client.get("/api/jobs")

        assert response.status == 401
        assert (await response.json()) == {"success": False, "error": "Missing X-User-Id header"}

    @pytest.mark.asyncio
    async def test_create_job_starts_in_background(self, app, client, helius, make_connection):
        connection = await make_connection()

        response = await client.post(
            "/api/jobs",
            json={"dbConnectionId": connection.id, "categories": {"transactions": True}},
            headers=AUTH,
        )

        assert response.status == 201
        job = (await response.json())["job"]
        assert job["status"] == JobStatus.INITIALIZING

        await drain_background(app)
        response = await client.get(f"/api/jobs/{job['id']}", headers=AUTH)
        data = await response.json()
        assert data["job"]["status"] == JobStatus.RUNNING
        assert len(data["job"]["webhooks"]) == 1
        assert len(helius.created) == 1

    @pytest.mark.asyncio
    async def test_create_job_with_foreign_connection(self, client, make_connection):
        connection = await make_connection(user_id="user-2")

        response = await client.post(
            "/api/jobs",
            json={"dbConnectionId": connection.id, "categories": {"transactions": True}},
            headers=AUTH,
        )

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_create_job_invalid_body(self, client):
        response = await client.post(
            "/api/jobs", json={"categories": {"transactions": True}}, headers=AUTH
        )

        assert response.status == 400
        assert "dbConnectionId" in (await response.json())["error"]

    @pytest.mark.asyncio
    async def test_create_job_malformed_json(self, client):
        response = await client.post("/api/jobs", data=b"{oops", headers=AUTH)

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_list_jobs(self, client, make_job):
        await make_job(status=JobStatus.RUNNING)
        await make_job(status=JobStatus.FAILED)
        await make_job(status=JobStatus.RUNNING, user_id="user-2")

        response = await client.get("/api/jobs?status=running", headers=AUTH)
        data = await response.json()

        assert data["total"] == 1
        assert data["jobs"][0]["status"] == "running"

    @pytest.mark.asyncio
    async def test_list_jobs_unknown_status(self, client):
        response = await client.get("/api/jobs?status=sleeping", headers=AUTH)

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_get_other_users_job(self, client, make_job):
        job = await make_job(status=JobStatus.RUNNING, user_id="user-2")

        response = await client.get(f"/api/jobs/{job.id}", headers=AUTH)

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_pause_and_invalid_action(self, client, make_job):
        job = await make_job(status=JobStatus.RUNNING)

        response = await client.patch(f"/api/jobs/{job.id}", json={"action": "pause"}, headers=AUTH)
        assert response.status == 200
        assert (await response.json())["job"]["status"] == "paused"

        response = await client.patch(f"/api/jobs/{job.id}", json={"action": "explode"}, headers=AUTH)
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_retry_requires_failed_job(self, client, make_job):
        running = await make_job(status=JobStatus.RUNNING)
        failed = await make_job(status=JobStatus.FAILED)

        response = await client.post(f"/api/jobs/{running.id}/retry", headers=AUTH)
        assert response.status == 400

        response = await client.post(f"/api/jobs/{failed.id}/retry", headers=AUTH)
        assert response.status == 200
        assert (await response.json())["job"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_delete_job(self, client, helius, make_job, make_webhook):
        job = await make_job(status=JobStatus.RUNNING)
        webhook = await make_webhook(job)

        response = await client.delete(f"/api/jobs/{job.id}", headers=AUTH)
        assert response.status == 200
        assert webhook.helius_webhook_id not in helius.webhooks

        response = await client.get(f"/api/jobs/{job.id}", headers=AUTH)
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_non_numeric_job_id(self, client):
        response = await client.get("/api/jobs/abc", headers=AUTH)

        assert response.status == 400


class TestWebhooksApi:
    """Tests for delivery and log routes."""

    @pytest.mark.asyncio
    async def test_signed_delivery(self, client, make_job, make_webhook, make_event, build_delivery):
        job = await make_job(status=JobStatus.RUNNING)
        webhook = await make_webhook(job)
        body, headers = build_delivery(webhook.helius_webhook_id, [make_event("s1")])

        response = await client.post("/api/webhooks/helius", data=body, headers=headers)

        assert response.status == 200
        assert await response.json() == {"success": True, "processed": 1}

        response = await client.get(f"/api/webhooks/{webhook.id}/logs", headers=AUTH)
        [log] = (await response.json())["logs"]
        assert log["status"] == "success"

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client, make_job, make_webhook, make_event, build_delivery):
        job = await make_job(status=JobStatus.RUNNING)
        webhook = await make_webhook(job)
        body, headers = build_delivery(webhook.helius_webhook_id, [make_event("s1")], secret="x")

        response = await client.post("/api/webhooks/helius", data=body, headers=headers)

        assert response.status == 401

    @pytest.mark.asyncio
    async def test_rate_limited_is_429(self, client, services, make_event, build_delivery):
        services.rate_limiter.configure("webhook:hw-9", max_requests=1, window_ms=60_000)
        body, headers = build_delivery("hw-9", [make_event("s1")])

        first = await client.post("/api/webhooks/helius", data=body, headers=headers)
        second = await client.post("/api/webhooks/helius", data=body, headers=headers)

        assert first.status == 404
        assert second.status == 429

    @pytest.mark.asyncio
    async def test_logs_of_other_users_webhook(self, client, make_job, make_webhook):
        job = await make_job(status=JobStatus.RUNNING, user_id="user-2")
        webhook = await make_webhook(job)

        response = await client.get(f"/api/webhooks/{webhook.id}/logs", headers=AUTH)

        assert response.status == 404


class TestCronApi:
    """Tests for cron triggers."""

    @pytest.mark.asyncio
    async def test_requires_bearer_token(self, client):
        response = await client.post("/api/cron/process-jobs")

        assert response.status == 401

    @pytest.mark.asyncio
    async def test_process_jobs(self, client, make_job):
        await make_job(status=JobStatus.PENDING)

        response = await client.post("/api/cron/process-jobs", headers=CRON_AUTH)
        data = await response.json()

        assert response.status == 200
        assert data["success"] is True
        assert data["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_process_jobs_skipped_when_locked(self, services):
        app = create_app(services, settings, lock=HeldLock())
        async with TestClient(TestServer(app)) as client:
            response = await client.post("/api/cron/process-jobs", headers=CRON_AUTH)
            data = await response.json()

        assert data == {"success": True, "skipped": "tick already running"}

    @pytest.mark.asyncio
    async def test_cleanup_webhooks(self, client, make_job, make_webhook):
        job = await make_job(status=JobStatus.RUNNING)
        await make_webhook(job, helius_id="hw-lost")

        response = await client.post("/api/cron/cleanup-webhooks", headers=CRON_AUTH)
        data = await response.json()

        assert data["missing_upstream"] == 1
        assert data["requeued"] == 1


class TestHealthApi:
    """Tests for health probes."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status == 200
        assert (await response.json())["database"] is True

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/liveness")

        assert (await response.json())["alive"] is True


class TestIndexingScenario:
    """Create a job, start it and feed it one delivery end to end."""

    @pytest.mark.asyncio
    async def test_duplicate_signature_in_delivery(
        self, app, client, session_maker, target_engine, make_connection, make_event, build_delivery
    ):
        connection = await make_connection()
        response = await client.post(
            "/api/jobs",
            json={"dbConnectionId": connection.id, "categories": {"transactions": True}},
            headers=AUTH,
        )
        job_id = (await response.json())["job"]["id"]
        await drain_background(app)

        async with session_maker() as session:
            webhook = (
                await session.execute(select(Webhook).where(Webhook.indexing_job_id == job_id))
            ).scalar_one()

        events = [make_event("sig-a"), make_event("sig-b"), make_event("sig-a")]
        body, headers = build_delivery(webhook.helius_webhook_id, events, secret=webhook.secret)
        response = await client.post("/api/webhooks/helius", data=body, headers=headers)
        assert response.status == 200

        async with target_engine.connect() as conn:
            tx_count = (await conn.execute(select(func.count()).select_from(transactions))).scalar()
            interaction_count = (
                await conn.execute(select(func.count()).select_from(program_interactions))
            ).scalar()
        assert tx_count == 2
        assert interaction_count == 2

        response = await client.get(f"/api/jobs/{job_id}", headers=AUTH)
        assert (await response.json())["job"]["status"] == JobStatus.RUNNING

        async with session_maker() as session:
            logs = list((await session.execute(select(WebhookLog))).scalars())
        assert [log.status for log in logs] == ["success"]
