"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings; tests never reach real services
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("HELIUS_API_KEY", "test-helius-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret-0123456789")
os.environ.setdefault("PUBLIC_BASE_URL", "https://indexer.example.com")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import dramatiq  # noqa: E402
from dramatiq.brokers.stub import StubBroker  # noqa: E402

# Actors bind to the stub broker instead of Redis
dramatiq.set_broker(StubBroker())

import json  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config.settings import settings  # noqa: E402
from app.models import (  # noqa: E402
    Base,
    DatabaseConnection,
    IndexingJob,
    JobStatus,
    Webhook,
    WebhookStatus,
)
from app.services.container import build_services  # noqa: E402
from app.services.helius import HeliusClient  # noqa: E402
from app.services.rate_limiter import RateLimiter  # noqa: E402
from app.services.target_database_service import TargetDatabaseService  # noqa: E402
from app.utils.encryption import EncryptionService  # noqa: E402
from app.utils.exceptions import UpstreamError  # noqa: E402
from app.utils.security import compute_signature  # noqa: E402


USER_ID = "user-1"
OTHER_USER_ID = "user-2"
WEBHOOK_SECRET = "a" * 64


class FakeHeliusClient:
    """In-memory stand-in for the Helius webhook API."""

    extract_webhook_id = staticmethod(HeliusClient.extract_webhook_id)

    def __init__(self, rate_limiter: RateLimiter | None = None) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self.webhooks: dict[str, dict[str, Any]] = {}
        self.created: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.fail_create: Exception | None = None
        self.fail_delete: Exception | None = None
        self.closed = False
        self._next_id = 1

    async def create_webhook(
        self,
        webhook_url: str,
        account_addresses: list[str],
        transaction_types: list[str],
        auth_header: str,
    ) -> dict[str, Any]:
        if self.fail_create is not None:
            raise self.fail_create
        helius_id = f"hw-{self._next_id}"
        self._next_id += 1
        document = {
            "webhookID": helius_id,
            "webhookURL": webhook_url,
            "accountAddresses": account_addresses,
            "transactionTypes": transaction_types,
            "authHeader": auth_header,
        }
        self.webhooks[helius_id] = document
        self.created.append(document)
        return document

    async def list_webhooks(self) -> list[dict[str, Any]]:
        return list(self.webhooks.values())

    async def delete_webhook(self, webhook_id: str) -> bool:
        if self.fail_delete is not None:
            raise self.fail_delete
        self.deleted.append(webhook_id)
        return self.webhooks.pop(webhook_id, None) is not None

    async def close(self) -> None:
        self.closed = True


def transaction_event(signature: str, slot: int = 100, **extra: Any) -> dict[str, Any]:
    """Provider event with no type tag (plain transaction)."""
    event = {
        "signature": signature,
        "slot": slot,
        "timestamp": 1_760_000_000,
        "fee": 5000,
        "programIds": ["prog1"],
        "accounts": ["acc1", "acc2"],
    }
    event.update(extra)
    return event


@pytest.fixture
def make_event():
    """Factory for provider events."""
    return transaction_event


@pytest.fixture
def build_delivery():
    """
    Factory for signed deliveries.

    Returns (raw_body, headers) as Helius would send them.
    """

    def _build(
        helius_id: str,
        events: list[dict[str, Any]],
        secret: str = WEBHOOK_SECRET,
    ) -> tuple[bytes, dict[str, str]]:
        body = json.dumps({"webhookId": helius_id, "events": events}).encode()
        headers = {
            "x-webhook-id": helius_id,
            "x-signature": compute_signature(body, secret),
            "Content-Type": "application/json",
        }
        return body, headers

    return _build


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def helius() -> FakeHeliusClient:
    """Fake Helius API."""
    return FakeHeliusClient()


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for notification and lock tests."""
    client = AsyncMock()
    client.publish = AsyncMock(return_value=1)
    client.set = AsyncMock(return_value=True)
    client.eval = AsyncMock(return_value=1)
    return client


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """
    Product database on a temporary SQLite file.

    A file (not :memory:) so that concurrent sessions of a scheduler
    tick each get their own connection.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'product.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def target_engine():
    """User target database (in-memory SQLite shared by all connections)."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def target_databases(target_engine):
    return TargetDatabaseService(
        EncryptionService(None),
        engine_factory=lambda connection, password: target_engine,
    )


@pytest.fixture
def services(session_maker, helius, target_databases):
    """Fully wired services over the test databases."""
    return build_services(
        session_maker,
        settings,
        helius_client=helius,
        target_databases=target_databases,
    )


@pytest.fixture
def make_connection(session_maker):
    """Factory for target database connection records."""

    async def _make(user_id: str = USER_ID) -> DatabaseConnection:
        async with session_maker() as session:
            connection = DatabaseConnection(
                user_id=user_id,
                host="target.example.com",
                port=5432,
                database="events",
                username="indexer",
                password="plaintext",
            )
            session.add(connection)
            await session.commit()
            return connection

    return _make


@pytest.fixture
def make_job(session_maker, make_connection):
    """Factory for indexing jobs."""

    async def _make(
        status: JobStatus = JobStatus.PENDING,
        user_id: str = USER_ID,
        categories: dict[str, bool] | None = None,
        filters: dict[str, Any] | None = None,
        **fields: Any,
    ) -> IndexingJob:
        connection = await make_connection(user_id)
        async with session_maker() as session:
            job = IndexingJob(
                user_id=user_id,
                db_connection_id=connection.id,
                type="webhook",
                status=status.value,
                progress=0,
                config={
                    "categories": categories or {"transactions": True},
                    "filters": filters or {},
                },
                **fields,
            )
            session.add(job)
            await session.commit()
            return job

    return _make


@pytest.fixture
def make_webhook(session_maker, helius):
    """Factory for active webhooks, registered with the fake Helius API."""

    async def _make(
        job: IndexingJob,
        helius_id: str | None = None,
        status: WebhookStatus = WebhookStatus.ACTIVE,
        secret: str = WEBHOOK_SECRET,
    ) -> Webhook:
        if helius_id is None:
            document = await helius.create_webhook(
                f"https://indexer.example.com/api/webhooks/helius?jobId={job.id}",
                [],
                ["ANY"],
                secret,
            )
            helius_id = document["webhookID"]
        async with session_maker() as session:
            webhook = Webhook(
                user_id=job.user_id,
                indexing_job_id=job.id,
                helius_webhook_id=helius_id,
                url=f"https://indexer.example.com/api/webhooks/helius?jobId={job.id}",
                secret=secret,
                status=status.value,
                filters={},
            )
            session.add(webhook)
            await session.commit()
            return webhook

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def upstream_error() -> UpstreamError:
    return UpstreamError("Helius POST /v0/webhooks failed: HTTP 500", upstream_status=500)
