"""
Webhook Receiver.

Entry point of inbound Helius deliveries. A delivery is rate limited,
validated against the event schema, matched to its active webhook,
authenticated by HMAC signature and only then written to the job's
target database.

Headers:
- x-webhook-id: upstream subscription ID
- x-signature: hex HMAC-SHA256 of the raw body keyed by the webhook secret
"""

import asyncio
import json
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.constants import DEFAULT_EVENT_PROCESSING_TIMEOUT
from app.models.enums import WebhookLogStatus
from app.models.webhook_log import WebhookLog
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.repositories.webhook_repository import WebhookRepository
from app.schemas.events import parse_delivery
from app.services.base_service import BaseService
from app.services.event_processors import EventProcessorRegistry
from app.services.job_processor import PROCESSABLE_STATUSES, JobProcessor
from app.services.rate_limiter import RateLimiter
from app.services.target_database_service import TargetDatabaseService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    InternalError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from app.utils.security import verify_signature


WEBHOOK_ID_HEADER = "x-webhook-id"
SIGNATURE_HEADER = "x-signature"


class WebhookReceiver(BaseService):
    """Validates and dispatches inbound deliveries."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        rate_limiter: RateLimiter,
        processors: EventProcessorRegistry,
        target_databases: TargetDatabaseService,
        job_processor: JobProcessor,
        processing_timeout: float = DEFAULT_EVENT_PROCESSING_TIMEOUT,
    ) -> None:
        """
        Initialize receiver.

        Args:
            session_maker: Product database session factory
            rate_limiter: Shared rate limiter
            processors: Category processors
            target_databases: Engines of the users' target databases
            job_processor: Records delivery progress
            processing_timeout: Budget for one delivery's target writes (seconds)
        """
        super().__init__(session_maker)
        self.rate_limiter = rate_limiter
        self.processors = processors
        self.target_databases = target_databases
        self.job_processor = job_processor
        self.processing_timeout = processing_timeout

    async def receive(self, body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        """
        Handle one delivery.

        Args:
            body: Raw request body
            headers: Request headers (case-insensitive mapping)

        Returns:
            {"success": True, "processed": n}, returned only after the
            target writes are committed

        Raises:
            ValidationError: Missing header or malformed payload
            RateLimitedError: Delivery rate exhausted for the webhook
            NotFoundError: No active webhook with this subscription ID
            AuthError: Missing or wrong signature
            InternalError: Target writes failed
        """
        helius_id = (headers.get(WEBHOOK_ID_HEADER) or "").strip()
        if not helius_id:
            raise ValidationError(f"Missing {WEBHOOK_ID_HEADER} header")

        if not await self.rate_limiter.check_rate(f"webhook:{helius_id}"):
            raise RateLimitedError(f"Rate limit exceeded for webhook {helius_id}")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload: body is not valid JSON") from e

        envelopes = parse_delivery(data)
        if any(envelope.webhook_id != helius_id for envelope in envelopes):
            raise ValidationError(f"webhookId does not match {WEBHOOK_ID_HEADER} header")
        events = [event for envelope in envelopes for event in envelope.events]

        async with self.session_maker() as session:
            webhook = await WebhookRepository(session).get_active_by_helius_id(helius_id)
            if webhook is None:
                raise NotFoundError("Webhook not found")
            verify_signature(body, headers.get(SIGNATURE_HEADER), webhook.secret)
            job = webhook.job

        if job.status not in PROCESSABLE_STATUSES:
            self.logger.info(
                f"Delivery for {job.status} job {job.id} acknowledged without processing"
            )
            await self._write_log(
                webhook.id,
                WebhookLogStatus.SUCCESS,
                data,
                response={"skipped": job.status},
            )
            return {"success": True, "processed": 0, "skipped": job.status}

        try:
            engine = await self.target_databases.get_engine(job.db_connection)
            counts = await asyncio.wait_for(
                self.processors.dispatch(events, engine, job.categories),
                timeout=self.processing_timeout,
            )
        except Exception as e:
            error = str(e) or type(e).__name__
            self.logger.error(
                f"Processing failed for webhook {webhook.id} (job {job.id}): {error}",
                extra={"helius_webhook_id": helius_id, "events": len(events)},
            )
            await self._write_log(webhook.id, WebhookLogStatus.FAILED, data, error=error)
            raise InternalError("Failed to process webhook events") from e

        completed = await self._record_success(webhook.id, job.id, data, counts, events)

        if completed:
            await self.job_processor.finalize_completed(job.id)

        self.logger.info(
            f"Processed {len(events)} event(s) for job {job.id}",
            extra={"counts": counts, "helius_webhook_id": helius_id},
        )
        return {"success": True, "processed": len(events)}

    async def _record_success(
        self,
        webhook_id: int,
        job_id: int,
        payload: Any,
        counts: dict[str, int],
        events: list,
    ) -> bool:
        processed = len(events)
        max_slot = max((event.slot for event in events), default=0) or None
        completed = False
        job = None
        try:
            async with self.session() as session:
                session.add(
                    WebhookLog(
                        webhook_id=webhook_id,
                        status=WebhookLogStatus.SUCCESS.value,
                        attempt=1,
                        payload=payload,
                        response={"success": True, "processed": processed, "counts": counts},
                    )
                )
                webhook = await WebhookRepository(session).get_by_id(webhook_id)
                if webhook is not None:
                    webhook.updated_at = utc_now()
                job = await IndexingJobRepository(session).get_by_id(job_id, for_update=True)
                if job is not None:
                    completed = self.job_processor.record_delivery_progress(job, max_slot)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to record delivery for webhook {webhook_id}: {e}")
            return False

        if job is not None:
            await self.job_processor.notify(job, "progress")
        return completed

    async def _write_log(
        self,
        webhook_id: int,
        status: WebhookLogStatus,
        payload: Any,
        response: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        try:
            async with self.session() as session:
                session.add(
                    WebhookLog(
                        webhook_id=webhook_id,
                        status=status.value,
                        attempt=1,
                        payload=payload,
                        response=response,
                        error=error,
                    )
                )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to write {status} log for webhook {webhook_id}: {e}")
