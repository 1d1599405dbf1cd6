"""
Webhook Registrar.

Keeps upstream Helius subscriptions and local webhook records in step:
one active subscription per job, created idempotently, deleted
best-effort, and reconciled against the provider's list.

Methods take the caller's session so that a registration joins the
caller's unit of work. ``create`` commits on its own because an
upstream subscription without a local record must be compensated.
"""

from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import WebhookStatus
from app.models.indexing_job import IndexingJob
from app.models.webhook import Webhook
from app.repositories.indexing_job_repository import IndexingJobRepository
from app.repositories.webhook_repository import WebhookRepository
from app.services.helius.client import HeliusClient
from app.services.helius.constants import (
    CATEGORY_TRANSACTION_TYPES,
    DEFAULT_TRANSACTION_TYPES,
)
from app.utils.exceptions import NotFoundError, RateLimitedError, UpstreamError
from app.utils.security import generate_webhook_secret, mask_sensitive


DELIVERY_PATH = "/api/webhooks/helius"


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation sweep."""

    deleted: int = 0
    failed: int = 0
    # Jobs whose active webhook no longer exists upstream
    orphaned_local: list[int] = field(default_factory=list)


class WebhookRegistrar:
    """Creates, deletes and reconciles webhook subscriptions."""

    def __init__(self, helius_client: HeliusClient, public_base_url: str) -> None:
        """
        Initialize registrar.

        Args:
            helius_client: Helius API client (rate limited)
            public_base_url: Externally reachable base URL of this service
        """
        self.client = helius_client
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def delivery_url_prefix(self) -> str:
        """URL prefix every subscription of this deployment delivers to."""
        return f"{self.public_base_url}{DELIVERY_PATH}"

    def build_delivery_url(self, job_id: int) -> str:
        """Delivery URL of a job's subscription."""
        return f"{self.delivery_url_prefix}?jobId={job_id}"

    @staticmethod
    def transaction_types_for(job: IndexingJob) -> list[str]:
        """
        Transaction types to subscribe to.

        Explicit filters win; otherwise the union of the enabled
        categories' types, collapsing to ["ANY"] when any category
        needs everything.

        Args:
            job: Indexing job

        Returns:
            Helius transaction types
        """
        explicit = job.filters.get("transactionTypes")
        if explicit:
            return list(explicit)

        types: list[str] = []
        for category, enabled in job.categories.items():
            if not enabled:
                continue
            for tx_type in CATEGORY_TRANSACTION_TYPES.get(category, DEFAULT_TRANSACTION_TYPES):
                if tx_type not in types:
                    types.append(tx_type)

        if not types or "ANY" in types:
            return list(DEFAULT_TRANSACTION_TYPES)
        return types

    async def create(self, session: AsyncSession, job: IndexingJob) -> Webhook:
        """
        Ensure the job has an active subscription.

        Returns the existing active webhook unchanged when there is one,
        so repeated calls never create a second subscription.

        Args:
            session: Product database session
            job: Indexing job

        Returns:
            Active webhook

        Raises:
            UpstreamError: If Helius rejects the subscription
            RateLimitedError: If no Helius token became available
        """
        repo = WebhookRepository(session)
        existing = await repo.get_active_for_job(job.id)
        if existing is not None:
            logger.debug(
                f"Job {job.id} already has active webhook {existing.helius_webhook_id}"
            )
            return existing

        secret = generate_webhook_secret()
        url = self.build_delivery_url(job.id)
        account_addresses = list(job.filters.get("accountAddresses") or [])
        transaction_types = self.transaction_types_for(job)

        data = await self.client.create_webhook(
            webhook_url=url,
            account_addresses=account_addresses,
            transaction_types=transaction_types,
            auth_header=secret,
        )
        helius_id = self.client.extract_webhook_id(data)

        try:
            webhook = await repo.create(
                user_id=job.user_id,
                indexing_job_id=job.id,
                helius_webhook_id=helius_id,
                url=url,
                secret=secret,
                status=WebhookStatus.ACTIVE.value,
                filters={
                    "accountAddresses": account_addresses,
                    "transactionTypes": transaction_types,
                },
            )
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(
                f"Failed to persist webhook {helius_id} for job {job.id}: {e}. "
                f"Deleting upstream subscription"
            )
            try:
                await self.client.delete_webhook(helius_id)
            except (UpstreamError, RateLimitedError) as cleanup_error:
                logger.error(
                    f"Compensating delete of {helius_id} failed, "
                    f"left for reconciliation: {cleanup_error}"
                )
            raise

        logger.info(
            f"Webhook {webhook.id} registered for job {job.id}",
            extra={
                "helius_webhook_id": helius_id,
                "secret": mask_sensitive(secret),
                "transaction_types": transaction_types,
                "accounts": len(account_addresses),
            },
        )
        return webhook

    async def delete(self, session: AsyncSession, webhook_id: int) -> bool:
        """
        Delete a subscription upstream and mark the local record deleted.

        The local record is marked deleted whatever the upstream outcome;
        an upstream failure is logged and left for reconciliation.

        Args:
            session: Product database session (caller commits)
            webhook_id: Local webhook ID

        Returns:
            True if the upstream subscription is gone

        Raises:
            NotFoundError: If the webhook does not exist
        """
        repo = WebhookRepository(session)
        webhook = await repo.get_by_id(webhook_id)
        if webhook is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")

        upstream_ok = True
        try:
            await self.client.delete_webhook(webhook.helius_webhook_id)
        except (UpstreamError, RateLimitedError) as e:
            upstream_ok = False
            logger.error(
                f"Upstream delete of webhook {webhook.helius_webhook_id} failed: {e}"
            )

        webhook.status = WebhookStatus.DELETED.value
        await session.flush()
        return upstream_ok

    async def delete_for_job(self, session: AsyncSession, job_id: int) -> int:
        """
        Delete every active subscription of a job.

        Args:
            session: Product database session (caller commits)
            job_id: Indexing job ID

        Returns:
            Number of local webhooks marked deleted
        """
        repo = WebhookRepository(session)
        webhooks = await repo.find_all(
            indexing_job_id=job_id, status=WebhookStatus.ACTIVE.value
        )
        for webhook in webhooks:
            await self.delete(session, webhook.id)
        return len(webhooks)

    async def reconcile(
        self, session: AsyncSession, user_id: str | None = None
    ) -> ReconcileResult:
        """
        Align upstream subscriptions with local active records.

        Upstream subscriptions delivering to this deployment without an
        active local record are deleted. Local active records missing
        upstream are marked error. Per-item failures are logged and do
        not stop the sweep.

        Args:
            session: Product database session (caller commits)
            user_id: Restrict the sweep to one user's subscriptions

        Returns:
            Reconciliation counts
        """
        repo = WebhookRepository(session)
        result = ReconcileResult()

        upstream = await self.client.list_webhooks()
        active = await repo.find_all(status=WebhookStatus.ACTIVE.value)
        active_ids = {webhook.helius_webhook_id for webhook in active}
        upstream_ids: set[str] = set()

        for subscription in upstream:
            helius_id = self.client.extract_webhook_id(subscription)
            if not helius_id:
                continue
            upstream_ids.add(helius_id)

            delivery_url = str(subscription.get("webhookURL") or "")
            if helius_id in active_ids:
                continue
            if not delivery_url.startswith(self.delivery_url_prefix):
                continue
            if user_id is not None:
                owner = await self._owner_of(session, helius_id, delivery_url)
                if owner != user_id:
                    continue

            try:
                await self.client.delete_webhook(helius_id)
            except (UpstreamError, RateLimitedError) as e:
                result.failed += 1
                logger.error(f"Failed to delete orphaned webhook {helius_id}: {e}")
                continue

            result.deleted += 1
            for stale in await repo.find_all(helius_webhook_id=helius_id):
                stale.status = WebhookStatus.DELETED.value
            logger.info(f"Deleted orphaned upstream webhook {helius_id}")

        for webhook in active:
            if user_id is not None and webhook.user_id != user_id:
                continue
            if webhook.helius_webhook_id not in upstream_ids:
                webhook.status = WebhookStatus.ERROR.value
                result.orphaned_local.append(webhook.indexing_job_id)
                logger.warning(
                    f"Webhook {webhook.id} of job {webhook.indexing_job_id} "
                    f"is missing upstream, marked error"
                )

        await session.flush()
        logger.info(
            f"Webhook reconciliation finished: deleted={result.deleted}, "
            f"failed={result.failed}, missing_upstream={len(result.orphaned_local)}"
        )
        return result

    async def _owner_of(
        self, session: AsyncSession, helius_id: str, delivery_url: str
    ) -> str | None:
        local = await WebhookRepository(session).get_by(helius_webhook_id=helius_id)
        if local is not None:
            return local.user_id

        job_ids = parse_qs(urlsplit(delivery_url).query).get("jobId") or []
        if not job_ids or not job_ids[0].isdigit():
            return None
        job = await IndexingJobRepository(session).get_by_id(int(job_ids[0]))
        return job.user_id if job else None
