"""
Webhook repository.

Data access layer for webhook subscriptions and their delivery logs.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import WebhookStatus
from app.models.webhook import Webhook
from app.models.webhook_log import WebhookLog
from app.repositories.base import BaseRepository


class WebhookRepository(BaseRepository[Webhook]):
    """Repository for webhooks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Webhook, session)

    async def get_active_for_job(self, job_id: int) -> Webhook | None:
        """
        Get the active webhook of a job.

        Args:
            job_id: Indexing job ID

        Returns:
            Active webhook or None
        """
        stmt = (
            select(Webhook)
            .where(
                Webhook.indexing_job_id == job_id,
                Webhook.status == WebhookStatus.ACTIVE.value,
            )
            .order_by(Webhook.id.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_active_by_helius_id(
        self, helius_webhook_id: str
    ) -> Webhook | None:
        """
        Resolve an inbound delivery to its active webhook.

        Args:
            helius_webhook_id: Upstream subscription ID

        Returns:
            Active webhook (with its job loaded) or None
        """
        stmt = (
            select(Webhook)
            .where(
                Webhook.helius_webhook_id == helius_webhook_id,
                Webhook.status == WebhookStatus.ACTIVE.value,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def delete_for_job(self, job_id: int) -> int:
        """
        Delete all webhooks of a job together with their logs.

        Args:
            job_id: Indexing job ID

        Returns:
            Number of webhooks deleted
        """
        webhook_ids = select(Webhook.id).where(Webhook.indexing_job_id == job_id)
        await self.session.execute(
            delete(WebhookLog).where(WebhookLog.webhook_id.in_(webhook_ids))
        )
        result = await self.session.execute(
            delete(Webhook).where(Webhook.indexing_job_id == job_id)
        )
        await self.session.flush()
        return result.rowcount or 0
