"""
Webhook Log repository.

Append-only access to delivery logs.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.webhook_log import WebhookLog
from app.repositories.base import BaseRepository


class WebhookLogRepository(BaseRepository[WebhookLog]):
    """Repository for webhook delivery logs."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(WebhookLog, session)

    async def find_recent(
        self, webhook_id: int, limit: int = 50
    ) -> list[WebhookLog]:
        """
        Get the most recent logs of a webhook.

        Args:
            webhook_id: Webhook ID
            limit: Max number of logs

        Returns:
            Logs, newest first
        """
        stmt = (
            select(WebhookLog)
            .where(WebhookLog.webhook_id == webhook_id)
            .order_by(WebhookLog.timestamp.desc(), WebhookLog.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
