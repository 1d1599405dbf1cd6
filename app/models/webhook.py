"""
Webhook model.

Local record of an upstream Helius webhook subscription owned by a job.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import WebhookStatus
from app.models.types import JSONType


if TYPE_CHECKING:
    from app.models.indexing_job import IndexingJob


def _default_webhook_config() -> dict[str, Any]:
    return {"rateLimit": {"windowMs": 60000, "maxRequests": 60}}


class Webhook(Base):
    """
    Webhook subscription.

    A job owns at most one active webhook. An active webhook's
    helius_webhook_id must exist upstream; reconciliation deletes
    upstream subscriptions that have no active local record.
    """

    __tablename__ = "webhooks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    indexing_job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("indexing_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    helius_webhook_id: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    secret: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WebhookStatus.ACTIVE.value, index=True
    )
    filters: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    # Delivery policy advertised to the provider
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_delay_ms: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1000
    )
    config: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True, default=_default_webhook_config
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    job: Mapped["IndexingJob"] = relationship(
        "IndexingJob", back_populates="webhooks", lazy="selectin"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Webhook(id={self.id}, job_id={self.indexing_job_id}, "
            f"helius_id={self.helius_webhook_id}, status={self.status})>"
        )
