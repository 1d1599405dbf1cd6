"""
Webhook Log model.

Append-only delivery audit record.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import JSONType


class WebhookLog(Base):
    """
    One inbound delivery attempt.

    Rows are never updated after insert. Used for audit and
    debugging only, never for control flow.
    """

    __tablename__ = "webhook_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    webhook_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("webhooks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[Any] = mapped_column(JSONType, nullable=False)
    response: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WebhookLog(id={self.id}, webhook_id={self.webhook_id}, "
            f"status={self.status}, attempt={self.attempt})>"
        )
