"""
Indexing Job model.

A user-configured request to index one or more event categories
into a target database.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import JobStatus
from app.models.types import JSONType


if TYPE_CHECKING:
    from app.models.database_connection import DatabaseConnection
    from app.models.webhook import Webhook


class IndexingJob(Base):
    """
    Indexing job.

    Config document keys:
    - categories: {"transactions": true, "nft_events": false, ...}
    - filters: {"accountAddresses": [...], "transactionTypes": [...],
      "startSlot": int, "endSlot": int}
    - webhook: {"enabled": bool, "url": str}
    - lastProcessedBlock, checkpoints: engine bookkeeping

    Scheduled retries use the next_retry_at and retry_count columns.
    """

    __tablename__ = "indexing_jobs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    db_connection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("database_connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.INITIALIZING.value,
        index=True,
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    config: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Scheduled retry (exponential backoff)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_processed_block: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    db_connection: Mapped["DatabaseConnection"] = relationship(
        "DatabaseConnection", lazy="selectin"
    )
    webhooks: Mapped[list["Webhook"]] = relationship(
        "Webhook",
        back_populates="job",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def categories(self) -> dict[str, bool]:
        """Enabled data categories."""
        return dict((self.config or {}).get("categories") or {})

    @property
    def filters(self) -> dict[str, Any]:
        """Job filter set."""
        return dict((self.config or {}).get("filters") or {})

    @property
    def checkpoints(self) -> list[dict[str, Any]]:
        """Saved progress checkpoints, oldest first."""
        return list((self.config or {}).get("checkpoints") or [])

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<IndexingJob(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, status={self.status}, progress={self.progress})>"
        )
