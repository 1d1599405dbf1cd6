"""
Database Connection model.

Credentials of a user-owned target database that jobs write events into.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import ConnectionStatus


class DatabaseConnection(Base):
    """
    Target database connection.

    Created and tested by the dashboard; the indexing engine only reads it
    to obtain a pooled engine. The password is stored Fernet-encrypted.
    """

    __tablename__ = "database_connections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    host: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False, default=5432)
    database: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)  # encrypted

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ConnectionStatus.PENDING.value
    )
    last_connected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<DatabaseConnection(id={self.id}, user_id={self.user_id}, "
            f"host={self.host}, database={self.database}, status={self.status})>"
        )
