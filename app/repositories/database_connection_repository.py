"""
Database Connection repository.

Read access to user target database credentials.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_connection import DatabaseConnection
from app.repositories.base import BaseRepository


class DatabaseConnectionRepository(BaseRepository[DatabaseConnection]):
    """Repository for target database connections."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(DatabaseConnection, session)

    async def get_owned(
        self, connection_id: int, user_id: str
    ) -> DatabaseConnection | None:
        """Get a connection only if it belongs to the user."""
        connection = await self.get_by_id(connection_id)
        if connection is None or connection.user_id != user_id:
            return None
        return connection
