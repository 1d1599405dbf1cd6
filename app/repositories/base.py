"""
Base repository.

Shared lookups for the product tables. Repositories only flush; the
caller's session decides when to commit.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one mapped table.

    Example:
        class WebhookRepository(BaseRepository[Webhook]):
            def __init__(self, session: AsyncSession):
                super().__init__(Webhook, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    def locked(self, stmt: Select) -> Select:
        """
        Row-lock a select and refresh already loaded instances.

        State transitions re-read through this so the caller checks the
        committed status, not a stale identity-map copy.
        """
        return stmt.with_for_update().execution_options(populate_existing=True)

    async def get_by_id(self, id: int, for_update: bool = False) -> ModelType | None:
        """
        Get a row by primary key.

        Args:
            id: Row ID
            for_update: Lock the row and reload it from the database

        Returns:
            Row or None
        """
        if not for_update:
            return await self.session.get(self.model, id)

        stmt = self.locked(select(self.model).where(self.model.id == id))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_by(self, **filters: Any) -> ModelType | None:
        """First row matching column filters."""
        stmt = select(self.model).filter_by(**filters).limit(1)
        return (await self.session.execute(stmt)).scalars().first()

    async def find_all(self, limit: int | None = None, **filters: Any) -> list[ModelType]:
        """Rows matching column filters, in insertion order."""
        stmt = select(self.model).filter_by(**filters).order_by(self.model.id)
        if limit:
            stmt = stmt.limit(limit)
        return list((await self.session.execute(stmt)).scalars())

    async def create(self, **data: Any) -> ModelType:
        """
        Insert a row and load server defaults.

        Returns:
            Created row with its ID assigned
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, id: int) -> bool:
        """Delete a row by ID; False if it did not exist."""
        result = await self.session.execute(delete(self.model).where(self.model.id == id))
        await self.session.flush()
        return result.rowcount > 0
