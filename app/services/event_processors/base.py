"""
Base event processor.

A processor turns one validated event batch into rows of its category.
Writes are idempotent: every insert ignores conflicts on the natural key,
so a replayed delivery is a no-op rather than an error.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from loguru import logger
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from app.schemas.events import HeliusEvent
from app.utils.exceptions import InternalError


def dedupe_rows(
    rows: Iterable[dict[str, Any]], key: Sequence[str]
) -> list[dict[str, Any]]:
    """Keep the first row per natural key."""
    seen: set[tuple[Any, ...]] = set()
    unique = []
    for row in rows:
        row_key = tuple(row[column] for column in key)
        if row_key in seen:
            continue
        seen.add(row_key)
        unique.append(row)
    return unique


async def insert_ignore(
    conn: AsyncConnection,
    table: Table,
    rows: list[dict[str, Any]],
    index_elements: Sequence[str],
) -> None:
    """
    INSERT ... ON CONFLICT DO NOTHING for the connection's dialect.

    Args:
        conn: Connection inside an open transaction
        table: Target table
        rows: Row dicts
        index_elements: Conflict target (natural key columns)
    """
    if not rows:
        return

    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table)
    else:
        raise InternalError(f"Unsupported target database dialect: {dialect}")

    stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
    await conn.execute(stmt, rows)


class BaseEventProcessor:
    """
    Base class for category processors.

    Subclasses implement write(); process() wraps it in one
    transaction for the whole batch.
    """

    category: str = ""

    def __init__(self) -> None:
        self.logger = logger.bind(processor=self.__class__.__name__)

    def select(self, events: Sequence[HeliusEvent]) -> list[HeliusEvent]:
        """Events this processor stores; all of them by default."""
        return list(events)

    async def write(
        self, conn: AsyncConnection, events: Sequence[HeliusEvent]
    ) -> int:
        """
        Write events inside the caller's transaction.

        Args:
            conn: Connection with an open transaction
            events: Validated events

        Returns:
            Number of events handled by this processor
        """
        raise NotImplementedError

    async def process(
        self, events: Sequence[HeliusEvent], engine: AsyncEngine
    ) -> int:
        """
        Write a batch in its own transaction.

        Any row error rolls back the whole batch and propagates.

        Args:
            events: Validated events
            engine: Target database engine

        Returns:
            Number of events handled
        """
        async with engine.begin() as conn:
            return await self.write(conn, events)
