"""
Event processors.

One transactional, idempotent writer per data category, plus a
registry that dispatches a delivery to the categories a job enabled.
"""

from collections.abc import Mapping, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from app.schemas.events import HeliusEvent
from app.services.event_processors.base import BaseEventProcessor
from app.services.event_processors.nft_events import NftEventProcessor
from app.services.event_processors.tables import target_metadata
from app.services.event_processors.token_transfers import TokenTransferProcessor
from app.services.event_processors.transactions import TransactionProcessor


class EventProcessorRegistry:
    """Maps category names to processors."""

    def __init__(self, processors: Sequence[BaseEventProcessor] | None = None) -> None:
        if processors is None:
            processors = [
                TransactionProcessor(),
                NftEventProcessor(),
                TokenTransferProcessor(),
            ]
        self._processors = {processor.category: processor for processor in processors}

    def for_categories(self, categories: Mapping[str, bool]) -> list[BaseEventProcessor]:
        """Processors of the enabled categories, in registration order."""
        enabled = [
            processor
            for category, processor in self._processors.items()
            if categories.get(category)
        ]
        unknown = [
            name for name, on in categories.items()
            if on and name not in self._processors
        ]
        if unknown:
            logger.warning(f"No processor for categories: {', '.join(unknown)}")
        return enabled

    async def dispatch(
        self,
        events: Sequence[HeliusEvent],
        engine: AsyncEngine,
        categories: Mapping[str, bool],
    ) -> dict[str, int]:
        """
        Write a delivery for every enabled category in one transaction.

        Args:
            events: Validated events
            engine: Target database engine
            categories: Job category selection

        Returns:
            Events handled per category
        """
        processors = self.for_categories(categories)
        counts: dict[str, int] = {}
        if not processors or not events:
            return counts

        async with engine.begin() as conn:
            for processor in processors:
                counts[processor.category] = await processor.write(conn, events)
        return counts


__all__ = [
    "BaseEventProcessor",
    "EventProcessorRegistry",
    "NftEventProcessor",
    "TokenTransferProcessor",
    "TransactionProcessor",
    "target_metadata",
]
