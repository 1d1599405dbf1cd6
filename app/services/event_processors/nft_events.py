"""
NFT event processor.
"""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncConnection

from app.models.enums import EventCategory
from app.schemas.events import HeliusEvent, NftEvent
from app.services.event_processors.base import (
    BaseEventProcessor,
    dedupe_rows,
    insert_ignore,
)
from app.services.event_processors.tables import nft_events
from app.utils.datetime_utils import from_unix_seconds


class NftEventProcessor(BaseEventProcessor):
    """Writes NFT-tagged events to nft_events, keyed by signature."""

    category = EventCategory.NFT_EVENTS.value

    def select(self, events: Sequence[HeliusEvent]) -> list[HeliusEvent]:
        return [event for event in events if isinstance(event, NftEvent)]

    async def write(
        self, conn: AsyncConnection, events: Sequence[HeliusEvent]
    ) -> int:
        events = self.select(events)
        rows = [
            {
                "signature": event.signature,
                "type": event.nft_type,
                "mint": event.nft.mint if event.nft else "",
                "owner": event.nft.owner if event.nft else None,
                "price": event.amount,
                "timestamp": from_unix_seconds(event.timestamp),
            }
            for event in events
        ]
        await insert_ignore(
            conn, nft_events, dedupe_rows(rows, ["signature"]), ["signature"]
        )
        return len(events)
