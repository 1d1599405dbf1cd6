"""
Token transfer processor.
"""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncConnection

from app.models.enums import EventCategory
from app.schemas.events import HeliusEvent, TokenEvent
from app.services.event_processors.base import (
    BaseEventProcessor,
    dedupe_rows,
    insert_ignore,
)
from app.services.event_processors.tables import token_transfers
from app.utils.datetime_utils import from_unix_seconds


class TokenTransferProcessor(BaseEventProcessor):
    """
    Writes TOKEN-tagged events to token_transfers.

    Each transfer leg is its own row keyed by (signature, leg_index),
    so both sides of a swap are kept.
    """

    category = EventCategory.TOKEN_TRANSFERS.value

    def select(self, events: Sequence[HeliusEvent]) -> list[HeliusEvent]:
        return [event for event in events if isinstance(event, TokenEvent)]

    async def write(
        self, conn: AsyncConnection, events: Sequence[HeliusEvent]
    ) -> int:
        events = self.select(events)
        rows = []
        for event in events:
            timestamp = from_unix_seconds(event.timestamp)
            for leg_index, leg in enumerate(event.token_transfers):
                rows.append({
                    "signature": event.signature,
                    "leg_index": leg_index,
                    "type": event.transfer_type,
                    "mint": leg.mint,
                    "from_address": leg.from_user_account,
                    "to_address": leg.to_user_account,
                    "amount": leg.token_amount,
                    "timestamp": timestamp,
                })

        await insert_ignore(
            conn,
            token_transfers,
            dedupe_rows(rows, ["signature", "leg_index"]),
            ["signature", "leg_index"],
        )
        return len(events)
