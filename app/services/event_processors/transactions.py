"""
Transaction processor.

Stores every event as a transaction row, fanning out program
interaction and account activity rows in the same transaction.
"""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncConnection

from app.models.enums import EventCategory
from app.schemas.events import HeliusEvent
from app.services.event_processors.base import (
    BaseEventProcessor,
    dedupe_rows,
    insert_ignore,
)
from app.services.event_processors.tables import (
    account_activities,
    program_interactions,
    transactions,
)
from app.utils.datetime_utils import from_unix_seconds


class TransactionProcessor(BaseEventProcessor):
    """Writes transactions, program_interactions and account_activities."""

    category = EventCategory.TRANSACTIONS.value

    async def write(
        self, conn: AsyncConnection, events: Sequence[HeliusEvent]
    ) -> int:
        events = self.select(events)
        if not events:
            return 0

        transaction_rows = []
        interaction_rows = []
        activity_rows = []

        for event in events:
            transaction_rows.append({
                "signature": event.signature,
                "slot": event.slot,
                "error": event.err,
                "fee": event.fee,
                "logs": list(event.logs),
                "program_ids": list(event.program_ids),
                "accounts": list(event.accounts),
                "timestamp": from_unix_seconds(event.timestamp),
            })
            interaction_rows.extend(
                {"transaction_signature": event.signature, "program_id": program_id}
                for program_id in event.program_ids
            )
            activity_rows.extend(
                {"transaction_signature": event.signature, "account_address": account}
                for account in event.accounts
            )

        await insert_ignore(
            conn,
            transactions,
            dedupe_rows(transaction_rows, ["signature"]),
            ["signature"],
        )
        await insert_ignore(
            conn,
            program_interactions,
            dedupe_rows(interaction_rows, ["transaction_signature", "program_id"]),
            ["transaction_signature", "program_id"],
        )
        await insert_ignore(
            conn,
            account_activities,
            dedupe_rows(activity_rows, ["transaction_signature", "account_address"]),
            ["transaction_signature", "account_address"],
        )

        self.logger.debug(
            f"Stored {len(transaction_rows)} transactions, "
            f"{len(interaction_rows)} program interactions, "
            f"{len(activity_rows)} account activities"
        )
        return len(events)
