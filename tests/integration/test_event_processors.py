"""Integration tests for category processors on a SQLite target database."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from app.schemas.events import parse_delivery
from app.services.event_processors import (
    BaseEventProcessor,
    EventProcessorRegistry,
    TransactionProcessor,
    target_metadata,
)
from app.services.event_processors.tables import (
    account_activities,
    nft_events,
    program_interactions,
    token_transfers,
    transactions,
)


ALL_CATEGORIES = {"transactions": True, "nft_events": True, "token_transfers": True}


@pytest_asyncio.fixture
async def engine(target_engine):
    async with target_engine.begin() as conn:
        await conn.run_sync(target_metadata.create_all)
    return target_engine


async def count(engine, table) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(table))).scalar()


def events_from(raw_events):
    [envelope] = parse_delivery({"webhookId": "hw-1", "events": raw_events})
    return envelope.events


@pytest.fixture
def mixed_events(make_event):
    return events_from([
        make_event("tx-1", slot=10),
        make_event(
            "nft-1",
            slot=11,
            type="NFT",
            description="NFT Mint",
            nft={"mint": "mint1", "owner": "owner1"},
        ),
        make_event(
            "tok-1",
            slot=12,
            type="TOKEN",
            tokenTransfers=[
                {"mint": "m1", "fromUserAccount": "a", "toUserAccount": "b", "tokenAmount": 5},
                {"mint": "m2", "fromUserAccount": "b", "toUserAccount": "a", "tokenAmount": 7},
            ],
        ),
    ])


class TestEventProcessors:
    """Tests for transactional, idempotent writes."""

    @pytest.mark.asyncio
    async def test_dispatch_writes_enabled_categories(self, engine, mixed_events):
        counts = await EventProcessorRegistry().dispatch(mixed_events, engine, ALL_CATEGORIES)

        assert counts == {"transactions": 3, "nft_events": 1, "token_transfers": 1}
        assert await count(engine, transactions) == 3
        assert await count(engine, program_interactions) == 3
        assert await count(engine, account_activities) == 6
        assert await count(engine, nft_events) == 1
        assert await count(engine, token_transfers) == 2

    @pytest.mark.asyncio
    async def test_replay_is_noop(self, engine, mixed_events):
        """Writing the same delivery twice leaves one row per key."""
        registry = EventProcessorRegistry()

        await registry.dispatch(mixed_events, engine, ALL_CATEGORIES)
        await registry.dispatch(mixed_events, engine, ALL_CATEGORIES)

        assert await count(engine, transactions) == 3
        assert await count(engine, account_activities) == 6
        assert await count(engine, token_transfers) == 2

    @pytest.mark.asyncio
    async def test_duplicates_within_batch(self, engine, make_event):
        events = events_from([make_event("dup", slot=1), make_event("dup", slot=1)])

        await TransactionProcessor().process(events, engine)

        assert await count(engine, transactions) == 1

    @pytest.mark.asyncio
    async def test_disabled_categories_skipped(self, engine, mixed_events):
        counts = await EventProcessorRegistry().dispatch(
            mixed_events, engine, {"transactions": False, "nft_events": True}
        )

        assert counts == {"nft_events": 1}
        assert await count(engine, transactions) == 0

    @pytest.mark.asyncio
    async def test_stored_values(self, engine, mixed_events):
        await EventProcessorRegistry().dispatch(mixed_events, engine, ALL_CATEGORIES)

        async with engine.connect() as conn:
            nft = (await conn.execute(select(nft_events))).mappings().one()
            legs = (
                await conn.execute(select(token_transfers).order_by(token_transfers.c.leg_index))
            ).mappings().all()

        assert nft["type"] == "mint"
        assert nft["mint"] == "mint1"
        assert [leg["type"] for leg in legs] == ["swap", "swap"]
        assert [leg["from_address"] for leg in legs] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failure_rolls_back_whole_delivery(self, engine, mixed_events):
        """A failing category leaves no rows from any category."""

        class ExplodingProcessor(BaseEventProcessor):
            category = "token_transfers"

            async def write(self, conn, events):
                raise RuntimeError("disk full")

        registry = EventProcessorRegistry([TransactionProcessor(), ExplodingProcessor()])

        with pytest.raises(RuntimeError):
            await registry.dispatch(mixed_events, engine, ALL_CATEGORIES)

        assert await count(engine, transactions) == 0
        assert await count(engine, program_interactions) == 0
