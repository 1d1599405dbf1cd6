"""
Target database tables.

Rows written into user-supplied databases. Created on first use in
each target database.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB


target_metadata = MetaData()

# Store SQL NULL (not JSON null) for absent values
TargetJSON = JSON(none_as_null=True).with_variant(
    JSONB(none_as_null=True), "postgresql"
)

transactions = Table(
    "transactions",
    target_metadata,
    Column("signature", String(128), primary_key=True),
    Column("slot", BigInteger, nullable=False),
    Column("error", TargetJSON, nullable=True),
    Column("fee", BigInteger, nullable=False),
    Column("logs", TargetJSON, nullable=False),
    Column("program_ids", TargetJSON, nullable=False),
    Column("accounts", TargetJSON, nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

program_interactions = Table(
    "program_interactions",
    target_metadata,
    Column(
        "transaction_signature",
        String(128),
        ForeignKey("transactions.signature"),
        primary_key=True,
    ),
    Column("program_id", String(64), primary_key=True, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

account_activities = Table(
    "account_activities",
    target_metadata,
    Column(
        "transaction_signature",
        String(128),
        ForeignKey("transactions.signature"),
        primary_key=True,
    ),
    Column("account_address", String(64), primary_key=True, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

nft_events = Table(
    "nft_events",
    target_metadata,
    Column("signature", String(128), primary_key=True),
    Column("type", String(20), nullable=False),
    Column("mint", String(64), nullable=False, index=True),
    Column("owner", String(64), nullable=True, index=True),
    Column("price", Numeric(38, 9), nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# One row per transfer leg; a swap stores every leg
token_transfers = Table(
    "token_transfers",
    target_metadata,
    Column("signature", String(128), primary_key=True),
    Column("leg_index", Integer, primary_key=True, default=0),
    Column("type", String(20), nullable=False),
    Column("mint", String(64), nullable=False, index=True),
    Column("from_address", String(64), nullable=False, index=True),
    Column("to_address", String(64), nullable=False, index=True),
    Column("amount", Numeric(38, 9), nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
