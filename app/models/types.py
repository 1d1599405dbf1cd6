"""
Standard type definitions for database models.

Provides consistent column types across all models.
"""

from sqlalchemy import JSON, DECIMAL
from sqlalchemy.dialects.postgresql import JSONB

# JSON document column
# JSONB on PostgreSQL (indexable), plain JSON elsewhere (tests on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Token amounts and NFT prices as reported by the provider
# Precision: 38 digits total, 9 after decimal point (lamports)
TokenAmountType = DECIMAL(38, 9)
