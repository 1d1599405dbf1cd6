"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on DateTime(timezone=True) columns; all stored
    values are UTC, so a naive value is interpreted as UTC.

    Args:
        value: Datetime or None

    Returns:
        Timezone-aware datetime or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_unix_seconds(timestamp: int | float) -> datetime:
    """
    Convert a provider Unix timestamp (seconds) to an aware datetime.

    Args:
        timestamp: Seconds since epoch

    Returns:
        Datetime in UTC
    """
    return datetime.fromtimestamp(timestamp, tz=UTC)


def isoformat_or_none(value: datetime | None) -> str | None:
    """Serialize a datetime for JSON responses."""
    value = ensure_utc(value)
    return value.isoformat() if value else None
