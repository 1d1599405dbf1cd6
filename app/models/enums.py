"""
Model enums.

Status values stored as strings in the product database.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """Indexing job lifecycle states."""

    INITIALIZING = "initializing"
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WebhookStatus(StrEnum):
    """Local webhook subscription status."""

    ACTIVE = "active"
    DELETED = "deleted"
    ERROR = "error"


class WebhookLogStatus(StrEnum):
    """Delivery outcome recorded in webhook logs."""

    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"


class ConnectionStatus(StrEnum):
    """Target database connection status."""

    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"


class EventCategory(StrEnum):
    """Data categories a job can index."""

    TRANSACTIONS = "transactions"
    NFT_EVENTS = "nft_events"
    TOKEN_TRANSFERS = "token_transfers"


class JobAction(StrEnum):
    """Manual actions accepted by the job control API."""

    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
