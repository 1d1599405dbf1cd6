"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.database_connection import DatabaseConnection
from app.models.enums import (
    ConnectionStatus,
    EventCategory,
    JobAction,
    JobStatus,
    WebhookLogStatus,
    WebhookStatus,
)
from app.models.indexing_job import IndexingJob
from app.models.webhook import Webhook
from app.models.webhook_log import WebhookLog


__all__ = [
    "Base",
    "ConnectionStatus",
    "DatabaseConnection",
    "EventCategory",
    "IndexingJob",
    "JobAction",
    "JobStatus",
    "Webhook",
    "WebhookLog",
    "WebhookLogStatus",
    "WebhookStatus",
]
