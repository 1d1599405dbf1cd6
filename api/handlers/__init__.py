"""
Handlers.

HTTP request handlers of the indexing API.
"""

from api.handlers import cron, health, jobs, webhooks


__all__ = [
    "cron",
    "health",
    "jobs",
    "webhooks",
]
