"""
Job Processor Service.

State machine of indexing jobs: starting jobs and registering their
webhooks, manual transitions, delivery progress, crash recovery with
exponential backoff, failed-job cleanup and webhook reconciliation.
"""

from .constants import (
    ALLOWED_TRANSITIONS,
    IN_FLIGHT_STATUSES,
    PROCESSABLE_STATUSES,
    STARTABLE_STATUSES,
    TERMINAL_STATUSES,
    StartOutcome,
    can_transition,
    validate_transition,
)
from .core import JobProcessor
from .lifecycle_mixin import serialize_job

__all__ = [
    "ALLOWED_TRANSITIONS",
    "IN_FLIGHT_STATUSES",
    "JobProcessor",
    "PROCESSABLE_STATUSES",
    "STARTABLE_STATUSES",
    "StartOutcome",
    "TERMINAL_STATUSES",
    "can_transition",
    "serialize_job",
    "validate_transition",
]
