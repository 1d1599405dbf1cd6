"""
Job Processor Constants.

Lifecycle transition table and the status groups derived from it.
"""

from enum import StrEnum

from app.models.enums import JobStatus
from app.utils.exceptions import ValidationError


# Every permitted status change; anything else is rejected
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.INITIALIZING: frozenset({
        JobStatus.PENDING,
        JobStatus.RUNNING,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    }),
    JobStatus.PENDING: frozenset({
        JobStatus.RUNNING,
        JobStatus.CANCELLED,
        JobStatus.FAILED,
    }),
    JobStatus.RUNNING: frozenset({
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.PAUSED,
        JobStatus.CANCELLED,
        JobStatus.PENDING,  # crash recovery
    }),
    JobStatus.PAUSED: frozenset({
        JobStatus.RUNNING,
        JobStatus.CANCELLED,
    }),
    JobStatus.FAILED: frozenset({
        JobStatus.PENDING,
        JobStatus.CANCELLED,
    }),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# start_job only acts on these
STARTABLE_STATUSES = frozenset({JobStatus.INITIALIZING, JobStatus.PENDING})

# Deliveries are written for these; others are acknowledged and skipped
PROCESSABLE_STATUSES = frozenset({
    JobStatus.INITIALIZING,
    JobStatus.PENDING,
    JobStatus.RUNNING,
})

# Swept by crash recovery once stale
IN_FLIGHT_STATUSES = frozenset({JobStatus.INITIALIZING, JobStatus.RUNNING})


class StartOutcome(StrEnum):
    """Result of one start_job call."""

    STARTED = "started"
    SKIPPED = "skipped"
    FAILED = "failed"


def can_transition(current: str, target: str) -> bool:
    """Check a status change against the transition table."""
    try:
        return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]
    except ValueError:
        return False


def validate_transition(current: str, target: str) -> None:
    """
    Reject a status change the lifecycle does not allow.

    Args:
        current: Current job status
        target: Requested job status

    Raises:
        ValidationError: If the transition is not allowed
    """
    if not can_transition(current, target):
        raise ValidationError(f"Invalid status transition: {current} -> {target}")
