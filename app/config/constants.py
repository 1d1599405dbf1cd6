"""
Application constants.

Centralized constants for the indexing engine.
"""

# ========================================================================
# TIMEOUTS (seconds)
# ========================================================================

DEFAULT_HELIUS_REQUEST_TIMEOUT = 30.0  # Single Helius API call
DEFAULT_JOB_START_TIMEOUT = 45.0  # One start_job inside a scheduler tick
DEFAULT_SCHEDULER_TICK_TIMEOUT = 55.0  # Whole tick, below the cron interval
DEFAULT_EVENT_PROCESSING_TIMEOUT = 60.0  # One delivery batch write

# ========================================================================
# SCHEDULER
# ========================================================================

DEFAULT_SCHEDULER_BATCH_SIZE = 5

# ========================================================================
# RATE LIMITING
# ========================================================================

# Outbound Helius API calls
HELIUS_RATE_LIMIT_MAX_REQUESTS = 10
HELIUS_RATE_LIMIT_WINDOW_MS = 1000

# Inbound deliveries per webhook
WEBHOOK_RATE_LIMIT_MAX_REQUESTS = 60
WEBHOOK_RATE_LIMIT_WINDOW_MS = 60_000

RATE_LIMIT_WAIT_INTERVAL_MS = 100
RATE_LIMIT_DEFAULT_MAX_WAIT_MS = 5000
RATE_LIMIT_MAX_BUCKETS = 10_000  # Oldest buckets are evicted beyond this

# ========================================================================
# JOB BOOKKEEPING
# ========================================================================

CHECKPOINT_INTERVAL_SLOTS = 1000  # Save a checkpoint every N slots
MAX_CHECKPOINTS = 5  # Keep only the most recent checkpoints
WEBHOOK_LOGS_DEFAULT_LIMIT = 50

# ========================================================================
# DISTRIBUTED LOCKS
# ========================================================================

DISTRIBUTED_LOCK_TIMEOUT = 60  # Lock timeout in seconds
DISTRIBUTED_LOCK_BLOCKING_TIMEOUT = 5.0  # Time to wait for lock acquisition

# Lock names shared by the scheduler, dramatiq actors and cron endpoints
LOCK_PROCESS_PENDING_JOBS = "process_pending_jobs"
LOCK_CLEANUP_WEBHOOKS = "cleanup_webhooks"
LOCK_CLEANUP_FAILED_JOBS = "cleanup_failed_jobs"

# ========================================================================
# DRAMATIQ
# ========================================================================

DRAMATIQ_TIME_LIMIT_TICK = 2 * 60 * 1000  # Milliseconds
DRAMATIQ_TIME_LIMIT_CLEANUP = 10 * 60 * 1000
