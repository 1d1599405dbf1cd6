"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import BaseService, log_operation

# Core Services
from app.services.container import ServiceContainer, build_services
from app.services.event_processors import EventProcessorRegistry
from app.services.job_notifier import JobNotifier
from app.services.job_processor import JobProcessor, StartOutcome
from app.services.job_scheduler_service import JobSchedulerService
from app.services.job_service import JobService
from app.services.rate_limiter import RateLimiter
from app.services.target_database_service import TargetDatabaseService
from app.services.webhook_receiver import WebhookReceiver
from app.services.webhook_registrar import ReconcileResult, WebhookRegistrar


__all__ = [
    # Base
    "BaseService",
    "log_operation",
    # Core
    "EventProcessorRegistry",
    "JobNotifier",
    "JobProcessor",
    "JobSchedulerService",
    "JobService",
    "RateLimiter",
    "ReconcileResult",
    "ServiceContainer",
    "StartOutcome",
    "TargetDatabaseService",
    "WebhookReceiver",
    "WebhookRegistrar",
    "build_services",
]
