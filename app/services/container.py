"""
Service container.

Builds the engine's services once per process, wired explicitly. The
API and the background workers each own one container; nothing is
shared through module globals.
"""

from dataclasses import dataclass

from loguru import logger
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import Settings
from app.services.event_processors import EventProcessorRegistry
from app.services.helius import CircuitBreaker, HeliusClient
from app.services.job_notifier import JobNotifier
from app.services.job_processor import JobProcessor
from app.services.job_scheduler_service import JobSchedulerService
from app.services.job_service import JobService
from app.services.rate_limiter import HELIUS_SERVICE, RateLimiter
from app.services.target_database_service import TargetDatabaseService
from app.services.webhook_receiver import WebhookReceiver
from app.services.webhook_registrar import WebhookRegistrar
from app.utils.encryption import EncryptionService


@dataclass
class ServiceContainer:
    """All services of one process."""

    session_maker: async_sessionmaker[AsyncSession]
    rate_limiter: RateLimiter
    helius_client: HeliusClient
    registrar: WebhookRegistrar
    notifier: JobNotifier
    job_processor: JobProcessor
    target_databases: TargetDatabaseService
    processors: EventProcessorRegistry
    receiver: WebhookReceiver
    scheduler: JobSchedulerService
    job_service: JobService

    async def close(self) -> None:
        """Release HTTP sessions and target database pools."""
        await self.helius_client.close()
        await self.target_databases.dispose()
        logger.info("Service container closed")


def build_services(
    session_maker: async_sessionmaker[AsyncSession],
    settings: Settings,
    redis_client: Redis | None = None,
    helius_client: HeliusClient | None = None,
    target_databases: TargetDatabaseService | None = None,
) -> ServiceContainer:
    """
    Wire the services.

    Args:
        session_maker: Product database session factory
        settings: Application settings
        redis_client: Redis client for job update notifications
        helius_client: Prebuilt Helius client (tests)
        target_databases: Prebuilt target database service (tests)

    Returns:
        Service container
    """
    rate_limiter = helius_client.rate_limiter if helius_client else RateLimiter()
    if helius_client is None:
        helius_client = HeliusClient(
            api_key=settings.helius_api_key,
            rate_limiter=rate_limiter,
            base_url=settings.helius_api_url,
            timeout=settings.helius_request_timeout,
            circuit_breaker=CircuitBreaker(HELIUS_SERVICE),
        )

    registrar = WebhookRegistrar(helius_client, settings.public_base_url)
    notifier = JobNotifier(redis_client)
    job_processor = JobProcessor(
        session_maker,
        registrar,
        notifier=notifier,
        max_retries=settings.job_max_retries,
        retry_base_seconds=settings.job_retry_base_seconds,
        stale_minutes=settings.job_stale_minutes,
        failed_retention_days=settings.failed_job_retention_days,
    )

    if target_databases is None:
        target_databases = TargetDatabaseService(
            EncryptionService(settings.encryption_key, settings.environment)
        )
    processors = EventProcessorRegistry()

    receiver = WebhookReceiver(
        session_maker,
        rate_limiter,
        processors,
        target_databases,
        job_processor,
        processing_timeout=settings.event_processing_timeout,
    )
    scheduler = JobSchedulerService(
        session_maker,
        job_processor,
        batch_size=settings.scheduler_batch_size,
        job_start_timeout=settings.job_start_timeout,
    )
    job_service = JobService(session_maker, job_processor, registrar)

    logger.info("Services initialized")
    return ServiceContainer(
        session_maker=session_maker,
        rate_limiter=rate_limiter,
        helius_client=helius_client,
        registrar=registrar,
        notifier=notifier,
        job_processor=job_processor,
        target_databases=target_databases,
        processors=processors,
        receiver=receiver,
        scheduler=scheduler,
        job_service=job_service,
    )
