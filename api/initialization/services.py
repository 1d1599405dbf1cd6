"""
API Initialization - Services Module.

Module: services.py
Validates environment variables and builds the
service container.
"""

from loguru import logger
from redis.asyncio import Redis

from app.config.database import async_session_maker
from app.config.settings import settings
from app.services.container import ServiceContainer, build_services
from app.utils.redis_utils import connect_redis


def validate_environment() -> None:
    """Validate critical environment variables."""
    if not settings.helius_api_key:
        logger.error(
            "HELIUS_API_KEY is not configured. "
            "Jobs will fail to register webhooks."
        )
    if not settings.cron_secret:
        logger.warning("CRON_SECRET is not configured, cron endpoints are disabled")
    if not settings.encryption_key:
        logger.warning(
            "ENCRYPTION_KEY is not configured. "
            "Target database passwords are read as plaintext (DEV ONLY)."
        )
    if settings.public_base_url.startswith("http://localhost"):
        logger.warning(
            f"PUBLIC_BASE_URL is {settings.public_base_url}; "
            "Helius cannot deliver to a local address"
        )


def initialize_all_services(redis_client: Redis | None) -> ServiceContainer:
    """Validate the environment and build the service container."""
    validate_environment()
    return build_services(async_session_maker, settings, redis_client=redis_client)
