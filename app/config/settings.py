"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.constants import (
    DEFAULT_EVENT_PROCESSING_TIMEOUT,
    DEFAULT_HELIUS_REQUEST_TIMEOUT,
    DEFAULT_JOB_START_TIMEOUT,
    DEFAULT_SCHEDULER_BATCH_SIZE,
    DEFAULT_SCHEDULER_TICK_TIMEOUT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False
    database_pool_size: int = Field(default=10, gt=0)
    database_max_overflow: int = Field(default=20, ge=0)

    # Environment
    environment: str = "development"
    debug: bool = False

    # Encryption (target database passwords)
    encryption_key: str | None = None

    # Redis (dramatiq broker, distributed locks, job update channel)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Helius
    helius_api_key: str = ""
    helius_api_url: str = "https://api.helius.xyz"
    helius_request_timeout: float = Field(
        default=DEFAULT_HELIUS_REQUEST_TIMEOUT,
        gt=0,
        description="Total timeout for a single Helius API call (seconds)"
    )

    # Public URL the upstream provider delivers webhooks to
    public_base_url: str = "http://localhost:8080"

    # Cron endpoints
    cron_secret: str | None = None

    # HTTP API
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8080, gt=0, lt=65536)
    health_check_port: int = Field(
        default=8081,
        gt=0,
        lt=65536,
        description="Port for the scheduler health check server"
    )

    # Scheduler tick
    scheduler_batch_size: int = Field(
        default=DEFAULT_SCHEDULER_BATCH_SIZE,
        gt=0,
        description="Pending jobs started per scheduler tick"
    )
    scheduler_interval_seconds: int = Field(
        default=60,
        gt=0,
        description="Interval between scheduler ticks"
    )
    scheduler_tick_timeout: float = Field(
        default=DEFAULT_SCHEDULER_TICK_TIMEOUT,
        gt=0,
        description="Wall-clock budget for one scheduler tick (seconds)"
    )

    # Job lifecycle
    job_start_timeout: float = Field(
        default=DEFAULT_JOB_START_TIMEOUT,
        gt=0,
        description="Timeout for starting a single job (seconds)"
    )
    job_stale_minutes: int = Field(
        default=30,
        gt=0,
        description="Running jobs not updated for this long are recovered"
    )
    job_max_retries: int = Field(
        default=3,
        ge=0,
        description="Recoveries allowed before a job is marked failed"
    )
    job_retry_base_seconds: int = Field(
        default=60,
        gt=0,
        description="Base delay for exponential retry backoff"
    )
    failed_job_retention_days: int = Field(
        default=7,
        gt=0,
        description="Failed jobs older than this are deleted"
    )

    # Delivery processing
    event_processing_timeout: float = Field(
        default=DEFAULT_EVENT_PROCESSING_TIMEOUT,
        gt=0,
        description="Timeout for writing one delivery to the target database"
    )
    webhook_cleanup_interval_minutes: int = Field(
        default=60,
        gt=0,
        description="Interval between upstream webhook reconciliations"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_encryption(self) -> 'Settings':
        """Validate encryption configuration in production."""
        if self.environment == 'production':
            if not self.encryption_key:
                raise ValueError(
                    "ENCRYPTION_KEY is required in production environment. "
                    "Target database passwords are stored encrypted. "
                    "Generate a key with: python -c 'from cryptography.fernet import Fernet; "
                    "print(Fernet.generate_key().decode())'"
                )
        return self

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError(
                    'DEBUG must be False in production environment. '
                    'Set DEBUG=false in your .env file.'
                )

            if not self.helius_api_key:
                raise ValueError(
                    'HELIUS_API_KEY is required in production. '
                    'Set it in your .env file.'
                )

            if not self.cron_secret or len(self.cron_secret) < 16:
                raise ValueError(
                    'CRON_SECRET must be at least 16 characters in '
                    'production. Generate one with: openssl rand -hex 32'
                )

            if self.public_base_url.startswith('http://localhost'):
                logger.warning(
                    'PUBLIC_BASE_URL points to localhost. '
                    'Upstream webhook deliveries will not reach this service.'
                )

        return self

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith((
            'postgresql://',
            'postgresql+asyncpg://',
            'sqlite+aiosqlite://',
        )):
            raise ValueError(
                'DATABASE_URL must start with postgresql://, '
                'postgresql+asyncpg:// or sqlite+aiosqlite://'
            )
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    @field_validator('public_base_url', 'helius_api_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs."""
        return v.rstrip('/')


# Global settings instance
settings = Settings()
