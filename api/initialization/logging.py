"""
API Initialization - Logging Module.

Module: logging.py
Configures loguru logger for the API process.
Sets up log rotation and retention policies.
"""

from loguru import logger


def setup_logging(name: str = "api") -> None:
    """Configure logger with file rotation."""
    logger.add(
        f"logs/{name}.log",
        rotation="1 day",
        retention="7 days",
        level="INFO",
        encoding="utf-8",
    )

    logger.info(f"Starting chain-indexer {name}...")
