"""
API main entry point.

Runs the aiohttp server: webhook deliveries, the job control API, cron
triggers and health probes.

Initialization is delegated to modular components in the
api/initialization/ directory.
"""

import asyncio
import signal
import sys
from pathlib import Path

from aiohttp import web
from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.database import engine  # noqa: E402
from app.config.settings import settings  # noqa: E402
from app.utils.distributed_lock import DistributedLock  # noqa: E402
from app.utils.redis_utils import connect_redis  # noqa: E402

# Import initialization modules
from api.initialization.application import create_app  # noqa: E402
from api.initialization.logging import setup_logging  # noqa: E402
from api.initialization.services import initialize_all_services  # noqa: E402


async def main() -> None:
    """Initialize and run the API."""
    # Configure logger
    setup_logging("api")

    # Redis backs notifications and cron locks; optional in development
    redis_client = await connect_redis()

    services = initialize_all_services(redis_client)
    app = create_app(services, settings, lock=DistributedLock(redis_client))

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.api_host, settings.api_port)
    await site.start()
    logger.info(f"API listening on {settings.api_host}:{settings.api_port}")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        await runner.cleanup()
        if redis_client:
            await redis_client.aclose()
        await engine.dispose()
        logger.info("Database connections closed")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("API stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"API crashed: {e}")
        sys.exit(1)
