"""
API Initialization - Application Module.

Module: application.py
Builds the aiohttp application around a service container.
"""

from aiohttp import web

from api.handlers.common import (
    BACKGROUND_TASKS_KEY,
    LOCK_KEY,
    SERVICES_KEY,
    SETTINGS_KEY,
)
from api.initialization.routes import register_all_routes
from api.initialization.shutdown import shutdown_handler
from api.middlewares import error_middleware
from app.config.settings import Settings
from app.services.container import ServiceContainer
from app.utils.distributed_lock import DistributedLock


# Deliveries are small; anything larger is rejected before parsing
MAX_BODY_SIZE = 5 * 1024 * 1024


def create_app(
    services: ServiceContainer,
    settings: Settings,
    lock: DistributedLock | None = None,
) -> web.Application:
    """
    Create the API application.

    Args:
        services: Service container
        settings: Application settings
        lock: Distributed lock for cron triggers (process-local if None)

    Returns:
        Configured application
    """
    app = web.Application(
        middlewares=[error_middleware],
        client_max_size=MAX_BODY_SIZE,
    )
    app[SERVICES_KEY] = services
    app[SETTINGS_KEY] = settings
    app[LOCK_KEY] = lock or DistributedLock()
    app[BACKGROUND_TASKS_KEY] = set()

    register_all_routes(app)
    app.on_shutdown.append(shutdown_handler)
    return app
