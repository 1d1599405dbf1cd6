"""
Health check handlers.

Module: health.py
Liveness, readiness (product database reachable) and a health summary.
"""

import asyncio

from aiohttp import web
from loguru import logger
from sqlalchemy import text

from api.handlers.common import BACKGROUND_TASKS_KEY, get_services


DB_CHECK_TIMEOUT = 3.0


async def _database_ok(request: web.Request) -> bool:
    services = get_services(request)
    try:
        async with services.session_maker() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")), timeout=DB_CHECK_TIMEOUT
            )
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with database status and background work
    """
    database_ok = await _database_ok(request)
    return web.json_response(
        {
            "status": "healthy" if database_ok else "unhealthy",
            "database": database_ok,
            "background_tasks": len(request.app[BACKGROUND_TASKS_KEY]),
        },
        status=200 if database_ok else 503,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Returns:
        JSON response indicating if the API can serve traffic
    """
    if not await _database_ok(request):
        return web.json_response(
            {
                "status": "not_ready",
                "ready": False,
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "ready",
            "ready": True,
        }
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """
    Liveness check endpoint.

    Returns:
        JSON response indicating if the process is alive
    """
    return web.json_response(
        {
            "status": "alive",
            "alive": True,
        }
    )
