"""
Webhook delivery handlers.

Module: webhooks.py
Inbound Helius deliveries and delivery log access.
"""

from aiohttp import web

from api.handlers.common import get_services, path_int, query_int, require_user_id
from app.config.constants import WEBHOOK_LOGS_DEFAULT_LIMIT


async def helius_webhook_handler(request: web.Request) -> web.Response:
    """
    POST /api/webhooks/helius

    The raw body is passed through untouched; the signature covers the
    exact bytes received.
    """
    services = get_services(request)
    body = await request.read()
    result = await services.receiver.receive(body, request.headers)
    return web.json_response(result)


async def webhook_logs_handler(request: web.Request) -> web.Response:
    """GET /api/webhooks/{webhook_id}/logs"""
    services = get_services(request)
    user_id = require_user_id(request)
    webhook_id = path_int(request, "webhook_id")
    limit = query_int(request, "limit", WEBHOOK_LOGS_DEFAULT_LIMIT)

    logs = await services.job_service.list_webhook_logs(webhook_id, user_id, limit)
    return web.json_response({"success": True, "logs": logs})
