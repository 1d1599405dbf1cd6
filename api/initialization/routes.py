"""
API Initialization - Routes Module.

Module: routes.py
Registers all HTTP routes.
"""

from aiohttp import web
from loguru import logger

from api.handlers import cron, health, jobs, webhooks


def register_webhook_routes(app: web.Application) -> None:
    """Inbound deliveries and delivery logs."""
    app.router.add_post("/api/webhooks/helius", webhooks.helius_webhook_handler)
    app.router.add_get(
        "/api/webhooks/{webhook_id}/logs", webhooks.webhook_logs_handler
    )


def register_job_routes(app: web.Application) -> None:
    """Job control surface."""
    app.router.add_post("/api/jobs", jobs.create_job_handler)
    app.router.add_get("/api/jobs", jobs.list_jobs_handler)
    app.router.add_get("/api/jobs/{job_id}", jobs.get_job_handler)
    app.router.add_patch("/api/jobs/{job_id}", jobs.update_job_handler)
    app.router.add_delete("/api/jobs/{job_id}", jobs.delete_job_handler)
    app.router.add_post("/api/jobs/{job_id}/retry", jobs.retry_job_handler)


def register_cron_routes(app: web.Application) -> None:
    """Cron triggers."""
    app.router.add_post("/api/cron/process-jobs", cron.process_jobs_handler)
    app.router.add_post("/api/cron/cleanup-webhooks", cron.cleanup_webhooks_handler)


def register_health_routes(app: web.Application) -> None:
    """Health probes."""
    app.router.add_get("/health", health.health_handler)
    app.router.add_get("/readiness", health.readiness_handler)
    app.router.add_get("/liveness", health.liveness_handler)


def register_all_routes(app: web.Application) -> None:
    """Register all routes."""
    register_webhook_routes(app)
    register_job_routes(app)
    register_cron_routes(app)
    register_health_routes(app)
    logger.info(f"Registered {len(app.router.routes())} routes")
