"""
Job control handlers.

Module: jobs.py
Create, list, inspect, pause/resume/cancel, retry and delete indexing
jobs. Every route acts on behalf of the X-User-Id caller.
"""

from aiohttp import web
from loguru import logger

from api.handlers.common import (
    get_services,
    parse_body,
    path_int,
    query_int,
    read_json,
    require_user_id,
    spawn_background,
)
from app.schemas.jobs import CreateJobRequest, JobActionRequest


async def create_job_handler(request: web.Request) -> web.Response:
    """
    POST /api/jobs

    The job is returned as initializing; its start (webhook
    registration) runs in the background.
    """
    services = get_services(request)
    user_id = require_user_id(request)
    payload = parse_body(CreateJobRequest, await read_json(request))

    job = await services.job_service.create_job(user_id, payload)
    spawn_background(
        request.app,
        services.job_processor.start_job(job["id"]),
        name=f"start-job-{job['id']}",
    )
    logger.info(f"Job {job['id']} queued for start")
    return web.json_response({"success": True, "job": job}, status=201)


async def list_jobs_handler(request: web.Request) -> web.Response:
    """GET /api/jobs?status=&limit=&offset="""
    services = get_services(request)
    user_id = require_user_id(request)

    result = await services.job_service.list_jobs(
        user_id,
        status=request.query.get("status") or None,
        limit=query_int(request, "limit", 50),
        offset=query_int(request, "offset", 0),
    )
    return web.json_response({"success": True, **result})


async def get_job_handler(request: web.Request) -> web.Response:
    """GET /api/jobs/{job_id}"""
    services = get_services(request)
    user_id = require_user_id(request)
    job_id = path_int(request, "job_id")

    job = await services.job_service.get_job_status(job_id, user_id)
    return web.json_response({"success": True, "job": job})


async def update_job_handler(request: web.Request) -> web.Response:
    """PATCH /api/jobs/{job_id} with {"action": "pause"|"resume"|"cancel"}"""
    services = get_services(request)
    user_id = require_user_id(request)
    job_id = path_int(request, "job_id")
    payload = parse_body(JobActionRequest, await read_json(request))

    job = await services.job_service.apply_action(job_id, user_id, payload.action)
    return web.json_response({"success": True, "job": job})


async def retry_job_handler(request: web.Request) -> web.Response:
    """POST /api/jobs/{job_id}/retry"""
    services = get_services(request)
    user_id = require_user_id(request)
    job_id = path_int(request, "job_id")

    job = await services.job_service.retry_job(job_id, user_id)
    return web.json_response({"success": True, "job": job})


async def delete_job_handler(request: web.Request) -> web.Response:
    """DELETE /api/jobs/{job_id}"""
    services = get_services(request)
    user_id = require_user_id(request)
    job_id = path_int(request, "job_id")

    await services.job_service.delete_job(job_id, user_id)
    return web.json_response({"success": True})
