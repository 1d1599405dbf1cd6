"""
Global Error Handler Middleware.

Maps engine errors to their HTTP status codes. Unexpected exceptions
are logged with their traceback and returned as a generic 500 - clients
never see technical details.
"""

from aiohttp import web
from loguru import logger

from app.utils.exceptions import IndexerError, is_client_error


def error_response(status: int, message: str) -> web.Response:
    """Uniform error body."""
    return web.json_response({"success": False, "error": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Execute middleware."""
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return error_response(e.status, e.reason)
    except IndexerError as e:
        if is_client_error(e):
            logger.info(f"{request.method} {request.path} -> {e.status_code}: {e.message}")
        else:
            logger.error(
                f"{request.method} {request.path} failed: {e.message}",
                extra={"error_type": type(e).__name__},
            )
        return error_response(e.status_code, e.message)
    except Exception as e:
        logger.exception(f"Unhandled exception on {request.method} {request.path}: {e}")
        return error_response(500, "Internal server error")
