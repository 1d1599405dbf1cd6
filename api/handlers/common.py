"""
Handler helpers.

Application keys, caller identity and request parsing shared by the
HTTP handlers.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from aiohttp import web
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.config.settings import Settings
from app.services.container import ServiceContainer
from app.utils.distributed_lock import DistributedLock
from app.utils.exceptions import AuthError, ValidationError


ModelT = TypeVar("ModelT", bound=BaseModel)

USER_ID_HEADER = "X-User-Id"

SERVICES_KEY = web.AppKey("services", ServiceContainer)
SETTINGS_KEY = web.AppKey("settings", Settings)
LOCK_KEY = web.AppKey("lock", DistributedLock)
BACKGROUND_TASKS_KEY = web.AppKey("background_tasks", set)


def get_services(request: web.Request) -> ServiceContainer:
    """Service container of the running application."""
    return request.app[SERVICES_KEY]


def require_user_id(request: web.Request) -> str:
    """
    Caller identity set by the gateway.

    Raises:
        AuthError: If the header is missing
    """
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise AuthError(f"Missing {USER_ID_HEADER} header")
    return user_id


def path_int(request: web.Request, name: str) -> int:
    """Integer path parameter, ValidationError otherwise."""
    value = request.match_info.get(name, "")
    if not value.isdigit():
        raise ValidationError(f"Invalid {name}: {value!r}")
    return int(value)


def query_int(request: web.Request, name: str, default: int) -> int:
    """Integer query parameter with a default."""
    value = request.query.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e


async def read_json(request: web.Request) -> Any:
    """
    Decode a JSON request body.

    Raises:
        ValidationError: If the body is not valid JSON
    """
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationError("Request body is not valid JSON") from e


def parse_body(model: type[ModelT], data: Any) -> ModelT:
    """
    Validate a decoded body against a request schema.

    Args:
        model: Pydantic model
        data: Decoded JSON

    Returns:
        Model instance

    Raises:
        ValidationError: With the first validation problem
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        message = f"{location}: {first['msg']}" if location else first["msg"]
        raise ValidationError(f"Invalid request: {message}") from e


def spawn_background(
    app: web.Application, coro: Coroutine[Any, Any, Any], name: str
) -> asyncio.Task:
    """
    Run a coroutine after the response, tracked for graceful shutdown.

    Args:
        app: Application owning the task set
        coro: Coroutine to run
        name: Task name for logs

    Returns:
        Created task
    """
    tasks: set[asyncio.Task] = app[BACKGROUND_TASKS_KEY]
    task = asyncio.create_task(coro, name=name)
    tasks.add(task)

    def _on_done(done: asyncio.Task) -> None:
        """Log errors from background task."""
        tasks.discard(done)
        if done.cancelled():
            return
        exc = done.exception()
        if exc:
            logger.error(f"Background task {name} failed: {exc!r}")

    task.add_done_callback(_on_done)
    return task
