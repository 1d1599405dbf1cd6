"""
Middlewares.

API middlewares for request processing.
"""

from api.middlewares.error_handler import error_middleware, error_response


__all__ = [
    "error_middleware",
    "error_response",
]
