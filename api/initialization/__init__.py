"""
API Initialization Module.

This module contains all initialization logic split into focused modules:
- logging: Logger configuration
- services: Service container and Redis setup
- routes: Route registration
- application: aiohttp application factory
- shutdown: Graceful shutdown handler
"""

__all__ = []
