"""Helius webhook provider integration."""

from app.services.helius.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from app.services.helius.client import HeliusClient


__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "HeliusClient",
]
