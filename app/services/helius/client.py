"""
Helius API client.

Thin aiohttp wrapper over the webhook management endpoints. Every call
takes a token from the shared RateLimiter, runs through the circuit
breaker and carries its own total timeout.
"""

from typing import Any

import aiohttp
from loguru import logger

from app.services.helius.circuit_breaker import CircuitBreaker
from app.services.helius.constants import WEBHOOK_TYPE_ENHANCED, WEBHOOKS_PATH
from app.services.rate_limiter import HELIUS_SERVICE, RateLimiter
from app.utils.exceptions import RateLimitedError, UpstreamError


class HeliusClient:
    """Client for Helius webhook subscriptions."""

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiter,
        base_url: str = "https://api.helius.xyz",
        timeout: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            api_key: Helius API key
            rate_limiter: Shared rate limiter ("helius" bucket)
            base_url: API base URL
            timeout: Total timeout per request (seconds)
            circuit_breaker: Breaker for upstream failures
            session: Optional externally managed aiohttp session
        """
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(HELIUS_SERVICE)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the owned aiohttp session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        if not self.api_key:
            raise UpstreamError("Helius API key is not configured")

        if not await self.rate_limiter.wait_for_token(HELIUS_SERVICE):
            raise RateLimitedError("Helius API rate limit exceeded")

        url = f"{self.base_url}{path}"

        async def _send() -> Any:
            session = await self._get_session()
            async with session.request(
                method,
                url,
                params={"api-key": self.api_key},
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            ) as response:
                if allow_not_found and response.status == 404:
                    return None
                if response.status >= 400:
                    body = await response.text()
                    raise UpstreamError(
                        f"Helius {method} {path} failed: HTTP {response.status} {body[:200]}",
                        upstream_status=response.status,
                    )
                if response.status == 204:
                    return {}
                text = await response.text()
                if not text:
                    return {}
                return await response.json(content_type=None)

        try:
            return await self.circuit_breaker.call(_send)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise UpstreamError(f"Helius {method} {path} failed: {e}") from e

    async def create_webhook(
        self,
        webhook_url: str,
        account_addresses: list[str],
        transaction_types: list[str],
        auth_header: str,
    ) -> dict[str, Any]:
        """
        Create an enhanced webhook subscription.

        Args:
            webhook_url: Delivery URL
            account_addresses: Accounts to watch
            transaction_types: Helius transaction types
            auth_header: Secret echoed back by Helius on each delivery

        Returns:
            Created webhook document (contains "webhookID")
        """
        payload = {
            "webhookURL": webhook_url,
            "transactionTypes": transaction_types,
            "accountAddresses": account_addresses,
            "webhookType": WEBHOOK_TYPE_ENHANCED,
            "authHeader": auth_header,
        }
        data = await self._request("POST", WEBHOOKS_PATH, payload)
        webhook_id = self.extract_webhook_id(data)
        if not webhook_id:
            raise UpstreamError("Helius did not return a webhook ID")

        logger.info(f"Helius webhook created: {webhook_id} -> {webhook_url}")
        return data

    async def list_webhooks(self) -> list[dict[str, Any]]:
        """
        List all webhooks registered under the API key.

        Returns:
            Webhook documents
        """
        data = await self._request("GET", WEBHOOKS_PATH)
        if isinstance(data, dict):
            data = data.get("webhooks") or []
        if not isinstance(data, list):
            raise UpstreamError("Unexpected Helius webhook list response")
        return [item for item in data if isinstance(item, dict)]

    async def delete_webhook(self, webhook_id: str) -> bool:
        """
        Delete a webhook.

        Args:
            webhook_id: Helius webhook ID

        Returns:
            True if deleted, False if it did not exist upstream
        """
        result = await self._request(
            "DELETE", f"{WEBHOOKS_PATH}/{webhook_id}", allow_not_found=True
        )
        if result is None:
            logger.info(f"Helius webhook {webhook_id} already deleted upstream")
            return False

        logger.info(f"Helius webhook deleted: {webhook_id}")
        return True

    @staticmethod
    def extract_webhook_id(data: Any) -> str | None:
        """Read the subscription ID from a Helius webhook document."""
        if not isinstance(data, dict):
            return None
        value = data.get("webhookID") or data.get("webhookId") or data.get("id")
        return str(value) if value else None
