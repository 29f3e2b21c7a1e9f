"""Outbound HTTP for payment providers and notification channels."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from storefront.api.middleware.error_handler import GatewayUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ProviderResponse:
    """Status and decoded body of a provider call."""

    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def error_message(self, default: str = "Unknown error") -> str:
        """Best-effort human message from a provider error body."""
        if isinstance(self.body, dict):
            for key in ("message", "error_description", "error", "name"):
                value = self.body.get(key)
                if isinstance(value, str) and value:
                    return value
        if isinstance(self.body, str) and self.body:
            return self.body[:200]
        return default


async def request_json(
    method: str,
    url: str,
    *,
    provider: str,
    timeout: float,
    headers: dict[str, str] | None = None,
    json: Any = None,
    data: Any = None,
    auth: aiohttp.BasicAuth | None = None,
) -> ProviderResponse:
    """Send one request and decode the JSON (or text) body.

    Non-2xx responses are returned, not raised; callers decide whether
    the provider rejected the request.

    Raises:
        GatewayUnavailableError: On connection errors and timeouts.
    """
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.request(method, url, headers=headers, json=json, data=data, auth=auth) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = await response.text()
                return ProviderResponse(status=response.status, body=body)
    except asyncio.TimeoutError as e:
        logger.error("%s request timed out: %s %s", provider, method, url)
        raise GatewayUnavailableError(provider, "request timed out") from e
    except aiohttp.ClientError as e:
        logger.error("%s transport error on %s %s: %s", provider, method, url, str(e))
        raise GatewayUnavailableError(provider, "could not reach payment provider") from e
