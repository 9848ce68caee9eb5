"""
Block explorer API client.

Wraps the explorer's REST API and its push channel. Besides serving the
block-explorer chain adapter, the client is the secondary channel provider
for address-scoped subscriptions and scan progress.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from digiassets.backends.base import Handler, InMemoryPushChannel, PushChannel


class ExplorerClient(PushChannel):
    def __init__(
        self,
        host: str,
        channel: PushChannel | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the explorer client.

        Args:
            host: Explorer base URL
            channel: Push channel fed by the explorer socket (in-memory if omitted)
            timeout: HTTP request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.host = host.rstrip("/")
        self.channel = channel or InMemoryPushChannel()
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API call to the explorer."""
        url = f"{self.host}/api/{endpoint}"

        try:
            if method == "GET":
                response = await self.client.get(url, params=params)
            elif method == "POST":
                response = await self.client.post(url, json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            response.raise_for_status()
            return response.json()

        except httpx.HTTPError as e:
            logger.error(f"Explorer API call failed: {endpoint} - {e}")
            raise

    async def get(self, method: str, params: dict[str, Any] | None = None) -> Any:
        return await self._api_call("GET", method, params=params)

    async def post(self, method: str, data: dict[str, Any]) -> Any:
        return await self._api_call("POST", method, data=data)

    def on(self, channel: str, handler: Handler) -> None:
        self.channel.on(channel, handler)

    def join(self, channel: str) -> None:
        self.channel.join(channel)

    @property
    def connected(self) -> bool:
        return self.channel.connected

    @property
    def has_transport(self) -> bool:
        return self.channel.has_transport

    async def close(self) -> None:
        await self.client.aclose()
