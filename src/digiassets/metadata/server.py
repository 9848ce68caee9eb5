"""
Off-chain metadata provider and the colored-coins API client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
from loguru import logger


class MetadataProvider(ABC):
    """
    Off-chain store for rich asset metadata referenced on-chain by hash.
    """

    @abstractmethod
    async def upload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Store the payload's metadata, returns the payload enriched with its sha1"""

    @abstractmethod
    async def seed(self, sha1: str | None) -> Any:
        """Anchor a stored metadata hash before the transaction is broadcast"""

    async def close(self) -> None:
        """Release provider resources"""
        pass


async def _request(
    client: httpx.AsyncClient, method: str, url: str, **kwargs: Any
) -> Any:
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as e:
        logger.error(f"Request failed: {method} {url} - {e}")
        raise


class MetadataServer(MetadataProvider):
    """Metadata server reached over HTTP."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.host = host.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def upload(self, payload: dict[str, Any]) -> dict[str, Any]:
        metadata = payload.get("metadata")
        if not metadata:
            return payload

        result = await _request(self.client, "POST", f"{self.host}/addMetadata", json=metadata)
        sha1 = result.get("sha1")
        if not sha1:
            raise ValueError("Metadata server response is missing sha1")

        logger.debug(f"Uploaded metadata {sha1}")
        enriched = dict(payload)
        enriched["sha1"] = sha1
        return enriched

    async def seed(self, sha1: str | None) -> Any:
        if not sha1:
            return None
        logger.debug(f"Seeding metadata {sha1}")
        return await _request(
            self.client, "POST", f"{self.host}/shareMetadata", json={"sha1": sha1}
        )

    async def close(self) -> None:
        await self.client.aclose()


class DigiAssetsApi:
    """
    Colored-coins API client.

    Methods map to ``{host}/{method}/{param}/...`` GET endpoints, e.g.
    ``get("assetmetadata", [asset_id, utxo])``.
    """

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.host = host.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def get(self, method: str, params: list[str] | None = None) -> Any:
        path = "/".join([method, *(params or [])])
        return await _request(self.client, "GET", f"{self.host}/{path}")

    async def close(self) -> None:
        await self.client.aclose()
