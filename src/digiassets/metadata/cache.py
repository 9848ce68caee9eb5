"""
Asset metadata cache.

Only the partial (display) projection of an asset's metadata is stored,
under the hash key ``assetId`` and field ``utxo`` (``"0"`` when no utxo is
given). Full records are always fetched live.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from loguru import logger

from digiassets.keys import DataStore
from digiassets.metadata.server import DigiAssetsApi
from digiassets.models import PartialMetadata

ISSUANCE_SECTIONS = ("metadataOfIssuence", "metadataOfIssuance")


def cache_field(utxo: str | int | None) -> str:
    """Normalize a utxo locator to the cache field name."""
    return str(utxo or 0)


def derive_partial(metadata: dict[str, Any]) -> PartialMetadata:
    """Project a full metadata record onto its public display fields."""
    section = metadata.get("metadataOfUtxo")
    if not section:
        section = next((metadata[k] for k in ISSUANCE_SECTIONS if metadata.get(k)), None)

    data = section.get("data") if isinstance(section, dict) else None
    if not data:
        return PartialMetadata(
            asset_id=metadata.get("assetId"),
            asset_name=metadata.get("assetName"),
            description=metadata.get("description"),
            issuer=metadata.get("issuer"),
            icon=metadata.get("icon"),
            large_icon=metadata.get("large_icon"),
        )

    urls = {url.get("name"): url.get("url") for url in data.get("urls") or []}
    return PartialMetadata(
        asset_id=metadata.get("assetId"),
        asset_name=data.get("assetName"),
        description=data.get("description"),
        issuer=data.get("issuer"),
        icon=urls.get("icon"),
        large_icon=urls.get("large_icon"),
    )


class AssetMetadataCache:
    def __init__(self, api: DigiAssetsApi, store: DataStore):
        self.api = api
        self.store = store
        self._pending: set[asyncio.Task] = set()

    async def get_cached(self, asset_id: str, utxo: str | None = None) -> PartialMetadata | None:
        raw = await self.store.hget(asset_id, cache_field(utxo))
        if not raw:
            return None
        return PartialMetadata.model_validate(json.loads(raw))

    async def set(self, asset_id: str, utxo: str | None, partial: PartialMetadata) -> None:
        await self.store.hset(asset_id, cache_field(utxo), json.dumps(partial.to_record()))

    async def get(
        self, asset_id: str, utxo: str | None = None, full: bool = True
    ) -> dict[str, Any]:
        """
        Get asset metadata.

        Args:
            asset_id: Asset identifier
            utxo: Optional ``txid:index`` the metadata is attached to
            full: Return the full record (always fetched live) instead of the
                cached partial projection

        Returns:
            Partial projection, or the full record with the partial fields
            filling keys it lacks
        """
        if not full:
            cached = await self.get_cached(asset_id, utxo)
            if cached is not None:
                logger.debug(f"Metadata cache hit for {asset_id}")
                return cached.to_record()

        params = [asset_id]
        if utxo:
            params.append(utxo)
        metadata = await self.api.get("assetmetadata", params)

        partial = derive_partial(metadata)
        self._store_in_background(asset_id, utxo, partial)

        if not full:
            return partial.to_record()

        merged = dict(metadata)
        for key, value in partial.to_record().items():
            if merged.get(key) is None:
                merged[key] = value
        return merged

    def _store_in_background(
        self, asset_id: str, utxo: str | None, partial: PartialMetadata
    ) -> None:
        task = asyncio.create_task(self.set(asset_id, utxo, partial))
        self._pending.add(task)
        task.add_done_callback(self._on_stored)

    def _on_stored(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Failed to cache asset metadata: {error}")

    async def flush(self) -> None:
        """Wait for pending cache writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
