"""
Asset metadata: provider clients and the partial-projection cache.
"""

from digiassets.metadata.cache import AssetMetadataCache, derive_partial
from digiassets.metadata.server import DigiAssetsApi, MetadataProvider, MetadataServer

__all__ = [
    "AssetMetadataCache",
    "DigiAssetsApi",
    "MetadataProvider",
    "MetadataServer",
    "derive_partial",
]
