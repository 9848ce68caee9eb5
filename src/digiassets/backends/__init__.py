"""
Chain adapter implementations.

Available adapters:
- FullNodeAdapter: DigiAssets-indexing full node via JSON-RPC
- BlockExplorerAdapter: DigiAssets block explorer API (no local node)
"""

from digiassets.backends.base import (
    ChainAdapter,
    InMemoryPushChannel,
    PushChannel,
)
from digiassets.backends.block_explorer import BlockExplorerAdapter
from digiassets.backends.explorer import ExplorerClient
from digiassets.backends.full_node import FullNodeAdapter

__all__ = [
    "BlockExplorerAdapter",
    "ChainAdapter",
    "ExplorerClient",
    "FullNodeAdapter",
    "InMemoryPushChannel",
    "PushChannel",
]
