"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from digiassets.builder import TransactionBuilder
from digiassets.keys import MemoryDataStore

WALLET_ADDRESSES = ["D1walletAddress", "D2walletAddress"]
PRIMARY_ADDRESS = "D1walletAddress"


class RecordingBuilder(TransactionBuilder):
    """Builder stub returning a canned result and recording payloads."""

    def __init__(self, result: dict[str, Any] | None = None, error: Exception | None = None):
        self.result = result if result is not None else {"txHex": "unsigned-hex", "assetId": "La1"}
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _build(self, kind: str, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((kind, args))
        if self.error is not None:
            raise self.error
        return dict(self.result)

    def build_issue_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        return self._build("issue", args)

    def build_send_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        return self._build("send", args)

    def build_burn_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        return self._build("burn", args)


@pytest.fixture
def make_utxo() -> Callable[..., dict[str, Any]]:
    """Factory for UTXO payloads as returned by the backends."""

    def _make(
        txid: str,
        index: int = 0,
        address: str = PRIMARY_ADDRESS,
        assets: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return {
            "txid": txid,
            "index": index,
            "value": 600,
            "scriptPubKey": {"addresses": [address]},
            "assets": assets or [],
        }

    return _make


@pytest.fixture
def make_transaction() -> Callable[..., dict[str, Any]]:
    """Factory for transaction payloads."""

    def _make(
        txid: str,
        input_addresses: list[str] | None = None,
        output_addresses: list[str] | None = None,
        colored: bool = False,
    ) -> dict[str, Any]:
        return {
            "txid": txid,
            "colored": colored,
            "vin": [{"previousOutput": {"addresses": input_addresses or []}}],
            "vout": [{"scriptPubKey": {"addresses": output_addresses or []}}],
        }

    return _make


@pytest.fixture
def key_service() -> MagicMock:
    """Mock HD wallet."""
    service = MagicMock()
    service.init = AsyncMock()
    service.get_address = MagicMock(return_value=PRIMARY_ADDRESS)
    service.get_addresses = AsyncMock(return_value=list(WALLET_ADDRESSES))
    service.discover = AsyncMock()
    service.sign = AsyncMock(side_effect=lambda tx_hex: f"signed-{tx_hex}")
    service.on_register_address = MagicMock()
    service.ds = MemoryDataStore()
    return service


@pytest.fixture
def chain_adapter() -> MagicMock:
    """Mock chain adapter."""
    adapter = MagicMock()
    adapter.import_addresses = AsyncMock()
    adapter.get_addresses_utxos = AsyncMock(return_value=[])
    adapter.get_utxos = AsyncMock(return_value=[])
    adapter.get_addresses_transactions = AsyncMock(return_value=[])
    adapter.transmit = AsyncMock(return_value="broadcast-txid")
    adapter.on_connect = AsyncMock()
    adapter.close = AsyncMock()
    return adapter


@pytest.fixture
def metadata_provider() -> MagicMock:
    """Mock metadata server that hashes any payload carrying metadata."""
    provider = MagicMock()

    async def _upload(payload: dict[str, Any]) -> dict[str, Any]:
        if payload.get("metadata"):
            return {**payload, "sha1": "metadata-sha1"}
        return payload

    provider.upload = AsyncMock(side_effect=_upload)
    provider.seed = AsyncMock(return_value=None)
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def builder() -> RecordingBuilder:
    return RecordingBuilder()
