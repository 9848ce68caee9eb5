"""
Block explorer chain adapter.

Lightweight backend: no local node, the explorer indexes every address. Bulk
transaction streams come from the explorer socket; address-scoped delivery
requires joining one ``address/<address>`` channel per address.
"""

from __future__ import annotations

from loguru import logger

from digiassets.backends.base import (
    CONNECT,
    SCAN_PROGRESS,
    ChainAdapter,
    Handler,
    PushChannel,
    call_handler,
    once,
)
from digiassets.backends.explorer import ExplorerClient
from digiassets.models import AddressTransactions, Utxo, UtxoLocator


class BlockExplorerAdapter(ChainAdapter):
    """
    Chain adapter backed by the DigiAssets block explorer API.
    """

    def __init__(self, explorer: ExplorerClient):
        self.explorer = explorer
        self.channel = explorer

    async def import_addresses(self, addresses: list[str], reindex: bool = False) -> None:
        # The explorer indexes every address already
        logger.debug(f"Explorer backend tracks {len(addresses)} address(es), nothing to import")

    async def get_addresses_utxos(self, addresses: list[str]) -> list[Utxo]:
        result = await self.explorer.post("getaddressesutxos", {"addresses": addresses})

        utxos: list[Utxo] = []
        for address_info in result or []:
            for utxo_data in address_info.get("utxos", []):
                utxos.append(Utxo.model_validate(utxo_data))

        logger.debug(f"Found {len(utxos)} UTXOs for {len(addresses)} addresses")
        return utxos

    async def get_utxos(self, locators: list[UtxoLocator]) -> list[Utxo]:
        result = await self.explorer.post(
            "getutxos", {"utxos": [locator.to_wire() for locator in locators]}
        )
        return [Utxo.model_validate(utxo_data) for utxo_data in result or []]

    async def get_addresses_transactions(self, addresses: list[str]) -> list[AddressTransactions]:
        result = await self.explorer.post(
            "getaddressesinfowithtransactions", {"addresses": addresses}
        )
        return [AddressTransactions.model_validate(info) for info in result or []]

    async def transmit(self, signed_tx_hex: str) -> str:
        result = await self.explorer.post("transmit", {"txHex": signed_tx_hex})
        txid = (result or {}).get("txid", "")
        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def on_connect(self, secondary: PushChannel, handler: Handler) -> None:
        handler = once(handler)
        if not secondary.has_transport:
            # Nothing will ever publish CONNECT, one API round-trip is enough
            info = await self.explorer.get("getinfo")
            logger.debug(f"Explorer ready: {info}")
            await call_handler(handler, None)
            return

        secondary.on(CONNECT, handler)
        secondary.join(CONNECT)
        if secondary.connected:
            await call_handler(handler, None)

    def on_progress(self, secondary: PushChannel, handler: Handler) -> None:
        secondary.on(SCAN_PROGRESS, handler)
        secondary.join(SCAN_PROGRESS)
