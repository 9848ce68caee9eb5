"""
Full node chain adapter.

Talks JSON-RPC to a DigiAssets-indexing full node. The node is authoritative
and pushes transaction events for every transaction it sees, including ones
that touch addresses it was never asked to import.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from digiassets.backends.base import (
    SCAN_PROGRESS,
    ChainAdapter,
    Handler,
    InMemoryPushChannel,
    PushChannel,
    call_handler,
)
from digiassets.models import AddressTransactions, Utxo, UtxoLocator

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0


class FullNodeAdapter(ChainAdapter):
    """
    Chain adapter backed by a full node's RPC interface.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:14022",
        rpc_user: str = "rpcuser",
        rpc_password: str = "rpcpassword",
        channel: PushChannel | None = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.channel = channel or InMemoryPushChannel()
        self.client = client or httpx.AsyncClient(timeout=timeout, auth=(rpc_user, rpc_password))
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to the full node.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            ValueError: On RPC errors
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()

            if "error" in data and data["error"]:
                error_info = data["error"]
                error_code = error_info.get("code", "unknown")
                error_msg = error_info.get("message", str(error_info))
                raise ValueError(f"RPC error {error_code}: {error_msg}")

            return data.get("result")

        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

    async def import_addresses(self, addresses: list[str], reindex: bool = False) -> None:
        logger.debug(f"Importing {len(addresses)} address(es) (reindex={reindex})")
        await self._rpc_call("importaddresses", [addresses, reindex])

    async def get_addresses_utxos(self, addresses: list[str]) -> list[Utxo]:
        result = await self._rpc_call("getaddressesutxos", [addresses])

        utxos: list[Utxo] = []
        for address_info in result or []:
            for utxo_data in address_info.get("utxos", []):
                utxos.append(Utxo.model_validate(utxo_data))

        logger.debug(f"Found {len(utxos)} UTXOs for {len(addresses)} addresses")
        return utxos

    async def get_utxos(self, locators: list[UtxoLocator]) -> list[Utxo]:
        result = await self._rpc_call("getutxos", [[locator.to_wire() for locator in locators]])
        return [Utxo.model_validate(utxo_data) for utxo_data in result or []]

    async def get_addresses_transactions(self, addresses: list[str]) -> list[AddressTransactions]:
        result = await self._rpc_call("getaddressestransactions", [addresses])
        return [AddressTransactions.model_validate(info) for info in result or []]

    async def transmit(self, signed_tx_hex: str) -> str:
        txid = await self._rpc_call("sendrawtransaction", [signed_tx_hex])
        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def on_connect(self, secondary: PushChannel, handler: Handler) -> None:
        # The node does not need the explorer channel, one RPC round-trip is enough
        height = await self._rpc_call("getblockcount")
        logger.debug(f"Full node ready at height {height}")
        await call_handler(handler, None)

    def on_progress(self, secondary: PushChannel, handler: Handler) -> None:
        self.channel.on(SCAN_PROGRESS, handler)
        self.channel.join(SCAN_PROGRESS)

    async def close(self) -> None:
        await self.client.aclose()
