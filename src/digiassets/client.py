"""
DigiAssets wallet client.

Wires the key service, chain adapter, metadata services and transaction
builder together and exposes the wallet-facing operations.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
from typing import Any

import httpx
from loguru import logger

from digiassets.backends.base import ChainAdapter, Handler
from digiassets.backends.block_explorer import BlockExplorerAdapter
from digiassets.backends.explorer import ExplorerClient
from digiassets.backends.full_node import FullNodeAdapter
from digiassets.builder import TransactionBuilder
from digiassets.config import Settings
from digiassets.events import EventKind, EventRouter
from digiassets.keys import KeyService
from digiassets.metadata.cache import AssetMetadataCache
from digiassets.metadata.server import DigiAssetsApi, MetadataProvider, MetadataServer
from digiassets.models import (
    AddressBook,
    AddressInfo,
    AssetHolding,
    AssetInfo,
    BurnRequest,
    DigiAssetsError,
    Issuance,
    IssueRequest,
    SendRequest,
    SignedTransaction,
    Transaction,
    Utxo,
)
from digiassets.queries import AssetQueryService, get_issued_assets_from_transactions
from digiassets.workflow import TransactionWorkflow


class IssuerVerificationError(DigiAssetsError):
    """The issuer verification endpoint rejected the request."""


class NoContentError(IssuerVerificationError):
    """The issuer verification endpoint has nothing for this asset."""


class DigiAssets:
    """
    Main wallet client.

    Collaborators not passed in are built from the settings: a full node
    adapter when ``full_node_host`` is set, the block explorer adapter
    otherwise.
    """

    def __init__(
        self,
        key_service: KeyService,
        builder: TransactionBuilder,
        settings: Settings | None = None,
        chain_adapter: ChainAdapter | None = None,
        explorer: ExplorerClient | None = None,
        metadata_provider: MetadataProvider | None = None,
        api: DigiAssetsApi | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or Settings()
        self.key_service = key_service
        self.builder = builder
        timeout = self.settings.request_timeout

        self.explorer = explorer or ExplorerClient(
            self.settings.block_explorer_host, timeout=timeout
        )
        if chain_adapter is not None:
            self.chain_adapter = chain_adapter
        elif self.settings.using_full_node:
            self.chain_adapter = FullNodeAdapter(
                rpc_url=self.settings.full_node_host,
                rpc_user=self.settings.full_node_user,
                rpc_password=self.settings.full_node_password,
                timeout=timeout,
            )
        else:
            self.chain_adapter = BlockExplorerAdapter(self.explorer)

        self.metadata_provider = metadata_provider or MetadataServer(
            self.settings.metadata_server_host, timeout=timeout
        )
        self.api = api or DigiAssetsApi(self.settings.colored_coins_host, timeout=timeout)
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

        self.addresses = AddressBook()
        self.workflow = TransactionWorkflow(
            chain_adapter=self.chain_adapter,
            builder=builder,
            key_service=key_service,
            metadata_provider=self.metadata_provider,
        )
        self.queries = AssetQueryService(self.chain_adapter, key_service)
        self.router = EventRouter(
            chain_adapter=self.chain_adapter,
            explorer=self.explorer,
            key_service=key_service,
            addresses=self.addresses,
            events=self.settings.events,
            bulk=self.settings.using_full_node or self.settings.events_secure,
            all_transactions=self.settings.all_transactions,
        )
        self.metadata_cache: AssetMetadataCache | None = None

    @property
    def network(self) -> str:
        return self.settings.network

    async def init(self) -> None:
        """
        Load wallet addresses, import them into the chain adapter and wait
        until the adapter is ready.

        Raises:
            TimeoutError: The adapter did not become ready within
                ``connect_timeout`` seconds
        """
        await self.key_service.init()
        self.metadata_cache = AssetMetadataCache(self.api, self.key_service.ds)
        self.key_service.on_register_address(self._on_register_address)

        addresses = await self.key_service.get_addresses()
        for address in addresses:
            self.addresses.add(address)
        logger.info(f"Loaded {len(self.addresses)} wallet address(es)")

        await self.chain_adapter.import_addresses(addresses, self.settings.reindex)

        connected = asyncio.Event()
        await self.chain_adapter.on_connect(self.explorer, lambda _: connected.set())
        try:
            await asyncio.wait_for(connected.wait(), timeout=self.settings.connect_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Chain adapter not ready after {self.settings.connect_timeout}s")
            raise
        logger.info(f"Connected ({'full node' if self.settings.using_full_node else 'explorer'})")

    async def _on_register_address(self, address: str) -> None:
        if not self.addresses.add(address):
            return
        logger.debug(f"Discovered address {address}")
        try:
            await self.chain_adapter.import_addresses([address], False)
        except Exception as e:
            logger.error(f"Failed to import discovered address {address}: {e}")

    def subscribe(self, kind: EventKind | str, listener: Handler) -> bool:
        """
        Register a listener for an event kind.

        Returns:
            False when events are disabled
        """
        return self.router.subscribe(EventKind(kind), listener)

    async def issue_asset(self, request: IssueRequest) -> AssetInfo | SignedTransaction:
        return await self.workflow.issue_asset(request)

    async def send_asset(self, request: SendRequest) -> AssetInfo | SignedTransaction:
        return await self.workflow.send_asset(request)

    async def burn_asset(self, request: BurnRequest) -> AssetInfo | SignedTransaction:
        return await self.workflow.burn_asset(request)

    async def sign(self, tx_hex: str) -> str:
        return await self.key_service.sign(tx_hex)

    async def transmit(self, signed_tx_hex: str) -> str:
        return await self.chain_adapter.transmit(signed_tx_hex)

    async def sign_and_transmit(self, asset_info: AssetInfo) -> AssetInfo:
        return await self.workflow.sign_and_transmit(asset_info)

    async def get_utxos(self) -> list[Utxo]:
        return await self.queries.get_utxos()

    async def get_assets(self) -> list[AssetHolding]:
        return await self.queries.get_assets()

    async def get_transactions(self, addresses: list[str] | None = None) -> list[Transaction]:
        return await self.queries.get_transactions(addresses)

    async def get_issued_assets(
        self, transactions: list[Transaction] | None = None
    ) -> list[Issuance]:
        return await self.queries.get_issued_assets(transactions)

    @staticmethod
    def get_issued_assets_from_transactions(
        addresses: list[str], transactions: list[Transaction]
    ) -> list[Issuance]:
        return get_issued_assets_from_transactions(set(addresses), transactions)

    async def get_address_info(self, address: str) -> AddressInfo:
        return await self.queries.get_address_info(address)

    async def get_asset_metadata(
        self, asset_id: str, utxo: str | None = None, full: bool = True
    ) -> dict[str, Any]:
        if self.metadata_cache is None:
            raise RuntimeError("Client not initialized, call init() first")
        return await self.metadata_cache.get(asset_id, utxo, full)

    async def get_stake_holders(self, asset_id: str, confirmations: int = 0) -> Any:
        return await self.explorer.get(
            "getassetholders", {"assetId": asset_id, "confirmations": confirmations}
        )

    async def verify_issuer(self, asset_id: str, json: Any = None) -> Any:
        """
        Ask the verification service who issued an asset.

        Raises:
            NoContentError: The service has no record (HTTP 204)
            IssuerVerificationError: Any other non-200 response
        """
        form: dict[str, Any] = {"asset_id": asset_id}
        if json is not None:
            form["json"] = json if isinstance(json, str) else jsonlib.dumps(json)

        response = await self.http_client.post(self.settings.verifier_url, data=form)
        if response.status_code == 204:
            raise NoContentError("No Content")
        if response.status_code != 200:
            raise IssuerVerificationError(response.text)

        if not response.text:
            return None
        body = jsonlib.loads(response.text)
        # Some verifier deployments double-encode their JSON answer
        if isinstance(body, str) and body.lstrip().startswith(("{", "[")):
            try:
                return jsonlib.loads(body)
            except ValueError:
                logger.debug("Verifier returned a plain string body")
        return body

    async def close(self) -> None:
        """Close every HTTP client."""
        if self.metadata_cache is not None:
            await self.metadata_cache.flush()
        await self.chain_adapter.close()
        await self.explorer.close()
        await self.metadata_provider.close()
        await self.api.close()
        await self.http_client.aclose()
