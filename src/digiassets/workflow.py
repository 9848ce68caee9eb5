"""
Issue, send and burn pipelines.

Every workflow runs its stages strictly in order:

1. Resolve spendable inputs (by address lookup or explicit UTXOs)
2. Upload off-chain metadata (may add the content hash ``sha1``)
3. Build the unsigned transaction
4. Sign, or seed + sign + broadcast when transmitting

Any stage failure aborts the remaining ones. Nothing is rolled back: a
metadata upload that succeeded before a later failure stays uploaded.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from digiassets.backends.base import ChainAdapter
from digiassets.builder import TransactionBuilder, TransactionType
from digiassets.keys import KeyService
from digiassets.metadata.server import MetadataProvider
from digiassets.models import (
    AssetInfo,
    BuildRequest,
    BurnRequest,
    DigiAssetsError,
    InvalidArgumentsError,
    IssueRequest,
    SendRequest,
    SignedTransaction,
    Utxo,
    UtxoLocator,
)

# Request fields consumed by the workflow itself, never forwarded to the builder
WORKFLOW_FIELDS = {"transmit", "from_", "sendutxo"}


class MalformedResponseError(DigiAssetsError):
    """A stage returned a result that fails its shape check."""


class TransactionBuildError(DigiAssetsError):
    """The transaction builder rejected the request."""


class UtxoReservedError(DigiAssetsError):
    """Explicitly requested UTXOs are already held by another workflow."""


class UtxoReservations:
    """
    UTXOs held by in-flight workflows.

    Reserve and release never await, so each call is atomic with respect to
    the event loop.
    """

    def __init__(self) -> None:
        self._held: set[UtxoLocator] = set()

    def reserve(self, locators: Iterable[UtxoLocator]) -> list[UtxoLocator]:
        requested = list(dict.fromkeys(locators))
        conflicts = [locator for locator in requested if locator in self._held]
        if conflicts:
            raise UtxoReservedError(
                "UTXOs already in use by another transaction: "
                + ", ".join(str(locator) for locator in conflicts)
            )
        self._held.update(requested)
        return requested

    def release(self, locators: Iterable[UtxoLocator]) -> None:
        self._held.difference_update(locators)

    def is_reserved(self, locator: UtxoLocator) -> bool:
        return locator in self._held

    def __len__(self) -> int:
        return len(self._held)


class TransactionWorkflow:
    def __init__(
        self,
        chain_adapter: ChainAdapter,
        builder: TransactionBuilder,
        key_service: KeyService,
        metadata_provider: MetadataProvider,
        reservations: UtxoReservations | None = None,
    ):
        self.chain_adapter = chain_adapter
        self.builder = builder
        self.key_service = key_service
        self.metadata_provider = metadata_provider
        self.reservations = reservations or UtxoReservations()

    async def issue_asset(self, request: IssueRequest) -> AssetInfo | SignedTransaction:
        if not request.issue_address:
            raise InvalidArgumentsError('Must have "issueAddress"')

        utxos = await self._utxos_for_addresses([request.issue_address])
        held = self.reservations.reserve(utxo.locator for utxo in utxos)
        try:
            asset_info = await self.build_transaction(TransactionType.ISSUE, request, utxos)
            if not request.transmit:
                return await self._sign_only(asset_info)

            result = await self.sign_and_transmit(asset_info)
            result.receiving_addresses = request.transfer
            result.issue_address = request.issue_address
            logger.info(f"Issued asset {result.asset_id} in {result.txid}")
            return result
        finally:
            self.reservations.release(held)

    async def send_asset(self, request: SendRequest) -> AssetInfo | SignedTransaction:
        if request.from_:
            utxos = await self._utxos_for_addresses(request.from_)
        elif request.sendutxo:
            utxos = await self._resolve_sendutxo(request.sendutxo)
        else:
            raise InvalidArgumentsError(
                'Must have "from" as array of addresses or "sendutxo" as array of utxos.'
            )
        return await self._transfer(TransactionType.SEND, request, utxos)

    async def burn_asset(self, request: BurnRequest) -> AssetInfo | SignedTransaction:
        if request.from_:
            utxos = await self._utxos_for_addresses(request.from_)
        elif request.sendutxo:
            utxos = list(request.sendutxo)
        else:
            raise InvalidArgumentsError(
                'Should have "from" as array of addresses or "sendutxo" as array of utxos.'
            )
        return await self._transfer(TransactionType.BURN, request, utxos)

    async def _transfer(
        self, tx_type: TransactionType, request: BuildRequest, utxos: list[Utxo]
    ) -> AssetInfo | SignedTransaction:
        held = self.reservations.reserve(utxo.locator for utxo in utxos)
        try:
            asset_info = await self.build_transaction(tx_type, request, utxos)
            if not request.transmit:
                return await self._sign_only(asset_info)
            result = await self.sign_and_transmit(asset_info)
            logger.info(f"{tx_type.value.capitalize()} transaction broadcast: {result.txid}")
            return result
        finally:
            self.reservations.release(held)

    async def _utxos_for_addresses(self, addresses: list[str]) -> list[Utxo]:
        utxos = await self.chain_adapter.get_addresses_utxos(addresses)
        available = [utxo for utxo in utxos if not self.reservations.is_reserved(utxo.locator)]
        if len(available) < len(utxos):
            logger.debug(
                f"Skipping {len(utxos) - len(available)} UTXO(s) held by other transactions"
            )
        return available

    async def _resolve_sendutxo(self, entries: list[Utxo | str]) -> list[Utxo]:
        """Resolve ``txid:index`` entries, objects first then resolved strings."""
        object_utxos = [entry for entry in entries if isinstance(entry, Utxo)]
        locators = [UtxoLocator.parse(entry) for entry in entries if isinstance(entry, str)]
        if not locators:
            return object_utxos

        logger.debug(f"Resolving {len(locators)} utxo locator(s)")
        populated = await self.chain_adapter.get_utxos(locators)
        return object_utxos + populated

    async def build_transaction(
        self, tx_type: TransactionType, request: BuildRequest, utxos: list[Utxo]
    ) -> AssetInfo:
        """Upload metadata and build the unsigned transaction."""
        payload: dict[str, Any] = request.model_dump(
            by_alias=True, exclude=WORKFLOW_FIELDS, exclude_none=True
        )
        payload["utxos"] = [utxo.to_wire() for utxo in utxos]
        flags = dict(payload.get("flags") or {})
        flags["injectPreviousOutput"] = True
        flags.setdefault("splitChange", True)
        payload["flags"] = flags
        payload.setdefault("financeChangeAddress", self.key_service.get_address())

        payload = await self.metadata_provider.upload(payload)

        try:
            tx = self.builder.build(tx_type, payload)
        except Exception as e:
            logger.error(f"Failed to build {tx_type.value} transaction: {e}")
            raise TransactionBuildError(str(e)) from e

        if not isinstance(tx, dict) or not tx.get("txHex"):
            raise MalformedResponseError("wrong server response")
        try:
            asset_info = AssetInfo.model_validate(tx)
        except ValidationError as e:
            raise MalformedResponseError(f"wrong server response: {e}") from e

        asset_info.sha1 = payload.get("sha1")
        return asset_info

    async def _sign_only(self, asset_info: AssetInfo) -> SignedTransaction:
        signed_tx_hex = await self.key_service.sign(asset_info.tx_hex)
        return SignedTransaction(signed_tx_hex=signed_tx_hex)

    async def sign_and_transmit(self, asset_info: AssetInfo) -> AssetInfo:
        """Seed the metadata hash, sign, then broadcast."""
        await self.metadata_provider.seed(asset_info.sha1)
        signed_tx_hex = await self.key_service.sign(asset_info.tx_hex)
        asset_info.tx_hex = signed_tx_hex
        asset_info.txid = await self.chain_adapter.transmit(signed_tx_hex)
        return asset_info
