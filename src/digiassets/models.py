"""
Data models for UTXOs, transactions, asset holdings and workflow records.

Backend payloads use camelCase keys; models expose snake_case attributes and
keep the wire names as aliases so records can be handed back to the
transaction builder unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class DigiAssetsError(Exception):
    """Base class for errors raised by this package."""


class InvalidArgumentsError(DigiAssetsError, ValueError):
    """Raised when a required argument is missing or malformed."""


class WireModel(BaseModel):
    """Base model accepting both wire (camelCase) and attribute names."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class UtxoLocator:
    txid: str
    index: int

    @classmethod
    def parse(cls, value: str) -> UtxoLocator:
        """Parse a ``txid:index`` string."""
        txid, sep, index = value.partition(":")
        if not sep or not txid or not (index.isascii() and index.isdigit()):
            raise InvalidArgumentsError(f"Invalid utxo locator: {value!r}")
        return cls(txid=txid, index=int(index))

    def to_wire(self) -> dict[str, Any]:
        return {"txid": self.txid, "index": self.index}

    def __str__(self) -> str:
        return f"{self.txid}:{self.index}"


class AssetEntry(WireModel):
    asset_id: str = Field(alias="assetId")
    amount: int = 0
    issue_txid: str | None = Field(default=None, alias="issueTxid")
    divisibility: int | None = None
    lock_status: bool | None = Field(default=None, alias="lockStatus")
    aggregation_policy: str | None = Field(default=None, alias="aggregationPolicy")


class ScriptPubKey(WireModel):
    addresses: list[str] = Field(default_factory=list)


class Utxo(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    txid: str
    index: int
    script_pub_key: ScriptPubKey = Field(default_factory=ScriptPubKey, alias="scriptPubKey")
    assets: list[AssetEntry] = Field(default_factory=list)

    @property
    def locator(self) -> UtxoLocator:
        return UtxoLocator(self.txid, self.index)

    @property
    def owner_addresses(self) -> list[str]:
        return self.script_pub_key.addresses


class PreviousOutput(WireModel):
    addresses: list[str] = Field(default_factory=list)


class TxInput(WireModel):
    txid: str | None = None
    vout: int | None = None
    previous_output: PreviousOutput | None = Field(default=None, alias="previousOutput")
    assets: list[AssetEntry] = Field(default_factory=list)


class TxOutput(WireModel):
    n: int | None = None
    script_pub_key: ScriptPubKey = Field(default_factory=ScriptPubKey, alias="scriptPubKey")
    assets: list[AssetEntry] = Field(default_factory=list)


class Transaction(WireModel):
    txid: str
    vin: list[TxInput] = Field(default_factory=list)
    vout: list[TxOutput] = Field(default_factory=list)
    colored: bool = False
    dadata: list[dict[str, Any]] = Field(default_factory=list)


class AddressTransactions(WireModel):
    address: str
    transactions: list[Transaction] = Field(default_factory=list)


class AddressInfo(WireModel):
    address: str
    utxos: list[Utxo] = Field(default_factory=list)


class AssetHolding(WireModel):
    address: str | None = None
    txid: str
    index: int
    asset_id: str = Field(alias="assetId")
    amount: int
    issue_txid: str | None = Field(default=None, alias="issueTxid")
    divisibility: int | None = None
    lock_status: bool | None = Field(default=None, alias="lockStatus")
    aggregation_policy: str | None = Field(default=None, alias="aggregationPolicy")
    asset_index: int = Field(alias="assetIndex")


class Issuance(WireModel):
    issue_txid: str = Field(alias="issueTxid")
    txid: str
    lock_status: bool | None = Field(default=None, alias="lockStatus")
    divisibility: int | None = None
    aggregation_policy: str | None = Field(default=None, alias="aggregationPolicy")
    amount: int | None = None
    asset_id: str = Field(alias="assetId")
    output_indexes: list[int] = Field(default_factory=list, alias="outputIndexes")
    address: str


class PartialMetadata(WireModel):
    """Public display projection of an asset's metadata."""

    asset_id: str | None = Field(default=None, alias="assetId")
    asset_name: str | None = Field(default=None, alias="assetName")
    description: str | None = None
    issuer: str | None = None
    icon: str | None = None
    large_icon: str | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class AssetInfo(WireModel):
    """Transaction-build result passed through sign and broadcast."""

    tx_hex: str = Field(alias="txHex")
    sha1: str | None = None
    asset_id: str | None = Field(default=None, alias="assetId")
    receiving_addresses: list[dict[str, Any]] | None = Field(
        default=None, alias="receivingAddresses"
    )
    issue_address: str | None = Field(default=None, alias="issueAddress")
    txid: str | None = None


class SignedTransaction(WireModel):
    signed_tx_hex: str = Field(alias="signedTxHex")


class BuildRequest(WireModel):
    """
    Arguments shared by the issue, send and burn workflows.

    Unknown keys (amount, to, metadata, fee, ...) are kept and forwarded to
    the transaction builder as-is.
    """

    transmit: bool = True
    transfer: list[dict[str, Any]] = Field(default_factory=list)
    flags: dict[str, Any] = Field(default_factory=dict)
    finance_change_address: str | None = Field(default=None, alias="financeChangeAddress")


class IssueRequest(BuildRequest):
    issue_address: str | None = Field(default=None, alias="issueAddress")


class SendRequest(BuildRequest):
    from_: list[str] = Field(default_factory=list, alias="from")
    sendutxo: list[Utxo | str] = Field(default_factory=list)


class BurnRequest(BuildRequest):
    from_: list[str] = Field(default_factory=list, alias="from")
    sendutxo: list[Utxo] = Field(default_factory=list)


class AddressBook:
    """
    Ordered, append-only set of addresses tracked by the wallet.

    ``add`` checks and appends without awaiting, so it is atomic with respect
    to the event loop. Listeners are called synchronously for every address
    that was actually added.
    """

    def __init__(self, addresses: Iterable[str] = ()) -> None:
        self._addresses: list[str] = []
        self._known: set[str] = set()
        self._listeners: list[Callable[[str], None]] = []
        for address in addresses:
            self.add(address)

    def add(self, address: str) -> bool:
        if address in self._known:
            return False
        self._known.add(address)
        self._addresses.append(address)
        for listener in list(self._listeners):
            try:
                listener(address)
            except Exception as e:
                logger.error(f"Address listener failed for {address}: {e}")
        return True

    def on_added(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> list[str]:
        return list(self._addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._known

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._addresses)
