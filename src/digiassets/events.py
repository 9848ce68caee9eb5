"""
Transaction event routing.

Normalizes notifications from the active backend into the event kinds of
``EventKind``. Each kind is handled independently.

Two subscription modes exist for new transactions:
- Bulk: the chain adapter's all-transaction stream, filtered client-side
  against the tracked addresses. Used with a full node, or when secure events
  or all-transaction delivery is configured.
- Per-address: one explorer channel per tracked address, deduplicated by txid
  for each listener registration.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

from loguru import logger

from digiassets.backends.base import ChainAdapter, Handler, PushChannel, call_handler
from digiassets.keys import KeyService
from digiassets.models import AddressBook, Transaction


class EventKind(str, Enum):
    NEW_TRANSACTION = "newTransaction"
    NEW_DA_TRANSACTION = "newDATransaction"
    REVERTED_TRANSACTION = "revertedTransaction"
    REVERTED_DA_TRANSACTION = "revertedDATransaction"
    SCAN_PROGRESS = "scanProgress"


def is_local_transaction(addresses: Iterable[str], transaction: Transaction) -> bool:
    """Check whether any input or output of the transaction touches the addresses."""
    tracked = addresses if isinstance(addresses, (set, frozenset, AddressBook)) else set(addresses)

    for tx_input in transaction.vin:
        if tx_input.previous_output is None:
            continue
        if any(address in tracked for address in tx_input.previous_output.addresses):
            return True

    for tx_output in transaction.vout:
        if any(address in tracked for address in tx_output.script_pub_key.addresses):
            return True

    return False


def address_channel(address: str) -> str:
    return f"address/{address}"


class _AddressSubscription:
    """
    One listener's per-address registration on the explorer channel.

    Every address is subscribed once; a transaction is delivered once per
    registration no matter how many address channels report it.
    """

    def __init__(self, router: EventRouter, listener: Handler):
        self.router = router
        self.listener = listener
        self.addresses: set[str] = set()
        self.delivered: set[str] = set()

    def register(self, address: str) -> None:
        if address in self.addresses:
            return
        self.addresses.add(address)
        channel = address_channel(address)
        self.router.explorer.on(channel, self._on_message)
        self.router.explorer.join(channel)

    async def _on_message(self, data: dict[str, Any]) -> None:
        await self.router.key_service.discover()
        transaction = Transaction.model_validate(data["transaction"])
        if transaction.txid in self.delivered:
            logger.debug(f"Skipping already delivered transaction {transaction.txid}")
            return
        self.delivered.add(transaction.txid)
        await call_handler(self.listener, transaction)


class EventRouter:
    def __init__(
        self,
        chain_adapter: ChainAdapter,
        explorer: PushChannel,
        key_service: KeyService,
        addresses: AddressBook,
        events: bool = False,
        bulk: bool = False,
        all_transactions: bool = False,
    ):
        """
        Initialize the event router.

        Args:
            chain_adapter: Active chain adapter
            explorer: Explorer push channel for per-address subscriptions
            key_service: Wallet, asked to rediscover addresses on local activity
            addresses: Tracked wallet addresses
            events: Enable event subscriptions at all
            bulk: Use the adapter's all-transaction streams
            all_transactions: Deliver non-local transactions too (implies bulk)
        """
        self.chain_adapter = chain_adapter
        self.explorer = explorer
        self.key_service = key_service
        self.addresses = addresses
        self.events = events
        self.all_transactions = all_transactions
        self.bulk = bulk or all_transactions

    def _warn_if_unfed(self) -> None:
        if not self.chain_adapter.channel.has_transport:
            logger.warning("Chain adapter channel has no transport, no events will arrive")

    def _filtered(self, listener: Handler) -> Handler:
        async def _handle(transaction: Transaction) -> None:
            if is_local_transaction(self.addresses, transaction):
                await self.key_service.discover()
                await call_handler(listener, transaction)
            elif self.all_transactions:
                await call_handler(listener, transaction)

        return _handle

    def on_new_transaction(self, listener: Handler) -> bool:
        if not self.events:
            return False

        if self.bulk:
            self._warn_if_unfed()
            self.chain_adapter.on_new_transaction(self._filtered(listener))
            self.chain_adapter.join_new_transaction()
            return True

        subscription = _AddressSubscription(self, listener)
        self.addresses.on_added(subscription.register)
        for address in self.addresses:
            subscription.register(address)
        logger.debug(f"Subscribed to {len(subscription.addresses)} address channel(s)")
        return True

    def on_new_da_transaction(self, listener: Handler) -> bool:
        if not self.events:
            return False

        if self.bulk:
            self._warn_if_unfed()
            self.chain_adapter.on_new_da_transaction(self._filtered(listener))
            self.chain_adapter.join_new_da_transaction()
            return True

        async def _colored_only(transaction: Transaction) -> None:
            if transaction.colored:
                await call_handler(listener, transaction)

        return self.on_new_transaction(_colored_only)

    def on_reverted_transaction(self, listener: Handler) -> bool:
        if not self.events:
            return False
        self._warn_if_unfed()
        self.chain_adapter.on_reverted_transaction(listener)
        self.chain_adapter.join_reverted_transaction()
        return True

    def on_reverted_da_transaction(self, listener: Handler) -> bool:
        if not self.events:
            return False
        self._warn_if_unfed()
        self.chain_adapter.on_reverted_da_transaction(listener)
        self.chain_adapter.join_reverted_da_transaction()
        return True

    def on_progress(self, listener: Handler) -> bool:
        if not self.events:
            return False
        self.chain_adapter.on_progress(self.explorer, listener)
        return True

    def subscribe(self, kind: EventKind, listener: Handler) -> bool:
        """Register a listener for one event kind."""
        handlers = {
            EventKind.NEW_TRANSACTION: self.on_new_transaction,
            EventKind.NEW_DA_TRANSACTION: self.on_new_da_transaction,
            EventKind.REVERTED_TRANSACTION: self.on_reverted_transaction,
            EventKind.REVERTED_DA_TRANSACTION: self.on_reverted_da_transaction,
            EventKind.SCAN_PROGRESS: self.on_progress,
        }
        return handlers[EventKind(kind)](listener)
