"""
Base chain adapter and push channel interfaces.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from digiassets.models import AddressTransactions, Transaction, Utxo, UtxoLocator

Handler = Callable[[Any], Awaitable[None] | None]

NEW_TRANSACTION = "newtransaction"
NEW_DA_TRANSACTION = "newdatransaction"
REVERTED_TRANSACTION = "revertedtransaction"
REVERTED_DA_TRANSACTION = "reverteddatransaction"
SCAN_PROGRESS = "scanprogress"
CONNECT = "connect"


async def call_handler(handler: Handler, payload: Any) -> None:
    """Invoke a sync or async handler."""
    result = handler(payload)
    if inspect.isawaitable(result):
        await result


class PushChannel(ABC):
    """
    Named-channel subscription primitive.

    Handlers registered with ``on`` receive nothing until the channel is
    opted into with ``join``.
    """

    @abstractmethod
    def on(self, channel: str, handler: Handler) -> None:
        """Register a handler for a channel"""

    @abstractmethod
    def join(self, channel: str) -> None:
        """Activate delivery for a channel"""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the underlying transport is up"""

    @property
    def has_transport(self) -> bool:
        """Whether a live transport feeds this channel"""
        return True


class InMemoryPushChannel(PushChannel):
    """
    In-process push channel.

    The socket transport (or a test) feeds messages in with ``publish``;
    delivery goes to the handlers of joined channels only. ``has_transport`` tells
    adapters whether a socket feeds the channel at all.
    """

    def __init__(self, has_transport: bool = False) -> None:
        self._has_transport = has_transport
        self._handlers: dict[str, list[Handler]] = {}
        self._joined: set[str] = set()
        self._connected = False

    def on(self, channel: str, handler: Handler) -> None:
        self._handlers.setdefault(channel, []).append(handler)

    def join(self, channel: str) -> None:
        if channel not in self._joined:
            self._joined.add(channel)
            logger.debug(f"Joined channel: {channel}")

    def is_joined(self, channel: str) -> bool:
        return channel in self._joined

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def has_transport(self) -> bool:
        return self._has_transport

    async def set_connected(self) -> None:
        self._connected = True
        await self.publish(CONNECT, None)

    async def publish(self, channel: str, payload: Any) -> int:
        """
        Deliver a message to the handlers of a joined channel.

        Returns:
            Number of handlers that were invoked
        """
        if channel not in self._joined:
            return 0

        handlers = list(self._handlers.get(channel, []))
        for handler in handlers:
            try:
                await call_handler(handler, payload)
            except Exception as e:
                logger.error(f"Handler for channel {channel} failed: {type(e).__name__}: {e}")
        return len(handlers)


def once(handler: Handler) -> Handler:
    """Wrap a handler so only its first invocation goes through."""
    fired = False

    async def _handle(data: Any) -> None:
        nonlocal fired
        if fired:
            return
        fired = True
        await call_handler(handler, data)

    return _handle


def transaction_handler(handler: Handler) -> Handler:
    """Wrap a handler so it receives a parsed Transaction."""

    async def _handle(data: Any) -> None:
        await call_handler(handler, Transaction.model_validate(data))

    return _handle


class ChainAdapter(ABC):
    """
    Abstract chain data source.

    Implementations provide UTXO and history lookups, broadcasting, and
    transaction event streams through their push channel.
    """

    channel: PushChannel

    @abstractmethod
    async def import_addresses(self, addresses: list[str], reindex: bool = False) -> None:
        """Make the backend index the given addresses"""

    @abstractmethod
    async def get_addresses_utxos(self, addresses: list[str]) -> list[Utxo]:
        """Get UTXOs for given addresses"""

    @abstractmethod
    async def get_utxos(self, locators: list[UtxoLocator]) -> list[Utxo]:
        """Populate UTXOs from explicit txid:index pairs"""

    @abstractmethod
    async def get_addresses_transactions(self, addresses: list[str]) -> list[AddressTransactions]:
        """Get transaction history per address"""

    @abstractmethod
    async def transmit(self, signed_tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    @abstractmethod
    async def on_connect(self, secondary: PushChannel, handler: Handler) -> None:
        """Call handler once the adapter is ready"""

    @abstractmethod
    def on_progress(self, secondary: PushChannel, handler: Handler) -> None:
        """Forward scan progress ticks to handler"""

    def on_new_transaction(self, handler: Handler) -> None:
        self.channel.on(NEW_TRANSACTION, transaction_handler(handler))

    def join_new_transaction(self) -> None:
        self.channel.join(NEW_TRANSACTION)

    def on_new_da_transaction(self, handler: Handler) -> None:
        self.channel.on(NEW_DA_TRANSACTION, transaction_handler(handler))

    def join_new_da_transaction(self) -> None:
        self.channel.join(NEW_DA_TRANSACTION)

    def on_reverted_transaction(self, handler: Handler) -> None:
        self.channel.on(REVERTED_TRANSACTION, transaction_handler(handler))

    def join_reverted_transaction(self) -> None:
        self.channel.join(REVERTED_TRANSACTION)

    def on_reverted_da_transaction(self, handler: Handler) -> None:
        self.channel.on(REVERTED_DA_TRANSACTION, transaction_handler(handler))

    def join_reverted_da_transaction(self) -> None:
        self.channel.join(REVERTED_DA_TRANSACTION)

    async def close(self) -> None:
        """Close backend connection"""
        pass
