"""
Key service interface.

The HD wallet owns key material, address discovery and signing. It also
exposes a hash-style data store that the metadata cache writes into.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable


class DataStore(ABC):
    """Hash-field key/value store (``HGET``/``HSET`` semantics)."""

    @abstractmethod
    async def hget(self, key: str, field: str) -> str | None:
        """Return the value stored at key/field, or None"""

    @abstractmethod
    async def hset(self, key: str, field: str, value: str) -> None:
        """Store value at key/field"""


class MemoryDataStore(DataStore):
    """In-process data store."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, str]] = {}

    async def hget(self, key: str, field: str) -> str | None:
        return self._data.get(key, {}).get(field)

    async def hset(self, key: str, field: str, value: str) -> None:
        self._data.setdefault(key, {})[field] = value


AddressHandler = Callable[[str], Awaitable[None] | None]


class KeyService(ABC):
    """
    Abstract HD wallet.

    ``discover`` rescans for new receiving addresses and reports each one
    through the handlers registered with ``on_register_address``.
    """

    ds: DataStore

    @abstractmethod
    async def init(self) -> None:
        """Load keys and prepare the data store"""

    @abstractmethod
    def get_address(self) -> str:
        """Primary wallet address"""

    @abstractmethod
    async def get_addresses(self) -> list[str]:
        """All addresses discovered so far"""

    @abstractmethod
    async def discover(self) -> None:
        """Rescan for new receiving addresses"""

    @abstractmethod
    async def sign(self, tx_hex: str) -> str:
        """Sign an unsigned transaction, returns the signed hex"""

    @abstractmethod
    def on_register_address(self, handler: AddressHandler) -> None:
        """Register a handler called for every newly discovered address"""
