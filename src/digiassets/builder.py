"""
Transaction builder interface.

Builders produce unsigned colored transactions from a payload of UTXOs,
transfer targets and flags. They work synchronously and raise on malformed
input.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    ISSUE = "issue"
    SEND = "send"
    BURN = "burn"


class TransactionBuilder(ABC):
    @abstractmethod
    def build_issue_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        """Build an issuance, returns at least txHex and assetId"""

    @abstractmethod
    def build_send_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        """Build a transfer, returns at least txHex"""

    @abstractmethod
    def build_burn_transaction(self, args: dict[str, Any]) -> dict[str, Any]:
        """Build a burn, returns at least txHex"""

    def build(self, tx_type: TransactionType, args: dict[str, Any]) -> dict[str, Any]:
        if tx_type == TransactionType.ISSUE:
            return self.build_issue_transaction(args)
        elif tx_type == TransactionType.SEND:
            return self.build_send_transaction(args)
        elif tx_type == TransactionType.BURN:
            return self.build_burn_transaction(args)
        raise ValueError(f"Unknown transaction type: {tx_type}")
