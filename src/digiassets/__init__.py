"""
digiassets - Colored-coin wallet SDK

Issues, sends and burns DigiAssets, tracks holdings and issuance history,
caches asset metadata and routes address-scoped transaction events.
"""

__version__ = "0.1.0"

from digiassets.client import DigiAssets, IssuerVerificationError, NoContentError
from digiassets.config import Settings, get_settings
from digiassets.events import EventKind, EventRouter, is_local_transaction
from digiassets.models import (
    AddressBook,
    AssetHolding,
    AssetInfo,
    BurnRequest,
    DigiAssetsError,
    InvalidArgumentsError,
    Issuance,
    IssueRequest,
    SendRequest,
    SignedTransaction,
    Transaction,
    Utxo,
    UtxoLocator,
)
from digiassets.workflow import (
    MalformedResponseError,
    TransactionBuildError,
    TransactionWorkflow,
    UtxoReservedError,
)

__all__ = [
    "AddressBook",
    "AssetHolding",
    "AssetInfo",
    "BurnRequest",
    "DigiAssets",
    "DigiAssetsError",
    "EventKind",
    "EventRouter",
    "InvalidArgumentsError",
    "Issuance",
    "IssueRequest",
    "IssuerVerificationError",
    "MalformedResponseError",
    "NoContentError",
    "SendRequest",
    "Settings",
    "SignedTransaction",
    "Transaction",
    "TransactionBuildError",
    "TransactionWorkflow",
    "Utxo",
    "UtxoLocator",
    "UtxoReservedError",
    "get_settings",
    "is_local_transaction",
]
