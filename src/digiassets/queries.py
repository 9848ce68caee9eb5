"""
Asset holdings and issuance history derived from chain adapter data.
"""

from __future__ import annotations

from collections.abc import Collection

from loguru import logger

from digiassets.backends.base import ChainAdapter
from digiassets.keys import KeyService
from digiassets.models import (
    AddressInfo,
    AssetHolding,
    Issuance,
    Transaction,
    Utxo,
)


def get_issued_assets_from_transactions(
    addresses: Collection[str], transactions: list[Transaction]
) -> list[Issuance]:
    """
    Find the issuances made by the given addresses.

    The issued asset is the one present in the transaction's outputs but in
    none of its inputs. The issuer is the first address of the first input's
    previous output.
    """
    issuances: list[Issuance] = []

    for transaction in transactions:
        if not transaction.dadata:
            continue
        issuance_data = transaction.dadata[0]
        if issuance_data.get("type") != "issuance":
            continue

        input_asset_ids = {
            asset.asset_id for tx_input in transaction.vin for asset in tx_input.assets
        }

        asset_id: str | None = None
        indexes: list[int] = []
        for index, tx_output in enumerate(transaction.vout):
            for asset in tx_output.assets:
                if asset.asset_id not in input_asset_ids:
                    asset_id = asset.asset_id
                    indexes.append(index)

        if asset_id is None:
            continue

        first_input = transaction.vin[0] if transaction.vin else None
        if (
            first_input is None
            or first_input.previous_output is None
            or not first_input.previous_output.addresses
        ):
            logger.debug(f"Issuance {transaction.txid} has no resolvable issuer address")
            continue

        address = first_input.previous_output.addresses[0]
        if address not in addresses:
            continue

        issuances.append(
            Issuance(
                issue_txid=transaction.txid,
                txid=transaction.txid,
                lock_status=issuance_data.get("lockStatus"),
                divisibility=issuance_data.get("divisibility"),
                aggregation_policy=issuance_data.get("aggregationPolicy"),
                amount=issuance_data.get("amount"),
                asset_id=asset_id,
                output_indexes=indexes,
                address=address,
            )
        )

    return issuances


class AssetQueryService:
    def __init__(self, chain_adapter: ChainAdapter, key_service: KeyService):
        self.chain_adapter = chain_adapter
        self.key_service = key_service

    async def get_utxos(self) -> list[Utxo]:
        """Get UTXOs of every wallet address."""
        addresses = await self.key_service.get_addresses()
        return await self.chain_adapter.get_addresses_utxos(addresses)

    async def get_assets(self) -> list[AssetHolding]:
        utxos = await self.get_utxos()
        holdings: list[AssetHolding] = []
        for utxo in utxos:
            address = utxo.owner_addresses[0] if utxo.owner_addresses else None
            for asset_index, asset in enumerate(utxo.assets):
                holdings.append(
                    AssetHolding(
                        address=address,
                        txid=utxo.txid,
                        index=utxo.index,
                        asset_id=asset.asset_id,
                        amount=asset.amount,
                        issue_txid=asset.issue_txid,
                        divisibility=asset.divisibility,
                        lock_status=asset.lock_status,
                        aggregation_policy=asset.aggregation_policy,
                        asset_index=asset_index,
                    )
                )
        logger.debug(f"Found {len(holdings)} asset holding(s) in {len(utxos)} UTXO(s)")
        return holdings

    async def get_transactions(self, addresses: list[str] | None = None) -> list[Transaction]:
        """
        Get wallet transactions, deduplicated by txid across addresses.

        Args:
            addresses: Addresses to query (default: all wallet addresses)
        """
        if addresses is None:
            addresses = await self.key_service.get_addresses()

        address_infos = await self.chain_adapter.get_addresses_transactions(addresses)

        seen: set[str] = set()
        transactions: list[Transaction] = []
        for address_info in address_infos:
            for transaction in address_info.transactions:
                if transaction.txid not in seen:
                    seen.add(transaction.txid)
                    transactions.append(transaction)
        return transactions

    async def get_issued_assets(
        self, transactions: list[Transaction] | None = None
    ) -> list[Issuance]:
        """
        Get the issuances made by the wallet.

        Args:
            transactions: Transactions to inspect (default: fetched wallet history)
        """
        addresses = await self.key_service.get_addresses()
        if transactions is None:
            transactions = await self.get_transactions(addresses)
        return get_issued_assets_from_transactions(set(addresses), transactions)

    async def get_address_info(self, address: str) -> AddressInfo:
        utxos = await self.chain_adapter.get_addresses_utxos([address])
        return AddressInfo(address=address, utxos=utxos)
