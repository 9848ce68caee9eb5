"""
Tests for the DigiAssets wallet client.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from digiassets.backends.base import InMemoryPushChannel
from digiassets.backends.block_explorer import BlockExplorerAdapter
from digiassets.backends.explorer import ExplorerClient
from digiassets.backends.full_node import FullNodeAdapter
from digiassets.client import DigiAssets, IssuerVerificationError, NoContentError
from digiassets.config import MAINNET_BLOCK_EXPLORER_HOST, Settings
from digiassets.events import EventKind
from digiassets.models import AssetInfo, IssueRequest, Transaction


def make_settings(**kwargs: Any) -> Settings:
    return Settings(_env_file=None, **kwargs)


@pytest.fixture
def api() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(
        return_value={"assetId": "La1", "metadataOfIssuence": {"data": {"assetName": "Gold"}}}
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def connecting_adapter(chain_adapter: MagicMock) -> MagicMock:
    """Chain adapter that reports ready as soon as on_connect is called."""

    async def _on_connect(secondary: Any, handler: Any) -> None:
        handler(None)

    chain_adapter.on_connect = AsyncMock(side_effect=_on_connect)
    return chain_adapter


@pytest_asyncio.fixture
async def client(key_service, builder, connecting_adapter, metadata_provider, api):
    wallet = DigiAssets(
        key_service,
        builder,
        settings=make_settings(events=True),
        chain_adapter=connecting_adapter,
        explorer=ExplorerClient("http://explorer.test", channel=InMemoryPushChannel()),
        metadata_provider=metadata_provider,
        api=api,
    )
    yield wallet
    await wallet.close()


def mock_http_client(response: httpx.Response, requests: list[httpx.Request]) -> httpx.AsyncClient:
    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response

    return httpx.AsyncClient(transport=httpx.MockTransport(_handler))


class TestInit:
    @pytest.mark.asyncio
    async def test_loads_and_imports_addresses(
        self, client, key_service, connecting_adapter
    ) -> None:
        await client.init()

        key_service.init.assert_awaited_once()
        key_service.on_register_address.assert_called_once_with(client._on_register_address)
        connecting_adapter.import_addresses.assert_awaited_once_with(
            ["D1walletAddress", "D2walletAddress"], False
        )
        connecting_adapter.on_connect.assert_awaited_once()
        assert connecting_adapter.on_connect.await_args.args[0] is client.explorer
        assert client.addresses.snapshot() == ["D1walletAddress", "D2walletAddress"]
        assert client.metadata_cache is not None

    @pytest.mark.asyncio
    async def test_reindex_forwarded(
        self, key_service, builder, connecting_adapter, metadata_provider, api
    ) -> None:
        wallet = DigiAssets(
            key_service,
            builder,
            settings=make_settings(reindex=True),
            chain_adapter=connecting_adapter,
            explorer=ExplorerClient("http://explorer.test"),
            metadata_provider=metadata_provider,
            api=api,
        )

        await wallet.init()

        assert connecting_adapter.import_addresses.await_args.args[1] is True
        await wallet.close()

    @pytest.mark.asyncio
    async def test_import_failure_propagates(self, client, connecting_adapter) -> None:
        connecting_adapter.import_addresses.side_effect = RuntimeError("node down")

        with pytest.raises(RuntimeError, match="node down"):
            await client.init()
        connecting_adapter.on_connect.assert_not_awaited()


class TestDiscoveredAddresses:
    @pytest.mark.asyncio
    async def test_new_address_imported_once(self, client, connecting_adapter) -> None:
        await client.init()
        connecting_adapter.import_addresses.reset_mock()

        await client._on_register_address("D3new")
        await client._on_register_address("D3new")
        await client._on_register_address("D1walletAddress")

        connecting_adapter.import_addresses.assert_awaited_once_with(["D3new"], False)
        assert "D3new" in client.addresses

    @pytest.mark.asyncio
    async def test_import_failure_logged(self, client, connecting_adapter) -> None:
        connecting_adapter.import_addresses.side_effect = RuntimeError("node down")

        await client._on_register_address("D3new")

        assert "D3new" in client.addresses


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_dispatches_by_kind(self, client, make_transaction) -> None:
        await client.init()
        received: list[Transaction] = []

        assert client.subscribe("newTransaction", received.append) is True
        await client.explorer.channel.publish(
            "address/D2walletAddress",
            {"transaction": make_transaction("t1", output_addresses=["D2walletAddress"])},
        )

        assert [tx.txid for tx in received] == ["t1"]

    @pytest.mark.asyncio
    async def test_disabled_events(
        self, key_service, builder, chain_adapter, metadata_provider, api
    ) -> None:
        wallet = DigiAssets(
            key_service,
            builder,
            settings=make_settings(),
            chain_adapter=chain_adapter,
            explorer=ExplorerClient("http://explorer.test"),
            metadata_provider=metadata_provider,
            api=api,
        )

        assert wallet.subscribe(EventKind.SCAN_PROGRESS, lambda data: None) is False
        await wallet.close()

    def test_unknown_kind(self, key_service, builder, chain_adapter, metadata_provider, api):
        wallet = DigiAssets(
            key_service,
            builder,
            settings=make_settings(events=True),
            chain_adapter=chain_adapter,
            explorer=MagicMock(),
            metadata_provider=metadata_provider,
            api=api,
            http_client=MagicMock(),
        )

        with pytest.raises(ValueError):
            wallet.subscribe("blockMined", lambda data: None)


class TestDelegation:
    @pytest.mark.asyncio
    async def test_issue_asset(self, client, connecting_adapter) -> None:
        result = await client.issue_asset(IssueRequest(issue_address="D1walletAddress"))

        assert isinstance(result, AssetInfo)
        assert result.txid == "broadcast-txid"
        connecting_adapter.transmit.assert_awaited_once_with("signed-unsigned-hex")

    @pytest.mark.asyncio
    async def test_sign_and_transmit(self, client, key_service, connecting_adapter) -> None:
        assert await client.sign("raw") == "signed-raw"
        assert await client.transmit("signed-raw") == "broadcast-txid"
        key_service.sign.assert_awaited_once_with("raw")

    def test_issued_assets_from_transactions(self) -> None:
        tx = Transaction.model_validate(
            {
                "txid": "t1",
                "vin": [{"previousOutput": {"addresses": ["D1"]}}],
                "vout": [{"assets": [{"assetId": "Y", "amount": 1}]}],
                "dadata": [{"type": "issuance"}],
            }
        )

        issuances = DigiAssets.get_issued_assets_from_transactions(["D1"], [tx])

        assert [i.asset_id for i in issuances] == ["Y"]


class TestAssetMetadata:
    @pytest.mark.asyncio
    async def test_before_init(self, client) -> None:
        with pytest.raises(RuntimeError, match="init"):
            await client.get_asset_metadata("La1")

    @pytest.mark.asyncio
    async def test_partial_after_init(self, client, api) -> None:
        await client.init()

        result = await client.get_asset_metadata("La1", full=False)

        assert result["assetName"] == "Gold"
        api.get.assert_awaited_once_with("assetmetadata", ["La1"])


class TestStakeHolders:
    @pytest.mark.asyncio
    async def test_queries_explorer(self, client) -> None:
        client.explorer.get = AsyncMock(return_value={"holders": [{"address": "D1"}]})

        result = await client.get_stake_holders("La1")

        assert result == {"holders": [{"address": "D1"}]}
        client.explorer.get.assert_awaited_once_with(
            "getassetholders", {"assetId": "La1", "confirmations": 0}
        )


class TestVerifyIssuer:
    @pytest.fixture
    def make_client(self, key_service, builder, chain_adapter, metadata_provider, api):
        def _make(http_client: httpx.AsyncClient) -> DigiAssets:
            return DigiAssets(
                key_service,
                builder,
                settings=make_settings(verifier_url="http://verifier.test/api.php"),
                chain_adapter=chain_adapter,
                explorer=ExplorerClient("http://explorer.test"),
                metadata_provider=metadata_provider,
                api=api,
                http_client=http_client,
            )

        return _make

    @pytest.mark.asyncio
    async def test_json_body(self, make_client) -> None:
        requests: list[httpx.Request] = []
        wallet = make_client(
            mock_http_client(httpx.Response(200, json={"verified": True}), requests)
        )

        result = await wallet.verify_issuer("La1", {"social": {"twitter": "mint"}})

        assert result == {"verified": True}
        form = httpx.QueryParams(requests[0].content.decode())
        assert form["asset_id"] == "La1"
        assert json.loads(form["json"]) == {"social": {"twitter": "mint"}}
        await wallet.close()

    @pytest.mark.asyncio
    async def test_double_encoded_body(self, make_client) -> None:
        body = json.dumps(json.dumps({"verified": False}))
        wallet = make_client(mock_http_client(httpx.Response(200, text=body), []))

        assert await wallet.verify_issuer("La1") == {"verified": False}
        await wallet.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["verified", "{not json", ""])
    async def test_plain_string_body(self, make_client, value) -> None:
        body = json.dumps(value)
        wallet = make_client(mock_http_client(httpx.Response(200, text=body), []))

        assert await wallet.verify_issuer("La1") == value
        await wallet.close()

    @pytest.mark.asyncio
    async def test_empty_body(self, make_client) -> None:
        wallet = make_client(mock_http_client(httpx.Response(200, text=""), []))

        assert await wallet.verify_issuer("La1") is None
        await wallet.close()

    @pytest.mark.asyncio
    async def test_no_content(self, make_client) -> None:
        wallet = make_client(mock_http_client(httpx.Response(204), []))

        with pytest.raises(NoContentError, match="No Content"):
            await wallet.verify_issuer("La1")
        await wallet.close()

    @pytest.mark.asyncio
    async def test_error_status(self, make_client) -> None:
        wallet = make_client(mock_http_client(httpx.Response(500, text="server exploded"), []))

        with pytest.raises(IssuerVerificationError, match="server exploded"):
            await wallet.verify_issuer("La1")
        await wallet.close()


class TestDefaults:
    @pytest.mark.asyncio
    async def test_explorer_adapter_by_default(self, key_service, builder) -> None:
        wallet = DigiAssets(key_service, builder, settings=make_settings(network="testnet"))

        assert isinstance(wallet.chain_adapter, BlockExplorerAdapter)
        assert wallet.chain_adapter.explorer is wallet.explorer
        assert wallet.explorer.host == "https://testnetexplorerapi.digiassets.net"
        assert wallet.router.bulk is False
        assert wallet.network == "testnet"
        await wallet.close()

    @pytest.mark.asyncio
    async def test_full_node_when_configured(self, key_service, builder) -> None:
        wallet = DigiAssets(
            key_service,
            builder,
            settings=make_settings(full_node_host="http://node.test:14022"),
        )

        assert isinstance(wallet.chain_adapter, FullNodeAdapter)
        assert wallet.chain_adapter.rpc_url == "http://node.test:14022"
        assert wallet.router.bulk is True
        await wallet.close()

    @pytest.mark.asyncio
    async def test_secure_events_use_bulk_stream(self, key_service, builder) -> None:
        wallet = DigiAssets(key_service, builder, settings=make_settings(events_secure=True))

        assert isinstance(wallet.chain_adapter, BlockExplorerAdapter)
        assert wallet.router.bulk is True
        await wallet.close()

    @pytest.mark.asyncio
    async def test_default_explorer_init_completes(self, key_service, builder) -> None:
        """Without a socket transport, readiness comes from one explorer API call."""
        wallet = DigiAssets(key_service, builder, settings=make_settings())
        requests: list[httpx.Request] = []
        await wallet.explorer.client.aclose()
        wallet.explorer.client = mock_http_client(httpx.Response(200, json={"blocks": 1}), requests)

        await asyncio.wait_for(wallet.init(), timeout=5)

        assert [request.url.path for request in requests] == ["/api/getinfo"]
        assert str(requests[0].url).startswith(MAINNET_BLOCK_EXPLORER_HOST)
        await wallet.close()

    @pytest.mark.asyncio
    async def test_init_gives_up_after_connect_timeout(self, key_service, builder) -> None:
        wallet = DigiAssets(
            key_service,
            builder,
            settings=make_settings(connect_timeout=0.01),
            explorer=ExplorerClient(
                "http://explorer.test", channel=InMemoryPushChannel(has_transport=True)
            ),
        )

        with pytest.raises(TimeoutError):
            await wallet.init()
        await wallet.close()
