"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINNET_COLORED_COINS_HOST = "https://api.digiassets.net/v3"
TESTNET_COLORED_COINS_HOST = "https://testnetapi.digiassets.net/v3"

MAINNET_BLOCK_EXPLORER_HOST = "https://explorerapi.digiassets.net"
TESTNET_BLOCK_EXPLORER_HOST = "https://testnetexplorerapi.digiassets.net"

METADATA_SERVER_HOST = "https://metadata.digiassets.net"

VERIFIER_URL = "https://www.coloredcoins.org/explorer/verify/api.php"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DIGIASSETS_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Literal["mainnet", "testnet"] = "mainnet"

    # Filled from the network when left empty
    colored_coins_host: str = ""
    block_explorer_host: str = ""

    # A configured full node replaces the block explorer as chain adapter
    full_node_host: str | None = None
    full_node_user: str = "rpcuser"
    full_node_password: str = "rpcpassword"

    metadata_server_host: str = METADATA_SERVER_HOST
    verifier_url: str = VERIFIER_URL

    events: bool = False
    events_secure: bool = False
    all_transactions: bool = False
    reindex: bool = False

    request_timeout: float = 30.0
    connect_timeout: float = 60.0

    @model_validator(mode="after")
    def set_network_hosts(self) -> Settings:
        testnet = self.network == "testnet"
        if not self.colored_coins_host:
            host = TESTNET_COLORED_COINS_HOST if testnet else MAINNET_COLORED_COINS_HOST
            object.__setattr__(self, "colored_coins_host", host)
        if not self.block_explorer_host:
            host = TESTNET_BLOCK_EXPLORER_HOST if testnet else MAINNET_BLOCK_EXPLORER_HOST
            object.__setattr__(self, "block_explorer_host", host)
        return self

    @property
    def using_full_node(self) -> bool:
        return bool(self.full_node_host)


def get_settings() -> Settings:
    return Settings()
