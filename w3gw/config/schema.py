"""Configuration schema using Pydantic.

Single data model for gateway settings; values come from `W3GW_*` environment variables,
an optional JSON file, and CLI arguments (highest priority).
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EthersConfig(BaseModel):
    """EVM provider wallet settings."""
    gas_price: int = 20_000_000_000  # wei, used when not estimating
    gas_limit: int = 6_721_975
    estimate_gas_price: bool = False
    estimate_gas_limit: bool = False
    gas_price_factor: float = 1.0  # applied to self-estimated gas prices
    gas_limit_factor: float = 1.0  # applied to self-estimated gas limits
    gas_price_max: int | None = None  # reject self-estimated prices above this
    interleave_blocks: int = 0  # eth_call on `latest` runs this many blocks behind
    always_synced: bool = False
    mock_filters: bool = False
    force_eip_155: bool = False  # legacy, replay-protected transactions
    force_eip_1559: bool = False  # type-2 transactions
    eth_gas_price_factor: bool = True  # also scale eth_gasPrice responses

    @field_validator("interleave_blocks")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be non-negative")
        return v


class ConfluxConfig(BaseModel):
    """Conflux (epoch chain) wallet settings."""
    network_id: int = 1029
    default_gas: int = 6_721_975
    default_gas_price: int = 1_000_000_000  # drip; also the ceiling for estimated prices
    estimate_gas_price: bool = False
    gas_price_factor: float = 10.0
    interleave_epochs: int = 0
    epoch_label: Literal["latest_mined", "latest_state", "latest_confirmed", "latest_checkpoint", "latest_finalized"] = "latest_state"
    always_synced: bool = False

    @field_validator("interleave_epochs")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be non-negative")
        return v


class ReefConfig(BaseModel):
    """Reef (claim chain) wallet settings."""
    graph_url: str = ""
    default_gas_limit: int = 10_000_000
    estimate_gas_limit: bool = True  # ask the node (evm_estimateResources) when gas is missing
    storage_limit: int = 0  # 0 means use the node's resource estimate


class GatewayConfig(BaseSettings):
    """Root configuration for w3gw."""
    provider_url: str = ""
    host: str = "0.0.0.0"
    port: int = 8545
    seed_phrase: str = Field(default="", repr=False)
    num_wallets: int = 5
    network: str | None = None
    log_level: str = "INFO"
    request_timeout: float = 30.0
    ethers: EthersConfig = Field(default_factory=EthersConfig)
    conflux: ConfluxConfig = Field(default_factory=ConfluxConfig)
    reef: ReefConfig = Field(default_factory=ReefConfig)

    @field_validator("num_wallets")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("at least one wallet address is required")
        return v

    model_config = SettingsConfigDict(
        env_prefix="W3GW_",
        env_nested_delimiter="__",
    )
