"""Configuration module for w3gw."""

from w3gw.config.loader import load_config, get_config_path
from w3gw.config.schema import ConfluxConfig, EthersConfig, GatewayConfig, ReefConfig

__all__ = ["GatewayConfig", "EthersConfig", "ConfluxConfig", "ReefConfig", "load_config", "get_config_path"]
