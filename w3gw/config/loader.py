"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from w3gw.config.schema import GatewayConfig


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".w3gw" / "config.json"


def load_config(config_path: Path | None = None, **overrides: Any) -> GatewayConfig:
    """
    Load configuration from file, environment and explicit overrides.

    Args:
        config_path: Optional path to a JSON config file (camelCase keys). Uses default if not provided.
        overrides: Values that win over both the file and the environment (None values are ignored).

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()
    data: dict[str, Any] = {}

    if path.exists():
        try:
            with open(path) as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must be a JSON object: {path}")
        data = convert_keys(raw)

    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    return GatewayConfig(**data)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case (`forceEip1559` -> `force_eip_1559`)."""
    result = []
    for i, char in enumerate(name):
        prev = name[i - 1] if i > 0 else ""
        if char.isupper() and prev and prev != "_":
            result.append("_")
        elif char.isdigit() and prev.isalpha():
            result.append("_")
        result.append(char.lower())
    return "".join(result)
