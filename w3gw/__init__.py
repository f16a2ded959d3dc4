"""w3gw - JSON-RPC wallet gateway in front of a blockchain provider."""

__version__ = "0.4.0"
__logo__ = "⛓"
