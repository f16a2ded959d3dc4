"""Upstream node, Substrate and block-explorer clients."""

from w3gw.providers.jsonrpc import JsonRpcProvider
from w3gw.providers.conflux import ConfluxProvider
from w3gw.providers.graph import GraphIndexClient

__all__ = ["JsonRpcProvider", "ConfluxProvider", "GraphIndexClient"]
