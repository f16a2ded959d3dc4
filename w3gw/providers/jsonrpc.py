"""
Upstream JSON-RPC provider

Async JSON-RPC 2.0 client used both for forwarding and for the backends' own queries.
"""

from __future__ import annotations

import itertools
import json
from typing import Any, Optional

import httpx
from loguru import logger

from w3gw.utils.exceptions import MalformedUpstreamResponseError, UpstreamRpcError


class JsonRpcProvider:
    """JSON-RPC client over HTTP(S)"""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        """
        Initialize provider.

        Args:
            url: Upstream JSON-RPC endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            headers: Extra HTTP headers sent with every request
        """
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._headers = headers or {}
        self._ids = itertools.count(1)
        self._next_id = 1
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def next_id(self) -> int:
        """Id the next outgoing request will carry."""
        return self._next_id

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"content-type": "application/json", **self._headers},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """
        Send one JSON-RPC request and return its `result`.

        Raises:
            UpstreamRpcError: the node answered with an `error` member
            MalformedUpstreamResponseError: the body is not a JSON-RPC response
            httpx.HTTPError: transport failures and timeouts
        """
        client = await self._get_client()
        request_id = next(self._ids)
        self._next_id = request_id + 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params or []),
            "id": request_id,
        }
        resp = await client.post(self.url, json=payload)
        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            resp.raise_for_status()
            raise MalformedUpstreamResponseError(resp.text)

        if not isinstance(body, dict):
            raise MalformedUpstreamResponseError(resp.text)

        error = body.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise MalformedUpstreamResponseError(resp.text)
            logger.debug("upstream {} failed: {}", method, error)
            raise UpstreamRpcError(
                int(error.get("code", -32603)),
                str(error.get("message", "")),
                error.get("data"),
            )
        if "result" not in body:
            resp.raise_for_status()
            raise MalformedUpstreamResponseError(resp.text)
        return body["result"]

    async def detect_network(self) -> int:
        """Return the upstream chain id."""
        return int(await self.send("eth_chainId"), 16)
