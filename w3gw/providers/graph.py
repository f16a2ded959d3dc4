"""
Block-explorer index client

Read-only GraphQL queries against the chain indexer (Reef explorer / Subsquid).
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from w3gw.utils.exceptions import MalformedUpstreamResponseError, UpstreamExecutionError


class GraphIndexClient:
    """Minimal GraphQL-over-HTTP client"""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def query(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run a query and return its `data` member."""
        client = await self._get_client()
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        resp = await client.post(self.url, json=payload)
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError:
            raise MalformedUpstreamResponseError(resp.text)
        if body.get("errors"):
            logger.warning("graph query failed: {}", body["errors"])
            raise UpstreamExecutionError("Graph index query failed", data=body["errors"])
        return body.get("data") or {}
