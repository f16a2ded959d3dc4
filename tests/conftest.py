"""Pytest hooks and fixtures."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest


class RpcFault:
    """Canned JSON-RPC error answer for FakeUpstream."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data


class FakeUpstream:
    """In-memory JSON-RPC node behind an httpx.MockTransport.

    `responses` maps a method to a result, an RpcFault, or a callable taking the params.
    Unknown methods answer -32601.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, list[Any]]] = []

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    def params_of(self, method: str) -> list[Any]:
        return [p for m, p in self.calls if m == method][-1]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body.get("params", [])
        self.calls.append((method, params))
        if method not in self.responses:
            answer: Any = RpcFault(-32601, f"the method {method} does not exist")
        else:
            answer = self.responses[method]
            if callable(answer):
                answer = answer(params)
        if isinstance(answer, RpcFault):
            error = {"code": answer.code, "message": answer.message}
            if answer.data is not None:
                error["data"] = answer.data
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": answer})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def yielding_transport(self) -> httpx.MockTransport:
        """Like `transport`, but each request yields to the event loop before it is answered."""

        async def handle(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0)
            return self._handle(request)

        return httpx.MockTransport(handle)


@pytest.fixture
def fake_upstream() -> Callable[..., FakeUpstream]:
    def _make(responses: dict[str, Any] | None = None) -> FakeUpstream:
        return FakeUpstream(responses)

    return _make


@pytest.fixture
def rpc_fault() -> type[RpcFault]:
    return RpcFault
