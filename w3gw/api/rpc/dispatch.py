"""Dispatch router: intercepted methods run locally, everything else is forwarded upstream."""

from __future__ import annotations

import inspect
from typing import Any

from loguru import logger

from w3gw.api.rpc.error_boundary import normalize_error
from w3gw.api.rpc.request_context import SocketContext
from w3gw.utils.exceptions import InvalidParamsError, InvalidRequestError
from w3gw.utils.helpers import truncate
from w3gw.wallets.base import RpcHandler, WalletBackend


def bind_params(method: str, handler: RpcHandler, params: list[Any], socket: SocketContext | None) -> inspect.BoundArguments:
    """Bind positional JSON-RPC params to a handler; the socket context goes by keyword."""
    signature = inspect.signature(handler)
    kwargs = {"socket": socket} if "socket" in signature.parameters else {}
    try:
        bound = signature.bind(*params, **kwargs)
    except TypeError as e:
        raise InvalidParamsError(method, str(e)) from e
    return bound


def envelope(request: Any, *, result: Any = None, error: dict[str, Any] | None = None) -> dict[str, Any]:
    """Response object echoing the request's `jsonrpc` and `id` members."""
    body: dict[str, Any] = {
        "jsonrpc": request.get("jsonrpc", "2.0") if isinstance(request, dict) else "2.0",
        "id": request.get("id") if isinstance(request, dict) else None,
    }
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    return body


class RpcDispatcher:
    """Routes one JSON-RPC request to a backend handler or to the upstream provider."""

    def __init__(self, backend: WalletBackend):
        self.backend = backend
        self.methods: dict[str, RpcHandler] = backend.rpc_methods()

    def is_intercepted(self, method: str) -> bool:
        return method in self.methods

    async def execute(self, method: str, params: list[Any], socket: SocketContext | None = None) -> Any:
        handler = self.methods.get(method)
        if handler is None:
            return await self.backend.forward(method, params)
        bound = bind_params(method, handler, params, socket)
        return await handler(*bound.args, **bound.kwargs)

    async def dispatch(self, request: Any, socket: SocketContext | None = None) -> dict[str, Any]:
        """Answer one request. Never raises: failures become the envelope's `error` member."""
        try:
            if not isinstance(request, dict):
                raise InvalidRequestError()
            method = request.get("method")
            if not isinstance(method, str) or not method:
                raise InvalidRequestError()
            params = request.get("params")
            if params is None:
                params = []
            elif not isinstance(params, list):
                raise InvalidParamsError(method, "positional params expected")

            logger.info("{} >> {}", socket, method)
            result = await self.execute(method, params, socket)
        except Exception as e:
            error = normalize_error(e, socket)
            logger.warning("{} <= Error: {}", socket, error)
            return envelope(request, error=error)

        logger.debug("{} << {}", socket, truncate(result))
        return envelope(request, result=result)
