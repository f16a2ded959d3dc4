"""HTTP surface: one FastAPI app per wallet backend, answering JSON-RPC over POST."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from w3gw import __version__
from w3gw.api.rpc.dispatch import RpcDispatcher
from w3gw.api.rpc.request_context import make_socket_context
from w3gw.wallets.base import WalletBackend

PARSE_ERROR = {"code": -32700, "message": "Parse error"}


def create_app(backend: WalletBackend) -> FastAPI:
    """Create the FastAPI application serving `backend`."""
    dispatcher = RpcDispatcher(backend)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting w3gw {} ({} wallet)", __version__, backend.name)
        await backend.setup()
        try:
            yield
        finally:
            await backend.close()
            logger.info("w3gw stopped")

    app = FastAPI(
        title="w3gw",
        description="JSON-RPC wallet gateway",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.backend = backend
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def handle(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("{}:{} <= Parse error: {!r}", *_client(request), raw[:256])
            return JSONResponse({"jsonrpc": "2.0", "id": None, "error": dict(PARSE_ERROR)})
        provider = backend.provider
        socket = make_socket_context(
            client=request.client,
            request=payload,
            server_id=provider.next_id if provider is not None else None,
        )
        return JSONResponse(await dispatcher.dispatch(payload, socket))

    app.add_api_route("/", handle, methods=["POST"])
    app.add_api_route("/{path:path}", handle, methods=["POST"])
    return app


def _client(request: Request) -> tuple[str | None, int | None]:
    if request.client is None:
        return None, None
    return request.client.host, request.client.port


def run_server(app: FastAPI, host: str = "0.0.0.0", port: int = 8545, log_level: str = "warning") -> None:
    """Run the gateway until interrupted."""
    uvicorn.run(
        app,
        host=host,
        port=port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=10,
        log_level=log_level,
    )
