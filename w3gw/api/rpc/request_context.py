"""Request-scoped metadata carried through dispatch for logging and error attribution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class SocketContext:
    """Per-call metadata of an inbound JSON-RPC request."""

    client_addr: str | None = None
    client_port: int | None = None
    request_id: Any = None
    server_id: int | None = None

    def __str__(self) -> str:
        addr = self.client_addr or "-"
        port = self.client_port if self.client_port is not None else "-"
        return f"{addr}:{port} #{self.request_id}"


def make_socket_context(
    *,
    client: Any,
    request: Any,
    server_id: int | None = None,
) -> SocketContext:
    """Build a SocketContext from a Starlette client tuple and the parsed request body."""
    host = getattr(client, "host", None) if client is not None else None
    port = getattr(client, "port", None) if client is not None else None
    request_id = request.get("id") if isinstance(request, dict) else None
    return SocketContext(client_addr=host, client_port=port, request_id=request_id, server_id=server_id)
