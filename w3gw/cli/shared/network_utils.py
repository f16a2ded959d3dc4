"""Bind-address helpers for the serve commands.

`--host` accepts anything uvicorn does: IPv4 and IPv6 literals, `localhost`, or a
hostname. The port check resolves the host the same way so an IPv6 or dual-stack
bind is not tested against the wrong address family.
"""

from __future__ import annotations

import errno
import ipaddress
import socket


def bind_addresses(host: str, port: int) -> list[tuple[int, tuple]]:
    """(family, sockaddr) pairs a listener on `host:port` would bind, in resolver order."""
    infos = socket.getaddrinfo(host or None, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
    seen: list[tuple[int, tuple]] = []
    for family, _, _, _, sockaddr in infos:
        if family in (socket.AF_INET, socket.AF_INET6) and (family, sockaddr) not in seen:
            seen.append((family, sockaddr))
    return seen


def is_port_in_use(host: str, port: int) -> bool:
    """Return True if any address `host` resolves to already has `port` bound."""
    for family, sockaddr in bind_addresses(host, port):
        with socket.socket(family, socket.SOCK_STREAM) as s:
            if family == socket.AF_INET6:
                s.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
            try:
                s.bind(sockaddr)
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    return True
                if e.errno == errno.EADDRNOTAVAIL:
                    # e.g. `localhost` resolving to ::1 on a host without IPv6
                    continue
                raise
    return False


def listen_url(host: str, port: int) -> str:
    """Base URL for the banner; IPv6 literals are bracketed."""
    try:
        literal = ipaddress.ip_address(host)
    except ValueError:
        return f"http://{host}:{port}/"
    if literal.version == 6:
        return f"http://[{host}]:{port}/"
    return f"http://{host}:{port}/"
