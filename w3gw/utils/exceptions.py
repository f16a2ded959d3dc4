"""
Exception hierarchy for the gateway.

Provides:
- A single GatewayError base carrying a JSON-RPC error code
- Failure kinds tagging every error raised by a wallet backend or the upstream transport
- Safe error message formatting (no seed phrase / key leak)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Failure kinds crossing the backend/router boundary."""
    NO_SIGNING_KEY = "no_signing_key"
    GAS_PRICE_EXCEEDED = "gas_price_exceeded"
    UNSUPPORTED_FILTER = "unsupported_filter"
    UPSTREAM_RPC = "upstream_rpc"
    UPSTREAM_EXECUTION = "upstream_execution"
    MALFORMED_UPSTREAM_RESPONSE = "malformed_upstream_response"
    CLAIM_FAILURE = "claim_failure"
    INVALID_REQUEST = "invalid_request"
    INVALID_PARAMS = "invalid_params"
    METHOD_NOT_FOUND = "method_not_found"


class GatewayError(Exception):
    """Base exception for all gateway errors. Always carries a JSON-RPC error code."""

    kind: ErrorKind = ErrorKind.UPSTREAM_EXECUTION

    def __init__(
        self,
        message: str,
        code: int = -32099,
        data: Any = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data
        self.reason = reason or message

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body

    def __str__(self) -> str:
        return self.message


class NoSigningKeyError(GatewayError):
    """The `from` address has no locally held key."""

    kind = ErrorKind.NO_SIGNING_KEY

    def __init__(self, address: str | None):
        self.address = address
        super().__init__(
            f"No private key available as to sign messages from '{address}'",
            code=-32000,
        )


class GasPriceExceededError(GatewayError):
    """Self-estimated gas price is above the configured ceiling."""

    kind = ErrorKind.GAS_PRICE_EXCEEDED

    def __init__(self, estimated: int, ceiling: int):
        self.estimated = estimated
        self.ceiling = ceiling
        super().__init__(
            f"Estimated gas price exceeds threshold ({estimated} > {ceiling})",
            code=-32099,
        )


class UnsupportedFilterError(GatewayError):
    """Only the mocked block filter can be polled."""

    kind = ErrorKind.UNSUPPORTED_FILTER

    def __init__(self, filter_id: Any):
        self.filter_id = filter_id
        super().__init__(f"Unsupported filter {filter_id}", code=-32500)


class UpstreamRpcError(GatewayError):
    """The upstream node answered with a JSON-RPC error object."""

    kind = ErrorKind.UPSTREAM_RPC

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message, code=code, data=data)


class UpstreamExecutionError(GatewayError):
    """Opaque failure reported by the node or SDK, with no error code of its own."""

    kind = ErrorKind.UPSTREAM_EXECUTION

    def __init__(self, message: str, data: Any = None):
        super().__init__(
            "Execution error" if data is not None else message,
            code=-32015,
            data=data,
            reason=message,
        )


class MalformedUpstreamResponseError(GatewayError):
    """The upstream error body could not be parsed as JSON."""

    kind = ErrorKind.MALFORMED_UPSTREAM_RESPONSE

    def __init__(self, body: str):
        self.body = body
        super().__init__("Invalid JSON response", code=-32700)


class ClaimFailureError(GatewayError):
    """Claiming a default EVM account for a keyring identity failed."""

    kind = ErrorKind.CLAIM_FAILURE

    def __init__(self, native_address: str, message: str):
        self.native_address = native_address
        super().__init__(
            f"Unable to claim EVM account for {native_address}: {message}",
            code=-32000,
            data={"address": native_address},
        )


class InvalidRequestError(GatewayError):
    """Inbound body is not a JSON-RPC request object."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str = "Invalid Request", code: int = -32600):
        super().__init__(message, code=code)


class InvalidParamsError(GatewayError):
    """Positional params do not fit the bound handler."""

    kind = ErrorKind.INVALID_PARAMS

    def __init__(self, method: str, detail: str):
        super().__init__(f"Invalid params for {method}: {detail}", code=-32602)


class MethodNotFoundError(GatewayError):
    """No handler and no upstream to forward the method to."""

    kind = ErrorKind.METHOD_NOT_FOUND

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"The method {method} does not exist/is not available", code=-32601)


_SENSITIVE_PATTERNS = [
    re.compile(r"(seed[_-]?phrase|mnemonic|private[_-]?key|secret|password)[=:]\s*['\"]?([^'\"\n]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"0x[0-9a-fA-F]{64}(?![0-9a-fA-F])"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
