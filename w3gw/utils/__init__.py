"""Utility functions for w3gw."""

from w3gw.utils.helpers import from_quantity, scale, to_quantity, truncate
from w3gw.utils.exceptions import (
    GatewayError,
    ErrorKind,
    NoSigningKeyError,
    GasPriceExceededError,
    UnsupportedFilterError,
    UpstreamRpcError,
    UpstreamExecutionError,
    MalformedUpstreamResponseError,
    ClaimFailureError,
    InvalidRequestError,
    InvalidParamsError,
    MethodNotFoundError,
    sanitize_error_message,
)

__all__ = [
    "from_quantity",
    "scale",
    "to_quantity",
    "truncate",
    "GatewayError",
    "ErrorKind",
    "NoSigningKeyError",
    "GasPriceExceededError",
    "UnsupportedFilterError",
    "UpstreamRpcError",
    "UpstreamExecutionError",
    "MalformedUpstreamResponseError",
    "ClaimFailureError",
    "InvalidRequestError",
    "InvalidParamsError",
    "MethodNotFoundError",
    "sanitize_error_message",
]
