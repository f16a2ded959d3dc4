"""Error boundary: converts anything raised during dispatch into a JSON-RPC error object."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from w3gw.api.rpc.request_context import SocketContext
from w3gw.utils.exceptions import MalformedUpstreamResponseError, sanitize_error_message

EXECUTION_ERROR_CODE = -32015
INVALID_JSON_ERROR = {"code": -32700, "message": "Invalid JSON response"}


def error_message(exc: BaseException) -> str:
    """Pick the human-readable message: reason, nested error reason, str(exc), fallback."""
    reason = getattr(exc, "reason", None)
    if reason:
        return str(reason)
    nested = getattr(exc, "error", None)
    if isinstance(nested, dict):
        nested_reason = nested.get("reason")
    else:
        nested_reason = getattr(nested, "reason", None)
    if nested_reason:
        return str(nested_reason)
    text = str(exc)
    return text or "null exception"


def _error_code(exc: BaseException) -> int | None:
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return None


def normalize_error(exc: BaseException, socket: SocketContext | None = None) -> dict[str, Any]:
    """
    Map an exception to `{code, message, data?}`.

    Errors already carrying an integer code pass through unchanged. Anything else is
    reported as an execution error (-32015). A body that cannot be serialized falls
    back to -32700.
    """
    if isinstance(exc, MalformedUpstreamResponseError):
        logger.error("{} <= Invalid JSON: {}", socket, exc.body)
        return dict(INVALID_JSON_ERROR)

    code = _error_code(exc)
    data = getattr(exc, "data", None)
    if code is not None:
        message = getattr(exc, "message", None) or error_message(exc)
        body: dict[str, Any] = {"code": code, "message": str(message)}
    else:
        message = "Execution error" if data is not None else sanitize_error_message(error_message(exc))
        body = {"code": EXECUTION_ERROR_CODE, "message": message}
    if data is not None:
        body["data"] = data

    try:
        json.dumps(body)
    except (TypeError, ValueError):
        logger.error("{} <= Invalid JSON: {!r}", socket, body)
        return dict(INVALID_JSON_ERROR)
    return body
