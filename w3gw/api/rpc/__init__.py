"""JSON-RPC dispatch, request context and error normalization."""
