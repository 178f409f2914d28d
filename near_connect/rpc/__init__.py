"""
Resilient NEAR JSON-RPC client.

    - ``NearRpc``: endpoint pool with failover, pacing and adaptive timeout.
    - ``parse_response()``: pure JSON-RPC envelope classification.
    - ``JsonRpcTransport``: injectable transport protocol.
    - ``HttpxTransport``: default httpx-based transport.
"""

from near_connect.rpc.client import MAX_TIMEOUT, NearRpc, parse_response
from near_connect.rpc.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "MAX_TIMEOUT",
    "HttpxTransport",
    "JsonRpcTransport",
    "NearRpc",
    "parse_response",
]
