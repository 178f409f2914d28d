"""
Transport protocol for NEAR JSON-RPC calls.

Defines the seam where the concrete HTTP implementation plugs in. The RPC
client depends on this protocol, not on httpx directly, so tests can swap
in a fake that fails on demand without touching retry logic.

Contract:
    ``post_json(url, payload, timeout)`` returns the parsed JSON body of a
    2xx response. Every transport-level failure is raised as one of:

        - TimeoutNetworkError: no response within ``timeout`` seconds.
        - NetworkError(status=0): connection refused, DNS, TLS, reset.
        - NetworkError(status=N): non-2xx HTTP status N.
        - NetworkError(status=N): 2xx body that is not a JSON object.

    Anything else escaping a transport is a bug, not an endpoint failure,
    and is not retried by the client.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx

from near_connect.errors import NetworkError, TimeoutNetworkError

RPC_NETWORK_ERROR = "RPC Network Error"


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        timeout: float,
    ) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Args:
            url: The JSON-RPC endpoint URL.
            payload: The JSON-RPC request body (jsonrpc, id, method, params).
            timeout: Per-request timeout in seconds.

        Raises:
            NetworkError: On transport-level failures (see module docs).
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Args:
        headers: Extra headers sent with every request.
    """

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self._headers = headers or {}

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        timeout: float,
    ) -> dict[str, Any]:
        """Send JSON-RPC request via httpx."""
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", **self._headers},
                )
        except httpx.TimeoutException as e:
            raise TimeoutNetworkError(RPC_NETWORK_ERROR) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                0,
                RPC_NETWORK_ERROR,
                f"Unknown Near RPC Error, maybe connection unstable: {e}",
            ) from e

        if not response.is_success:
            raise NetworkError(response.status_code, RPC_NETWORK_ERROR, response.text or "Unknown error")

        try:
            result = response.json()
        except ValueError as e:
            raise NetworkError(
                response.status_code,
                RPC_NETWORK_ERROR,
                f"Response was not valid JSON: {response.text[:200]}",
            ) from e

        if not isinstance(result, dict):
            raise NetworkError(
                response.status_code,
                RPC_NETWORK_ERROR,
                f"Response JSON was not an object: {type(result).__name__}",
            )
        return result
