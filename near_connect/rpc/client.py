"""
NEAR JSON-RPC client with endpoint failover and adaptive timeout.

One ``NearRpc`` instance owns one endpoint pool: the ordered provider
list, the index of the provider currently in use, and the current
timeout. Only the client's own retry loop mutates that state, so two
instances (e.g. mainnet and testnet) never interfere and need no locks.

Retry policy:
    - Success: timeout shrinks toward its starting value (÷1.2, floored).
    - TimeoutNetworkError: timeout grows (×1.2, capped at 60s).
    - Any NetworkError: rotate to the next provider (wrapping), wait
      ``max(0, 0.5s * (failures - 1) - elapsed)`` and retry. After
      ``len(providers) * tries_per_provider`` attempts the last error is
      raised.
    - RpcError (endpoint answered, chain said no): raised immediately.
      The endpoint is healthy, so the index does not move.

Response parsing targets nearcore conventions:
    - Success: {"result": ...}
    - Structured error: {"error": {"data": {"error_type", "error_message"}}}
    - Legacy error: {"error": {"code", "message", "data": "...", "name"}}
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from near_connect.config import DEFAULT_RPC_TIMEOUT, MAINNET
from near_connect.errors import NetworkError, RpcError, TimeoutNetworkError
from near_connect.rpc.transport import HttpxTransport, JsonRpcTransport

logger = logging.getLogger(__name__)

MAX_TIMEOUT = 60.0
TIMEOUT_FACTOR = 1.2
RETRY_PACING = 0.5
DEFAULT_TRIES_PER_PROVIDER = 3
DEFAULT_WAIT_UNTIL = "EXECUTED_OPTIMISTIC"
TIMEOUT_ERROR_TYPE = "TimeoutError"


class NearRpc:
    """JSON-RPC client over a pool of interchangeable endpoints.

    Args:
        providers: Ordered endpoint URLs. Empty or None falls back to the
            mainnet defaults.
        timeout: Starting (and minimum) per-request timeout in seconds.
        tries_per_provider: Attempt budget per provider.
        increment_timeout: Grow the timeout after a request times out.
        transport: Injectable transport. Defaults to HttpxTransport.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        providers: Sequence[str] | None = None,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        tries_per_provider: int = DEFAULT_TRIES_PER_PROVIDER,
        increment_timeout: bool = True,
        transport: JsonRpcTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if tries_per_provider < 1:
            raise ValueError(f"tries_per_provider must be >= 1, got: {tries_per_provider}")
        self.providers: list[str] = list(providers) if providers else list(MAINNET.providers)
        self.current_index = 0
        self.timeout = timeout
        self.start_timeout = timeout
        self._tries_per_provider = tries_per_provider
        self._increment_timeout = increment_timeout
        self._transport = transport or HttpxTransport()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._request_ids = itertools.count(123)

    @property
    def current_provider(self) -> str:
        return self.providers[self.current_index]

    # -----------------------------------------------------------------
    # Chain methods
    # -----------------------------------------------------------------

    async def block(self, finality: str = "final", block_id: int | str | None = None) -> dict[str, Any]:
        """Fetch a block by finality, or by height/hash when block_id is given."""
        params: dict[str, Any] = {"block_id": block_id} if block_id is not None else {"finality": finality}
        return await self.send_json_rpc("block", params)

    async def query(self, params: dict[str, Any]) -> Any:
        return await self.send_json_rpc("query", params)

    async def view_access_key(
        self,
        account_id: str,
        public_key: str,
        finality: str = "optimistic",
    ) -> dict[str, Any]:
        """Access key state (nonce, permission) for ``public_key`` on ``account_id``."""
        return await self.query(
            {
                "request_type": "view_access_key",
                "account_id": account_id,
                "public_key": public_key,
                "finality": finality,
            }
        )

    async def view_method(
        self,
        contract_id: str,
        method_name: str,
        args: Any = None,
        finality: str = "optimistic",
    ) -> Any:
        """Call a view method and decode its JSON result."""
        payload = json.dumps(args if args is not None else {}, separators=(",", ":")).encode("utf-8")
        data = await self.query(
            {
                "request_type": "call_function",
                "account_id": contract_id,
                "method_name": method_name,
                "args_base64": base64.b64encode(payload).decode("ascii"),
                "finality": finality,
            }
        )
        return json.loads(bytes(data["result"]).decode("utf-8"))

    async def tx_status(
        self,
        tx_hash: str,
        sender_account_id: str,
        wait_until: str | None = None,
    ) -> Any:
        params: dict[str, Any] = {"tx_hash": tx_hash, "sender_account_id": sender_account_id}
        if wait_until is not None:
            params["wait_until"] = wait_until
        return await self.send_json_rpc("tx", params)

    async def send_transaction(self, signed_tx: bytes, wait_until: str = DEFAULT_WAIT_UNTIL) -> Any:
        """Submit Borsh-encoded SignedTransaction bytes via ``send_tx``."""
        return await self.send_json_rpc(
            "send_tx",
            {
                "signed_tx_base64": base64.b64encode(signed_tx).decode("ascii"),
                "wait_until": wait_until,
            },
        )

    async def broadcast_tx_commit(self, signed_tx: bytes) -> Any:
        """Submit and wait for the final outcome (legacy positional form)."""
        return await self.send_json_rpc("broadcast_tx_commit", [base64.b64encode(signed_tx).decode("ascii")])

    # -----------------------------------------------------------------
    # Retry loop
    # -----------------------------------------------------------------

    async def send_json_rpc(self, method: str, params: Any) -> Any:
        """Send one JSON-RPC call with endpoint failover.

        Raises:
            RpcError: The chain rejected the call (not retried).
            NetworkError: Every attempt in the budget failed at transport level.
        """
        budget = len(self.providers) * self._tries_per_provider
        failures = 0

        while True:
            url = self.providers[self.current_index]
            started = self._clock()
            try:
                result = await self._send(method, params, url, self.timeout)
            except NetworkError as e:
                if isinstance(e, TimeoutNetworkError) and self._increment_timeout:
                    self.timeout = min(MAX_TIMEOUT, self.timeout * TIMEOUT_FACTOR)

                self.current_index = (self.current_index + 1) % len(self.providers)
                failures += 1
                if failures >= budget:
                    logger.warning("RPC %s failed on all providers after %d attempts: %s", method, failures, e)
                    raise

                logger.warning(
                    "RPC %s failed on %s (%s), retrying on %s",
                    method,
                    url,
                    e,
                    self.providers[self.current_index],
                )
                delay = RETRY_PACING * (failures - 1) - (self._clock() - started)
                if delay > 0:
                    await self._sleep(delay)
                continue

            self.timeout = max(self.start_timeout, self.timeout / TIMEOUT_FACTOR)
            return result

    async def _send(self, method: str, params: Any, url: str, timeout: float) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        response = await self._transport.post_json(url, payload, timeout)
        return parse_response(response)


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _is_timeout_message(message: str) -> bool:
    lowered = message.lower()
    return "timeout" in lowered or "timed out" in lowered


def parse_response(response: dict[str, Any]) -> Any:
    """Return ``result`` from a JSON-RPC response or raise RpcError.

    Classification:
        - error.data is an object with string error_type/error_message:
          RpcError(error_message, error_type).
        - error.data is any other object: RpcError(json, "ServerError").
        - otherwise the message "[code] message: data" with type
          error.name (or "UntypedError"); any mention of a timeout is
          collapsed to type "TimeoutError".
    """
    error = response.get("error")
    if not error:
        return response.get("result")

    if not isinstance(error, dict):
        raise RpcError(str(error), "UntypedError")

    data = error.get("data")
    if isinstance(data, dict):
        if isinstance(data.get("error_message"), str) and isinstance(data.get("error_type"), str):
            raise RpcError(data["error_message"], data["error_type"])
        raise RpcError(json.dumps(data), "ServerError")

    message = f"[{error.get('code')}] {error.get('message')}: {data}"
    if data == "Timeout" or _is_timeout_message(message):
        raise RpcError(message, TIMEOUT_ERROR_TYPE)
    raise RpcError(message, error.get("name") or "UntypedError")
