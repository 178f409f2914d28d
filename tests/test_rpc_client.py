"""
Tests for NearRpc: endpoint failover, pacing, adaptive timeout, parsing.

Uses a ScriptedTransport that fails a fixed number of times before
answering, recording the URL and timeout of every attempt. Sleep and
clock are injected so no test actually waits.

Test plan:
- Rotation: k < N*T transport failures succeed and the client ends on
  the endpoint that answered; k = N*T failures raise the last error
- Pacing: wait 0.5 * (failures - 1) minus elapsed, never negative
- Timeout: grows x1.2 on timeout (capped at 60s), shrinks back on
  success (floored at the start timeout); growth can be disabled
- Application errors: RpcError raised after one attempt, index unchanged
- Chain methods: payload shape for block, view_access_key, view_method,
  tx_status, send_transaction, broadcast_tx_commit
- parse_response: structured, server, legacy, untyped, timeout errors
"""

import base64
import json
from typing import Any

import pytest

from near_connect.errors import NetworkError, RpcError, TimeoutNetworkError
from near_connect.rpc import MAX_TIMEOUT, NearRpc, parse_response

PROVIDERS = ["https://a.example", "https://b.example", "https://c.example"]

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedTransport:
    """Raises the scripted errors in order, then answers with ``response``."""

    def __init__(self, errors: list[Exception] | None = None, response: dict[str, Any] | None = None) -> None:
        self._errors = list(errors or [])
        self._response = response if response is not None else {"jsonrpc": "2.0", "id": 1, "result": "ok"}
        self.calls: list[tuple[str, dict[str, Any], float]] = []

    async def post_json(self, url: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        self.calls.append((url, payload, timeout))
        if self._errors:
            raise self._errors.pop(0)
        return self._response


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _network_errors(count: int) -> list[Exception]:
    return [NetworkError(502, "RPC Network Error", "bad gateway") for _ in range(count)]


def _rpc(transport: ScriptedTransport, **kwargs: Any) -> tuple[NearRpc, RecordingSleep]:
    sleep = RecordingSleep()
    kwargs.setdefault("tries_per_provider", 2)
    rpc = NearRpc(PROVIDERS, transport=transport, sleep=sleep, clock=lambda: 0.0, **kwargs)
    return rpc, sleep


# ---------------------------------------------------------------------------
# Rotation and retry budget
# ---------------------------------------------------------------------------


class TestRotation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [0, 1, 2, 4, 5])
    async def test_succeeds_below_budget(self, failures: int) -> None:
        transport = ScriptedTransport(_network_errors(failures))
        rpc, _ = _rpc(transport)

        assert await rpc.send_json_rpc("status", []) == "ok"

        assert len(transport.calls) == failures + 1
        assert rpc.current_index == failures % len(PROVIDERS)
        assert transport.calls[-1][0] == PROVIDERS[rpc.current_index]

    @pytest.mark.asyncio
    async def test_rotates_through_providers_in_order(self) -> None:
        transport = ScriptedTransport(_network_errors(4))
        rpc, _ = _rpc(transport)

        await rpc.send_json_rpc("status", [])

        urls = [url for url, _, _ in transport.calls]
        assert urls == [PROVIDERS[0], PROVIDERS[1], PROVIDERS[2], PROVIDERS[0], PROVIDERS[1]]

    @pytest.mark.asyncio
    async def test_budget_exhausted_raises_last_error(self) -> None:
        errors = _network_errors(6)
        transport = ScriptedTransport(errors)
        rpc, _ = _rpc(transport)

        with pytest.raises(NetworkError) as exc_info:
            await rpc.send_json_rpc("status", [])

        assert exc_info.value is errors[-1]
        assert len(transport.calls) == 6

    @pytest.mark.asyncio
    async def test_state_persists_across_calls(self) -> None:
        transport = ScriptedTransport(_network_errors(1))
        rpc, _ = _rpc(transport)

        await rpc.send_json_rpc("status", [])
        await rpc.send_json_rpc("status", [])

        assert [url for url, _, _ in transport.calls] == [PROVIDERS[0], PROVIDERS[1], PROVIDERS[1]]

    def test_empty_providers_fall_back_to_mainnet(self) -> None:
        rpc = NearRpc([])
        assert rpc.providers
        assert rpc.current_provider == rpc.providers[0]

    def test_invalid_tries_rejected(self) -> None:
        with pytest.raises(ValueError):
            NearRpc(PROVIDERS, tries_per_provider=0)


class TestPacing:
    @pytest.mark.asyncio
    async def test_linear_backoff(self) -> None:
        transport = ScriptedTransport(_network_errors(3))
        rpc, sleep = _rpc(transport)

        await rpc.send_json_rpc("status", [])

        assert sleep.delays == pytest.approx([0.5, 1.0])

    @pytest.mark.asyncio
    async def test_elapsed_time_is_subtracted(self) -> None:
        ticks = iter([0.0, 0.3, 10.0, 10.2, 20.0])
        transport = ScriptedTransport(_network_errors(2))
        sleep = RecordingSleep()
        rpc = NearRpc(PROVIDERS, transport=transport, sleep=sleep, clock=lambda: next(ticks))

        await rpc.send_json_rpc("status", [])

        # First failure: 0 - 0.3 < 0, no wait. Second: 0.5 - 0.2.
        assert sleep.delays == pytest.approx([0.3])


# ---------------------------------------------------------------------------
# Adaptive timeout
# ---------------------------------------------------------------------------


class TestTimeout:
    @pytest.mark.asyncio
    async def test_grows_on_timeout_and_shrinks_on_success(self) -> None:
        transport = ScriptedTransport([TimeoutNetworkError("t"), TimeoutNetworkError("t")])
        rpc, _ = _rpc(transport, timeout=10.0)

        await rpc.send_json_rpc("status", [])

        assert [t for _, _, t in transport.calls] == pytest.approx([10.0, 12.0, 14.4])
        assert rpc.timeout == pytest.approx(12.0)

    @pytest.mark.asyncio
    async def test_never_below_start(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport, timeout=10.0)

        await rpc.send_json_rpc("status", [])

        assert rpc.timeout == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_capped_at_max(self) -> None:
        transport = ScriptedTransport([TimeoutNetworkError("t"), TimeoutNetworkError("t")])
        rpc, _ = _rpc(transport, timeout=55.0)

        await rpc.send_json_rpc("status", [])

        assert transport.calls[1][2] == pytest.approx(MAX_TIMEOUT)
        assert transport.calls[2][2] == pytest.approx(MAX_TIMEOUT)

    @pytest.mark.asyncio
    async def test_growth_can_be_disabled(self) -> None:
        transport = ScriptedTransport([TimeoutNetworkError("t")])
        rpc, _ = _rpc(transport, timeout=10.0, increment_timeout=False)

        await rpc.send_json_rpc("status", [])

        assert [t for _, _, t in transport.calls] == pytest.approx([10.0, 10.0])

    @pytest.mark.asyncio
    async def test_plain_network_error_keeps_timeout(self) -> None:
        transport = ScriptedTransport(_network_errors(1))
        rpc, _ = _rpc(transport, timeout=10.0)

        await rpc.send_json_rpc("status", [])

        assert [t for _, _, t in transport.calls] == pytest.approx([10.0, 10.0])


# ---------------------------------------------------------------------------
# Application errors
# ---------------------------------------------------------------------------


class TestApplicationErrors:
    @pytest.mark.asyncio
    async def test_rpc_error_not_retried(self) -> None:
        response = {
            "error": {
                "code": -32000,
                "message": "Server error",
                "data": {"error_type": "AccessKeyDoesNotExist", "error_message": "no such key"},
            }
        }
        transport = ScriptedTransport(response=response)
        rpc, sleep = _rpc(transport)

        with pytest.raises(RpcError) as exc_info:
            await rpc.send_json_rpc("query", {})

        assert exc_info.value.type == "AccessKeyDoesNotExist"
        assert len(transport.calls) == 1
        assert rpc.current_index == 0
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_rpc_error_after_network_error_keeps_new_index(self) -> None:
        transport = ScriptedTransport(_network_errors(1), response={"error": {"code": 1, "message": "bad"}})
        rpc, _ = _rpc(transport)

        with pytest.raises(RpcError):
            await rpc.send_json_rpc("query", {})

        assert rpc.current_index == 1


# ---------------------------------------------------------------------------
# Chain methods
# ---------------------------------------------------------------------------


class TestChainMethods:
    @pytest.mark.asyncio
    async def test_request_envelope_and_ids(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport)

        await rpc.block()
        await rpc.block(block_id=5)

        first, second = transport.calls[0][1], transport.calls[1][1]
        assert first == {"jsonrpc": "2.0", "id": 123, "method": "block", "params": {"finality": "final"}}
        assert second["id"] == 124
        assert second["params"] == {"block_id": 5}

    @pytest.mark.asyncio
    async def test_view_access_key(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport)

        await rpc.view_access_key("alice.near", "ed25519:abc")

        payload = transport.calls[0][1]
        assert payload["method"] == "query"
        assert payload["params"] == {
            "request_type": "view_access_key",
            "account_id": "alice.near",
            "public_key": "ed25519:abc",
            "finality": "optimistic",
        }

    @pytest.mark.asyncio
    async def test_view_method_encodes_args_and_decodes_result(self) -> None:
        result = list(json.dumps({"greeting": "hi"}).encode())
        transport = ScriptedTransport(response={"result": {"result": result}})
        rpc, _ = _rpc(transport)

        value = await rpc.view_method("app.near", "get", {"a": 1})

        params = transport.calls[0][1]["params"]
        assert params["request_type"] == "call_function"
        assert base64.b64decode(params["args_base64"]) == b'{"a":1}'
        assert value == {"greeting": "hi"}

    @pytest.mark.asyncio
    async def test_tx_status(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport)

        await rpc.tx_status("HASH", "alice.near", "NONE")

        payload = transport.calls[0][1]
        assert payload["method"] == "tx"
        assert payload["params"] == {"tx_hash": "HASH", "sender_account_id": "alice.near", "wait_until": "NONE"}

    @pytest.mark.asyncio
    async def test_send_transaction(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport)

        await rpc.send_transaction(b"\x01\x02")

        payload = transport.calls[0][1]
        assert payload["method"] == "send_tx"
        assert payload["params"] == {
            "signed_tx_base64": base64.b64encode(b"\x01\x02").decode(),
            "wait_until": "EXECUTED_OPTIMISTIC",
        }

    @pytest.mark.asyncio
    async def test_broadcast_tx_commit_positional(self) -> None:
        transport = ScriptedTransport()
        rpc, _ = _rpc(transport)

        await rpc.broadcast_tx_commit(b"\x01")

        assert transport.calls[0][1]["params"] == [base64.b64encode(b"\x01").decode()]


# ---------------------------------------------------------------------------
# parse_response
# ---------------------------------------------------------------------------


class TestParseResponse:
    def test_result(self) -> None:
        assert parse_response({"result": {"x": 1}}) == {"x": 1}

    def test_structured_error(self) -> None:
        with pytest.raises(RpcError) as exc_info:
            parse_response({"error": {"data": {"error_type": "InvalidNonce", "error_message": "nonce too low"}}})
        assert exc_info.value.type == "InvalidNonce"
        assert exc_info.value.message == "nonce too low"

    def test_other_object_data_is_server_error(self) -> None:
        with pytest.raises(RpcError) as exc_info:
            parse_response({"error": {"code": -32000, "data": {"TxExecutionError": {}}}})
        assert exc_info.value.type == "ServerError"
        assert "TxExecutionError" in exc_info.value.message

    def test_legacy_error_uses_name(self) -> None:
        with pytest.raises(RpcError) as exc_info:
            parse_response(
                {"error": {"code": -32000, "message": "Server error", "data": "details", "name": "HANDLER_ERROR"}}
            )
        assert exc_info.value.type == "HANDLER_ERROR"
        assert exc_info.value.message == "[-32000] Server error: details"

    def test_legacy_error_without_name_is_untyped(self) -> None:
        with pytest.raises(RpcError) as exc_info:
            parse_response({"error": {"code": -32600, "message": "Invalid request"}})
        assert exc_info.value.type == "UntypedError"

    @pytest.mark.parametrize("data", ["Timeout", "request timed out", "Timeout while waiting"])
    def test_timeout_mentions_collapse(self, data: str) -> None:
        with pytest.raises(RpcError) as exc_info:
            parse_response({"error": {"code": -32000, "message": "Server error", "data": data}})
        assert exc_info.value.type == "TimeoutError"
