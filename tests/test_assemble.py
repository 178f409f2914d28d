"""
Tests for transaction assembly against a fake RPC.

Test plan:
- Single: nonce = access key nonce + 1, block hash from final block
- Batch: one base nonce for the whole batch, transaction i gets
  base + 1 + i in input order; block and nonce fetched once each
- Without a public key: placeholder key, nonces start at 1, no
  access key lookup
- Mixed signers with a key are rejected; empty batch is a no-op
- Intent validation: empty ids rejected, actions coerced to tuple
"""

from typing import Any

import base58
import pytest

from near_connect.actions import FunctionCall, Transfer
from near_connect.keys import KeyPair
from near_connect.tx import TransactionIntent, assemble, assemble_batch

BLOCK_HASH = base58.b58encode(b"\x07" * 32).decode()

# ---------------------------------------------------------------------------
# Fake RPC
# ---------------------------------------------------------------------------


class FakeRpc:
    """Answers block and view_access_key from fixed values."""

    def __init__(self, nonce: int = 7) -> None:
        self.nonce = nonce
        self.block_calls: list[str] = []
        self.access_key_calls: list[tuple[str, str]] = []

    async def block(self, finality: str = "final", block_id: Any = None) -> dict[str, Any]:
        self.block_calls.append(finality)
        return {"header": {"hash": BLOCK_HASH, "height": 100}}

    async def view_access_key(self, account_id: str, public_key: str, finality: str = "optimistic") -> dict[str, Any]:
        self.access_key_calls.append((account_id, public_key))
        return {"nonce": self.nonce, "permission": "FullAccess", "block_hash": BLOCK_HASH}


def _intent(receiver: str = "app.near", signer: str = "alice.near") -> TransactionIntent:
    return TransactionIntent(signer, receiver, (FunctionCall("m"),))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestAssemble:
    @pytest.mark.asyncio
    async def test_single_nonce_and_block(self) -> None:
        rpc = FakeRpc(nonce=41)
        key = KeyPair.from_random().public_key

        tx = await assemble(rpc, _intent(), public_key=key)

        assert tx.nonce == 42
        assert tx.block_hash == BLOCK_HASH
        assert tx.public_key == key
        assert rpc.block_calls == ["final"]
        assert rpc.access_key_calls == [("alice.near", key)]

    @pytest.mark.asyncio
    async def test_intent_preserved(self) -> None:
        intent = _intent()
        tx = await assemble(FakeRpc(), intent, public_key=KeyPair.from_random().public_key)
        assert tx.intent == intent


class TestAssembleBatch:
    @pytest.mark.asyncio
    async def test_batch_nonces_follow_input_order(self) -> None:
        rpc = FakeRpc(nonce=7)
        key = KeyPair.from_random().public_key
        intents = [_intent("a.near"), _intent("b.near"), _intent("c.near")]

        txs = await assemble_batch(rpc, intents, public_key=key)

        assert [tx.nonce for tx in txs] == [8, 9, 10]
        assert [tx.receiver_id for tx in txs] == ["a.near", "b.near", "c.near"]
        assert len(rpc.block_calls) == 1
        assert len(rpc.access_key_calls) == 1

    @pytest.mark.asyncio
    async def test_without_key_uses_placeholder(self) -> None:
        rpc = FakeRpc()

        txs = await assemble_batch(rpc, [_intent(), _intent()])

        assert [tx.nonce for tx in txs] == [1, 2]
        assert txs[0].public_key.startswith("ed25519:")
        assert txs[0].public_key == txs[1].public_key
        assert rpc.access_key_calls == []

    @pytest.mark.asyncio
    async def test_mixed_signers_rejected(self) -> None:
        key = KeyPair.from_random().public_key
        with pytest.raises(ValueError, match="share one signer"):
            await assemble_batch(FakeRpc(), [_intent(signer="a.near"), _intent(signer="b.near")], public_key=key)

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        rpc = FakeRpc()
        assert await assemble_batch(rpc, []) == []
        assert rpc.block_calls == []


class TestTransactionIntent:
    def test_empty_signer_rejected(self) -> None:
        with pytest.raises(ValueError, match="signer_id"):
            TransactionIntent("", "app.near", ())

    def test_empty_receiver_rejected(self) -> None:
        with pytest.raises(ValueError, match="receiver_id"):
            TransactionIntent("alice.near", "", ())

    def test_actions_coerced_to_tuple(self) -> None:
        intent = TransactionIntent("alice.near", "bob.near", [Transfer(1)])  # type: ignore[arg-type]
        assert intent.actions == (Transfer(1),)
