"""
Transaction assembly: intent plus chain state.

A ``TransactionIntent`` is what the caller asks for (signer, receiver,
actions). ``assemble`` / ``assemble_batch`` enrich it with the state the
chain requires before anything can be signed:

    - block_hash: hash of the latest final block.
    - public_key + nonce: the access key that will sign, and a nonce
      strictly greater than that key's on-chain nonce.

Nonce assignment:
    One batch shares one base nonce, fetched once. Transaction ``i`` of the
    batch gets ``base + 1 + i``, so batch order is submission order and no
    two transactions of a batch collide. Nothing protects two concurrent
    batches on the same access key from reading the same base; callers must
    not do that.

Without a public key (the external signer will substitute its own key and
nonce) a throwaway placeholder key is used and the base nonce is 0.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from near_connect.actions import ConnectorAction
from near_connect.keys import KeyPair

if TYPE_CHECKING:
    from near_connect.rpc.client import NearRpc


@dataclass(frozen=True)
class TransactionIntent:
    """Caller-supplied, unsigned transaction request."""

    signer_id: str
    receiver_id: str
    actions: tuple[ConnectorAction, ...]

    def __post_init__(self) -> None:
        if not self.signer_id:
            raise ValueError("signer_id must be non-empty")
        if not self.receiver_id:
            raise ValueError("receiver_id must be non-empty")
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))


@dataclass(frozen=True)
class AssembledTransaction:
    """Intent resolved against chain state, ready for signing.

    Attributes:
        public_key: "ed25519:<base58>" key that signs the transaction.
        nonce: Access key nonce for this transaction.
        block_hash: Base58 hash of a recent final block.
    """

    signer_id: str
    receiver_id: str
    actions: tuple[ConnectorAction, ...]
    public_key: str
    nonce: int
    block_hash: str

    @property
    def intent(self) -> TransactionIntent:
        return TransactionIntent(self.signer_id, self.receiver_id, self.actions)


async def fetch_block_hash(rpc: NearRpc) -> str:
    block = await rpc.block(finality="final")
    return block["header"]["hash"]


async def fetch_access_key_nonce(rpc: NearRpc, account_id: str, public_key: str) -> int:
    access_key = await rpc.view_access_key(account_id, public_key)
    return int(access_key["nonce"])


async def assemble(
    rpc: NearRpc,
    intent: TransactionIntent,
    public_key: str | None = None,
) -> AssembledTransaction:
    """Assemble a single transaction (nonce = access key nonce + 1)."""
    (assembled,) = await assemble_batch(rpc, [intent], public_key=public_key)
    return assembled


async def assemble_batch(
    rpc: NearRpc,
    intents: Iterable[TransactionIntent],
    public_key: str | None = None,
) -> list[AssembledTransaction]:
    """Assemble a batch that will be signed together.

    Fetches the block hash and (when ``public_key`` is given) the access
    key nonce concurrently, once for the whole batch.

    Raises:
        ValueError: If ``public_key`` is given and the intents do not share
            one signer (one access key cannot sign for two accounts).
    """
    batch: Sequence[TransactionIntent] = list(intents)
    if not batch:
        return []

    if public_key is None:
        block_hash = await fetch_block_hash(rpc)
        signing_key = KeyPair.from_random().public_key
        base_nonce = 0
    else:
        signers = {intent.signer_id for intent in batch}
        if len(signers) != 1:
            raise ValueError(f"A batch signed by one key must share one signer, got: {sorted(signers)}")
        block_hash, base_nonce = await asyncio.gather(
            fetch_block_hash(rpc),
            fetch_access_key_nonce(rpc, batch[0].signer_id, public_key),
        )
        signing_key = public_key

    return [
        AssembledTransaction(
            signer_id=intent.signer_id,
            receiver_id=intent.receiver_id,
            actions=intent.actions,
            public_key=signing_key,
            nonce=base_nonce + 1 + index,
            block_hash=block_hash,
        )
        for index, intent in enumerate(batch)
    ]
