"""
Local transaction signing.

NEAR signs the sha256 of the Borsh-encoded unsigned transaction. The
transaction hash reported by the chain is that same digest in base58.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import base58

from near_connect.keys import KeyPair
from near_connect.tx.assemble import AssembledTransaction
from near_connect.tx.schema import encode_signed_transaction, encode_transaction


@dataclass(frozen=True)
class SignedTransaction:
    """A signed transaction ready for ``send_tx``.

    Attributes:
        transaction: The assembled transaction that was signed.
        signature: 64-byte ed25519 signature.
        encoded: Borsh SignedTransaction bytes.
        hash: Base58 transaction hash.
    """

    transaction: AssembledTransaction
    signature: bytes
    encoded: bytes
    hash: str


def sign_transaction(tx: AssembledTransaction, key_pair: KeyPair) -> SignedTransaction:
    """Sign ``tx`` with ``key_pair``.

    Raises:
        ValueError: If the key pair does not match ``tx.public_key``.
    """
    if key_pair.public_key != tx.public_key:
        raise ValueError("Key pair does not match the transaction public key")

    digest = hashlib.sha256(encode_transaction(tx)).digest()
    signature = key_pair.sign(digest)
    return SignedTransaction(
        transaction=tx,
        signature=signature,
        encoded=encode_signed_transaction(tx, signature),
        hash=base58.b58encode(digest).decode("ascii"),
    )
