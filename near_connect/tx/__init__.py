"""
Transactions: assembly, Borsh encoding and local signing.

    Pure layer (no I/O):
        - ``TransactionIntent``, ``AssembledTransaction``.
        - ``encode_transaction()`` / ``decode_transaction()`` and the
          signed variants.
        - ``sign_transaction()`` → ``SignedTransaction``.

    Impure layer (RPC):
        - ``assemble()`` / ``assemble_batch()``: resolve block hash and nonce.
"""

from near_connect.tx.assemble import (
    AssembledTransaction,
    TransactionIntent,
    assemble,
    assemble_batch,
)
from near_connect.tx.schema import (
    decode_signed_transaction,
    decode_transaction,
    encode_signed_transaction,
    encode_transaction,
)
from near_connect.tx.sign import SignedTransaction, sign_transaction

__all__ = [
    "AssembledTransaction",
    "SignedTransaction",
    "TransactionIntent",
    "assemble",
    "assemble_batch",
    "decode_signed_transaction",
    "decode_transaction",
    "encode_signed_transaction",
    "encode_transaction",
    "sign_transaction",
]
