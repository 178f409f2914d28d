"""
Ed25519 keys in NEAR's string form.

NEAR encodes keys as ``"<curve>:<base58>"``:
    - public key:  "ed25519:" + base58(32 raw public bytes)
    - secret key:  "ed25519:" + base58(32-byte seed || 32-byte public key)

Only ed25519 is supported; secp256k1 keys are rejected with ValueError.
Secret keys never appear in ``repr()`` or logs.
"""

from __future__ import annotations

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

ED25519_PREFIX = "ed25519:"

# Borsh KeyType discriminant for ed25519.
KEY_TYPE_ED25519 = 0


# =========================================================================
# String codecs
# =========================================================================


def _split_key_string(value: str) -> bytes:
    """Decode the base58 body of an "ed25519:..." key string."""
    if ":" in value:
        curve, _, body = value.partition(":")
        if curve != "ed25519":
            raise ValueError(f"Unsupported key type: {curve!r}")
    else:
        body = value
    try:
        return base58.b58decode(body)
    except ValueError as e:
        raise ValueError(f"Key is not valid base58: {value[:16]}...") from e


def public_key_to_bytes(public_key: str) -> bytes:
    """Raw 32 bytes of an "ed25519:<base58>" public key."""
    raw = _split_key_string(public_key)
    if len(raw) != 32:
        raise ValueError(f"ed25519 public key must be 32 bytes, got {len(raw)}")
    return raw


def public_key_from_bytes(raw: bytes) -> str:
    return ED25519_PREFIX + base58.b58encode(raw).decode("ascii")


# =========================================================================
# KeyPair
# =========================================================================


class KeyPair:
    """An ed25519 signing key.

    Example:
        kp = KeyPair.from_random()
        kp.public_key            # "ed25519:..."
        KeyPair.from_string(kp.secret_key).public_key == kp.public_key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key

    @classmethod
    def from_random(cls) -> KeyPair:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_string(cls, secret_key: str) -> KeyPair:
        """Load from "ed25519:<base58>" (64-byte expanded or 32-byte seed).

        Raises:
            ValueError: If the string is malformed or not ed25519.
        """
        raw = _split_key_string(secret_key)
        if len(raw) not in (32, 64):
            raise ValueError(f"ed25519 secret key must be 32 or 64 bytes, got {len(raw)}")
        kp = cls(Ed25519PrivateKey.from_private_bytes(raw[:32]))
        if len(raw) == 64 and raw[32:] != kp.public_key_bytes:
            raise ValueError("ed25519 secret key does not match its embedded public key")
        return kp

    @property
    def public_key_bytes(self) -> bytes:
        return self._private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @property
    def public_key(self) -> str:
        return public_key_from_bytes(self.public_key_bytes)

    @property
    def secret_key(self) -> str:
        seed = self._private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return ED25519_PREFIX + base58.b58encode(seed + self.public_key_bytes).decode("ascii")

    def sign(self, message: bytes) -> bytes:
        """64-byte ed25519 signature over ``message``."""
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key!r})"


def public_key_from_secret(secret_key: str) -> str:
    """Public key string for a secret key string."""
    return KeyPair.from_string(secret_key).public_key


def verify_signature(public_key: str, message: bytes, signature: bytes) -> bool:
    """True if ``signature`` is a valid ed25519 signature of ``message``."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key_to_bytes(public_key)).verify(signature, message)
    except InvalidSignature:
        return False
    return True
