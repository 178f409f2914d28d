"""
Wallet interface shared by every backend.

Contract:
    - One ``NearWallet`` protocol; backends differ only in how they reach
      the user's keys (popup web wallet, host bridge, ...).
    - An operation a backend cannot perform returns
      ``UnsupportedOperation`` instead of raising, so callers can branch
      on the result type without parsing error strings.
    - Failures that are not "unsupported" raise ``near_connect.errors``
      exceptions as usual.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from near_connect.actions import ConnectorAction, actions_from_dicts


@dataclass(frozen=True)
class Account:
    """A signed-in account and, if known, the public key the app holds for it."""

    account_id: str
    public_key: str | None = None


@dataclass(frozen=True)
class SignedMessage:
    """Result of an off-chain message signature."""

    account_id: str
    public_key: str
    signature: str
    state: str | None = None


@dataclass(frozen=True)
class UnsupportedOperation:
    """Typed "this wallet cannot do that" result."""

    wallet: str
    operation: str

    @property
    def message(self) -> str:
        return f"Method not supported by {self.wallet}: {self.operation}"


@dataclass(frozen=True)
class WalletTransaction:
    """One transaction of a batch: receiver plus actions, signer implied."""

    receiver_id: str
    actions: tuple[ConnectorAction, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))

    @classmethod
    def coerce(cls, value: WalletTransaction | Mapping[str, Any]) -> WalletTransaction:
        """Accept a WalletTransaction or a ``{"receiverId", "actions"}`` dict."""
        if isinstance(value, WalletTransaction):
            return value
        return cls(
            receiver_id=value["receiverId"],
            actions=tuple(actions_from_dicts(value["actions"])),
        )


def coerce_transactions(
    transactions: Iterable[WalletTransaction | Mapping[str, Any]],
) -> list[WalletTransaction]:
    return [WalletTransaction.coerce(t) for t in transactions]


@runtime_checkable
class NearWallet(Protocol):
    """Uniform wallet interface."""

    name: str

    async def sign_in(
        self,
        contract_id: str | None = None,
        method_names: Sequence[str] = (),
    ) -> list[Account]:
        ...

    async def sign_out(self) -> None:
        ...

    async def get_accounts(self) -> list[Account]:
        ...

    async def sign_and_send_transaction(
        self,
        receiver_id: str,
        actions: Sequence[ConnectorAction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> Any:
        ...

    async def sign_and_send_transactions(
        self,
        transactions: Sequence[WalletTransaction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> list[Any]:
        ...

    async def sign_message(
        self,
        message: str,
        nonce: bytes,
        recipient: str,
        callback_url: str | None = None,
        state: str | None = None,
    ) -> SignedMessage | UnsupportedOperation:
        ...

    async def verify_owner(self, message: str) -> Any:
        ...
