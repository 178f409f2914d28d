"""
Bridge wallet backend (browser-extension style).

The wallet lives in the host (an injected extension object, a native
app, ...). The host exposes it as one async ``call(method, *params)``;
this backend maps the ``NearWallet`` interface onto the bridge's
method names and submits the returned signed transactions itself.

Bridge methods used:
    isSignedIn, getAccountId, requestSignIn, signOut, signMessage,
    signTransaction, requestSignTransactions

Only FunctionCall actions can be signed through a bridge; other action
types are reported as UnsupportedOperation.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from near_connect.actions import ConnectorAction, FunctionCall, action_to_dict, actions_from_dicts
from near_connect.errors import NearConnectError, WalletError, WalletNotSignedIn
from near_connect.rpc.client import NearRpc
from near_connect.wallets.base import (
    Account,
    SignedMessage,
    UnsupportedOperation,
    WalletTransaction,
    coerce_transactions,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class WalletBridge(Protocol):
    """Host-side entry point to an external wallet."""

    async def call(self, method: str, *params: Any) -> Any:
        ...


def _function_call_params(actions: Sequence[ConnectorAction]) -> list[dict[str, Any]]:
    return [action_to_dict(action)["params"] for action in actions]


def _unsupported_action(actions: Sequence[ConnectorAction]) -> str | None:
    for action in actions:
        if not isinstance(action, FunctionCall):
            return type(action).__name__
    return None


class BridgeWallet:
    """Wallet reached through a host bridge.

    Args:
        bridge: The host bridge.
        rpc: RPC client used to submit signed transactions.
        name: Display name used in UnsupportedOperation results.
    """

    def __init__(self, bridge: WalletBridge, rpc: NearRpc, *, name: str = "BridgeWallet") -> None:
        self.name = name
        self._bridge = bridge
        self._rpc = rpc

    async def _call(self, method: str, *params: Any) -> Any:
        return await self._bridge.call(method, *params)

    async def _require_signed_in(self) -> None:
        if not await self._call("isSignedIn"):
            raise WalletNotSignedIn()

    # -----------------------------------------------------------------
    # Session
    # -----------------------------------------------------------------

    async def sign_in(
        self,
        contract_id: str | None = None,
        method_names: Sequence[str] = (),
    ) -> list[Account]:
        try:
            response = await self._call(
                "requestSignIn",
                {"contractId": contract_id or "", "methodNames": list(method_names)},
            )
            account_id = response["accountId"]
        except Exception as e:
            logger.warning("%s sign-in failed: %s", self.name, e)
            await self.sign_out()
            raise WalletError("Failed to sign in") from e

        access_key = response.get("accessKey") or {}
        public_key = access_key.get("publicKey")
        return [Account(account_id, str(public_key) if public_key else None)]

    async def sign_out(self) -> None:
        if not await self._call("isSignedIn"):
            return
        await self._call("signOut")

    async def get_accounts(self) -> list[Account]:
        account_id = await self._call("getAccountId")
        if not account_id:
            return []
        return [Account(account_id)]

    async def verify_owner(self, message: str) -> UnsupportedOperation:
        return UnsupportedOperation(self.name, "verify_owner")

    async def sign_message(
        self,
        message: str,
        nonce: bytes,
        recipient: str,
        callback_url: str | None = None,
        state: str | None = None,
    ) -> SignedMessage:
        request: dict[str, Any] = {"message": message, "nonce": bytes(nonce), "recipient": recipient}
        if callback_url:
            request["callbackUrl"] = callback_url
        if state:
            request["state"] = state
        try:
            signed = await self._call("signMessage", request)
            return SignedMessage(
                account_id=signed["accountId"],
                public_key=signed["publicKey"],
                signature=signed["signature"],
                state=signed.get("state"),
            )
        except NearConnectError:
            raise
        except Exception as e:
            raise WalletError("Failed to sign message") from e

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------

    async def sign_and_send_transaction(
        self,
        receiver_id: str,
        actions: Sequence[ConnectorAction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> Any:
        await self._require_signed_in()
        if not receiver_id:
            raise WalletError("Receiver ID is required")
        parsed = actions_from_dicts(actions)
        unsupported = _unsupported_action(parsed)
        if unsupported is not None:
            return UnsupportedOperation(self.name, f"sign_and_send_transaction with {unsupported}")

        try:
            signed_tx = await self._call(
                "signTransaction",
                {"receiverId": receiver_id, "actions": _function_call_params(parsed)},
            )
        except NearConnectError:
            raise
        except Exception as e:
            raise WalletError("Failed to sign transaction") from e
        return await self._rpc.send_transaction(base64.b64decode(signed_tx))

    async def sign_and_send_transactions(
        self,
        transactions: Sequence[WalletTransaction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> list[Any] | UnsupportedOperation:
        await self._require_signed_in()
        batch = coerce_transactions(transactions)
        for transaction in batch:
            unsupported = _unsupported_action(transaction.actions)
            if unsupported is not None:
                return UnsupportedOperation(self.name, f"sign_and_send_transactions with {unsupported}")

        try:
            response = await self._call(
                "requestSignTransactions",
                {
                    "transactions": [
                        {"receiverId": t.receiver_id, "actions": _function_call_params(t.actions)}
                        for t in batch
                    ]
                },
            )
            signed_txs = [item["signedTx"] for item in response["txs"]]
        except NearConnectError:
            raise
        except Exception as e:
            raise WalletError("Failed to sign transactions") from e

        return [await self._rpc.send_transaction(base64.b64decode(signed)) for signed in signed_txs]
