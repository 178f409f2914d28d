"""
Popup web wallet backend.

The wallet runs on its own origin. Every signing request is a one-time URL
opened in a surface through ``SigningTransport``; the wallet answers with a
single ``{"status": "success" | "failure", ...}`` message.

Request URLs::

    {wallet}/login/?success_url=..&failure_url=..[&contract_id=..&public_key=..][&methodNames=..]
    {wallet}/sign?transactions=<b64>,<b64>..&callbackUrl=..
    {wallet}/sign-message?message=..&nonce=<b64>&recipient=..&callbackUrl=..[&state=..]

Local fast path:
    ``sign_and_send_transaction`` first asks the policy whether the cached
    function-call key for the receiver covers the call. If it does, the
    transaction is assembled with that key's nonce, signed here and sent
    straight to RPC. Any library-level failure on that path (RPC, network,
    malformed key) is logged and the request falls back to the popup.
    Cancellation and rejection from the popup always propagate.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from near_connect.actions import ConnectorAction, actions_from_dicts
from near_connect.capability import CapabilityStore, FunctionCallCapability
from near_connect.config import NetworkConfig, rpc_timeout_from_env
from near_connect.errors import CapabilityInsufficient, NearConnectError, RpcError, WalletError, WalletNotSignedIn
from near_connect.keys import KeyPair
from near_connect.policy import check_local_signing
from near_connect.rpc.client import TIMEOUT_ERROR_TYPE, NearRpc
from near_connect.signing.transport import Message, SigningTransport
from near_connect.storage import KeyValueStorage
from near_connect.tx.assemble import AssembledTransaction, TransactionIntent, assemble, assemble_batch
from near_connect.tx.schema import encode_transaction
from near_connect.tx.sign import SignedTransaction, sign_transaction
from near_connect.wallets.base import (
    Account,
    SignedMessage,
    UnsupportedOperation,
    WalletTransaction,
    coerce_transactions,
)

logger = logging.getLogger(__name__)

WAIT_UNTIL_NONE = "NONE"


def _sign_in_response(message: Message) -> tuple[str, str | None]:
    account_id = message.get("account_id")
    if not account_id:
        raise WalletError("Invalid response data from wallet")
    return account_id, message.get("public_key") or None


def _transaction_hashes(message: Message) -> list[str]:
    raw = message.get("transactionHashes")
    if not raw:
        raise WalletError("No transaction hashes received")
    return [h for h in str(raw).split(",") if h]


def _signed_message(message: Message) -> SignedMessage:
    signed = message.get("signedRequest") or {}
    return SignedMessage(
        account_id=signed.get("accountId", ""),
        public_key=signed.get("publicKey", ""),
        signature=signed.get("signature", ""),
        state=signed.get("state"),
    )


class PopupWallet:
    """Web wallet reached through a popup surface.

    Args:
        network: Network endpoints (``wallet_url`` is the popup origin).
        transport: Signing transport bound to the host's surface opener.
        storage: Durable storage for the session and function-call keys.
        location: The app URL the wallet redirects back to.
        rpc: RPC client; defaults to one over ``network.providers`` starting
            at the NEAR_CONNECT_RPC_TIMEOUT timeout.
        name: Display name used in UnsupportedOperation results.
    """

    def __init__(
        self,
        network: NetworkConfig,
        transport: SigningTransport,
        storage: KeyValueStorage,
        *,
        location: str,
        rpc: NearRpc | None = None,
        name: str = "MyNearWallet",
    ) -> None:
        self.name = name
        self._network = network
        self._transport = transport
        self._location = location
        self._wallet_url = network.wallet_url.rstrip("/")
        self._rpc = rpc or NearRpc(network.providers, timeout=rpc_timeout_from_env())
        self._store = CapabilityStore(storage, network.network_id)
        self._store.migrate_legacy()

    @property
    def rpc(self) -> NearRpc:
        return self._rpc

    @property
    def capabilities(self) -> CapabilityStore:
        return self._store

    @property
    def account_id(self) -> str | None:
        return self._store.get_account_id()

    def is_signed_in(self) -> bool:
        return self.account_id is not None

    def _require_account(self, signer_id: str | None = None) -> str:
        account_id = self.account_id
        if account_id is None:
            raise WalletNotSignedIn()
        return signer_id or account_id

    # -----------------------------------------------------------------
    # URLs
    # -----------------------------------------------------------------

    def sign_in_url(
        self,
        contract_id: str | None = None,
        public_key: str | None = None,
        method_names: Sequence[str] = (),
    ) -> str:
        params: list[tuple[str, str]] = [
            ("success_url", self._location),
            ("failure_url", self._location),
        ]
        if contract_id:
            params.append(("contract_id", contract_id))
            if public_key:
                params.append(("public_key", public_key))
        params.extend(("methodNames", name) for name in method_names)
        return str(httpx.URL(f"{self._wallet_url}/login/", params=params))

    def sign_transactions_url(self, transactions: Sequence[AssembledTransaction]) -> str:
        encoded = ",".join(base64.b64encode(encode_transaction(tx)).decode("ascii") for tx in transactions)
        params = [("transactions", encoded), ("callbackUrl", self._location)]
        return str(httpx.URL(f"{self._wallet_url}/sign", params=params))

    def sign_message_url(
        self,
        message: str,
        nonce: bytes,
        recipient: str,
        callback_url: str,
        state: str | None = None,
    ) -> str:
        params = [
            ("message", message),
            ("nonce", base64.b64encode(bytes(nonce)).decode("ascii")),
            ("recipient", recipient),
            ("callbackUrl", callback_url),
        ]
        if state:
            params.append(("state", state))
        return str(httpx.URL(f"{self._wallet_url}/sign-message", params=params))

    # -----------------------------------------------------------------
    # Session
    # -----------------------------------------------------------------

    async def sign_in(
        self,
        contract_id: str | None = None,
        method_names: Sequence[str] = (),
    ) -> list[Account]:
        """Sign in through the wallet, adding a function-call key if ``contract_id`` is given.

        Already signed in: returns the current accounts without opening the wallet.
        """
        if self.is_signed_in():
            return await self.get_accounts()

        capability: FunctionCallCapability | None = None
        if contract_id:
            key_pair = KeyPair.from_random()
            capability = FunctionCallCapability(key_pair.secret_key, contract_id, tuple(method_names))

        url = self.sign_in_url(
            contract_id,
            public_key=capability.public_key if capability else None,
            method_names=method_names,
        )
        account_id, public_key = await self._transport.request(url, _sign_in_response)

        self._store.set_account_id(account_id)
        if capability is not None:
            self._store.put(capability)
            public_key = public_key or capability.public_key
        logger.info("Signed in %s on %s", account_id, self._network.network_id)
        return [Account(account_id, public_key)]

    async def sign_out(self) -> None:
        self._store.clear()

    async def get_accounts(self) -> list[Account]:
        account_id = self.account_id
        if account_id is None:
            return []
        active = self._store.list_active()
        return [Account(account_id, active[0].public_key if active else None)]

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
        url = self.sign_message_url(message, nonce, recipient, callback_url or self._location, state)
        return await self._transport.request(url, _signed_message)

    # -----------------------------------------------------------------
    # Function-call keys
    # -----------------------------------------------------------------

    async def generate_function_call_key(self, contract_id: str, method_names: Sequence[str] = ()) -> str:
        """Stage a fresh key for ``contract_id``; returns its public key."""
        self._require_account()
        key_pair = KeyPair.from_random()
        return self._store.stage_pending(
            FunctionCallCapability(key_pair.secret_key, contract_id, tuple(method_names))
        )

    async def confirm_function_call_key(self, public_key: str) -> FunctionCallCapability:
        try:
            return self._store.confirm_pending(public_key)
        except KeyError as e:
            raise WalletError("No pending function call key found for this public key") from e

    async def remove_function_call_key(self, public_key: str) -> None:
        self._store.discard_pending(public_key)

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------

    async def sign_and_send_transaction(
        self,
        receiver_id: str,
        actions: Sequence[ConnectorAction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> Any:
        signer = self._require_account(signer_id)
        intent = TransactionIntent(signer, receiver_id, tuple(actions_from_dicts(actions)))

        try:
            capability = check_local_signing(receiver_id, intent.actions, self._store.get(receiver_id))
        except CapabilityInsufficient as e:
            logger.debug("Signing with wallet: %s", e.reason)
        else:
            try:
                signed = await self._sign_locally(intent, capability)
            except (NearConnectError, ValueError) as e:
                logger.warning("Failed to sign using key pair, falling back to wallet: %s", e)
            else:
                try:
                    return await self._rpc.send_transaction(signed.encoded)
                except RpcError as e:
                    if e.type == TIMEOUT_ERROR_TYPE:
                        # may already be on chain; never sign it a second time
                        raise
                    logger.warning("Chain rejected %s, falling back to wallet: %s", signed.hash, e)

        tx = await assemble(self._rpc, intent)
        (result,) = await self._sign_with_wallet([tx])
        return result

    async def sign_and_send_transactions(
        self,
        transactions: Sequence[WalletTransaction | Mapping[str, Any]],
        signer_id: str | None = None,
    ) -> list[Any]:
        signer = self._require_account(signer_id)
        intents = [TransactionIntent(signer, t.receiver_id, t.actions) for t in coerce_transactions(transactions)]
        assembled = await assemble_batch(self._rpc, intents)
        return await self._sign_with_wallet(assembled)

    async def _sign_locally(self, intent: TransactionIntent, capability: FunctionCallCapability) -> SignedTransaction:
        key_pair = KeyPair.from_string(capability.private_key)
        tx = await assemble(self._rpc, intent, public_key=key_pair.public_key)
        signed = sign_transaction(tx, key_pair)
        logger.info("Signed %s locally with function call key", signed.hash)
        return signed

    async def _sign_with_wallet(self, transactions: Sequence[AssembledTransaction]) -> list[Any]:
        if not transactions:
            return []
        url = self.sign_transactions_url(transactions)
        hashes = await self._transport.request(url, _transaction_hashes)
        signer = transactions[0].signer_id
        return [await self._rpc.tx_status(tx_hash, signer, WAIT_UNTIL_NONE) for tx_hash in hashes]
