"""
Function-call keys ("capabilities") and the per-network session store.

A capability is a locally held ed25519 key the wallet added to the user's
account with a function-call permission: one contract, optionally a
method allow-list, never able to move funds. Holding one lets the app
sign narrow calls without opening the wallet.

Storage layout (one ``CapabilityStore`` per network)::

    signedAccountId:<network>                    account id
    functionCallKey:<network>:<contract_id>      active capability (JSON)
    pendingFunctionCallKey:<network>:<pubkey>    staged, not yet confirmed

Lifecycle:
    - sign-in with a contract id, or stage_pending + confirm_pending,
      creates the active capability for that contract.
    - put() for a contract that already has one overwrites it: exactly one
      active capability per contract per network.
    - sign-out removes the account and every key of the network.

Legacy transform:
    Older wallet-selector versions stored ``near_app_wallet_auth_key`` and
    ``near-api-js:keystore:<account>:<network>``. ``migrate_legacy()``
    rewrites them into the layout above once per network. The shared auth
    and contract entries are deleted after both mainnet and testnet have
    taken their copy; ``legacyMigrated:<network>`` marks progress.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from near_connect.keys import public_key_from_secret
from near_connect.storage import KeyValueStorage

logger = logging.getLogger(__name__)

LEGACY_AUTH_KEY = "near_app_wallet_auth_key"
LEGACY_CONTRACT_KEY = "near-wallet-selector:contract"
LEGACY_MIGRATED_PREFIX = "legacyMigrated:"
LEGACY_NETWORKS = ("mainnet", "testnet")


@dataclass(frozen=True)
class FunctionCallCapability:
    """A locally held function-call key.

    Attributes:
        private_key: "ed25519:<base58>" secret key. Never logged.
        contract_id: The only receiver this key may call.
        methods: Allowed method names; empty means any method.
    """

    private_key: str
    contract_id: str
    methods: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.methods, tuple):
            object.__setattr__(self, "methods", tuple(self.methods))

    @property
    def public_key(self) -> str:
        return public_key_from_secret(self.private_key)

    def to_json(self) -> str:
        return json.dumps(
            {"privateKey": self.private_key, "contractId": self.contract_id, "methods": list(self.methods)}
        )

    @classmethod
    def from_json(cls, raw: str) -> FunctionCallCapability:
        data = json.loads(raw)
        return cls(
            private_key=data["privateKey"],
            contract_id=data["contractId"],
            methods=tuple(data.get("methods") or ()),
        )

    def __repr__(self) -> str:
        return f"FunctionCallCapability(contract_id={self.contract_id!r}, methods={self.methods!r})"


class CapabilityStore:
    """Session and capability persistence for one network.

    Args:
        storage: Backing key-value storage (shared across networks).
        network_id: "mainnet" or "testnet".
    """

    def __init__(self, storage: KeyValueStorage, network_id: str) -> None:
        self._storage = storage
        self._network_id = network_id

    @property
    def network_id(self) -> str:
        return self._network_id

    def _account_key(self) -> str:
        return f"signedAccountId:{self._network_id}"

    def _active_prefix(self) -> str:
        return f"functionCallKey:{self._network_id}:"

    def _pending_prefix(self) -> str:
        return f"pendingFunctionCallKey:{self._network_id}:"

    # -----------------------------------------------------------------
    # Account
    # -----------------------------------------------------------------

    def get_account_id(self) -> str | None:
        return self._storage.get(self._account_key()) or None

    def set_account_id(self, account_id: str) -> None:
        self._storage.set(self._account_key(), account_id)

    # -----------------------------------------------------------------
    # Active capabilities
    # -----------------------------------------------------------------

    def get(self, contract_id: str) -> FunctionCallCapability | None:
        raw = self._storage.get(self._active_prefix() + contract_id)
        if raw is None:
            return None
        return FunctionCallCapability.from_json(raw)

    def put(self, capability: FunctionCallCapability) -> None:
        """Store ``capability`` as the active key for its contract."""
        self._storage.set(self._active_prefix() + capability.contract_id, capability.to_json())

    def remove(self, contract_id: str) -> None:
        self._storage.remove(self._active_prefix() + contract_id)

    def list_active(self) -> list[FunctionCallCapability]:
        """Active capabilities of this network, ordered by contract id."""
        prefix = self._active_prefix()
        return [
            FunctionCallCapability.from_json(raw)
            for key in sorted(self._storage.keys())
            if key.startswith(prefix) and (raw := self._storage.get(key)) is not None
        ]

    # -----------------------------------------------------------------
    # Pending capabilities
    # -----------------------------------------------------------------

    def stage_pending(self, capability: FunctionCallCapability) -> str:
        """Store a key the wallet has not yet confirmed. Returns its public key."""
        public_key = capability.public_key
        self._storage.set(self._pending_prefix() + public_key, capability.to_json())
        return public_key

    def confirm_pending(self, public_key: str) -> FunctionCallCapability:
        """Promote a staged key to the active capability for its contract.

        Raises:
            KeyError: If no key is staged under ``public_key``.
        """
        raw = self._storage.get(self._pending_prefix() + public_key)
        if raw is None:
            raise KeyError(f"No pending function call key found for {public_key}")
        capability = FunctionCallCapability.from_json(raw)
        self.put(capability)
        self._storage.remove(self._pending_prefix() + public_key)
        return capability

    def discard_pending(self, public_key: str) -> None:
        self._storage.remove(self._pending_prefix() + public_key)

    # -----------------------------------------------------------------
    # Sign-out / migration
    # -----------------------------------------------------------------

    def clear(self) -> None:
        """Remove the account and every active or pending key of this network."""
        self._storage.remove(self._account_key())
        prefixes = (self._active_prefix(), self._pending_prefix())
        for key in self._storage.keys():
            if key.startswith(prefixes):
                self._storage.remove(key)

    def migrate_legacy(self) -> str | None:
        """Rewrite legacy wallet-selector keys into the current layout.

        The legacy auth key is shared by every network, so it is only
        deleted once each of ``LEGACY_NETWORKS`` has migrated. Returns the
        migrated account id, or None if there was nothing to do.
        """
        raw_auth = self._storage.get(LEGACY_AUTH_KEY)
        if raw_auth is None or self._storage.get(self._migrated_key()) is not None:
            return None

        account_id = json.loads(raw_auth).get("accountId")
        self._storage.set(self._migrated_key(), "1")
        if account_id:
            self._migrate_account(account_id)
        self._release_legacy()
        return account_id or None

    def _migrated_key(self) -> str:
        return LEGACY_MIGRATED_PREFIX + self._network_id

    def _migrate_account(self, account_id: str) -> None:
        self.set_account_id(account_id)

        keystore_key = f"near-api-js:keystore:{account_id}:{self._network_id}"
        private_key = self._storage.get(keystore_key)
        if private_key:
            contract = json.loads(self._storage.get(LEGACY_CONTRACT_KEY) or "{}")
            contract_id = contract.get("contractId")
            if contract_id:
                self.put(
                    FunctionCallCapability(
                        private_key=private_key,
                        contract_id=contract_id,
                        methods=tuple(contract.get("methodNames") or ()),
                    )
                )
            self._storage.remove(keystore_key)

        logger.info("Migrated legacy wallet session for %s on %s", account_id, self._network_id)

    def _release_legacy(self) -> None:
        markers = [LEGACY_MIGRATED_PREFIX + network for network in LEGACY_NETWORKS]
        if any(self._storage.get(marker) is None for marker in markers):
            return
        for key in (LEGACY_AUTH_KEY, LEGACY_CONTRACT_KEY, *markers):
            self._storage.remove(key)
        logger.debug("Legacy wallet session fully migrated; removed shared keys")
