"""
Action model: the closed set of transaction actions shared by all wallets.

Every wallet backend consumes the same ``ConnectorAction`` union. Actions
are frozen dataclasses: once constructed they are never mutated, so the
same list can be handed to the policy, the assembler and an external
signer without defensive copies.

Wire shape:
    Host applications describe actions as JSON objects::

        {"type": "FunctionCall",
         "params": {"methodName": "set", "args": {...},
                    "gas": "30000000000000", "deposit": "0"}}

    ``action_from_dict`` / ``action_to_dict`` convert between that shape
    and the dataclasses. Amounts (gas, deposit, stake, allowance) are
    decimal strings on the wire and ``int`` here. Contract code is base64
    on the wire and ``bytes`` here. FunctionCall args given as bytes go
    out as their JSON value, or base64 when they are not JSON.

Invariants:
    - Unknown ``type`` values raise ValueError (the union is closed).
    - Amounts are non-negative integers.
    - Public keys are NEAR key strings ("ed25519:<base58>").
"""

from __future__ import annotations

import base64
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Union

# =========================================================================
# Access key permissions
# =========================================================================


@dataclass(frozen=True)
class FullAccess:
    """Full-access permission for a new access key."""


@dataclass(frozen=True)
class FunctionCallPermission:
    """Function-call permission scoped to one receiver.

    ``allowance`` of None means unlimited. Empty ``method_names`` means
    any method on ``receiver_id``.
    """

    receiver_id: str
    allowance: int | None = None
    method_names: tuple[str, ...] = ()


AccessKeyPermission = Union[FullAccess, FunctionCallPermission]


@dataclass(frozen=True)
class AccessKey:
    permission: AccessKeyPermission
    nonce: int = 0


# =========================================================================
# Global contracts
# =========================================================================


class GlobalDeployMode(StrEnum):
    """How a global contract is addressed after deployment."""

    CODE_HASH = "CodeHash"
    ACCOUNT_ID = "AccountId"


@dataclass(frozen=True)
class GlobalContractAccountId:
    account_id: str


@dataclass(frozen=True)
class GlobalContractCodeHash:
    """Global contract referenced by its base58 code hash."""

    code_hash: str


GlobalContractIdentifier = Union[GlobalContractAccountId, GlobalContractCodeHash]


# =========================================================================
# Actions
# =========================================================================


@dataclass(frozen=True)
class CreateAccount:
    pass


@dataclass(frozen=True)
class DeployContract:
    code: bytes


@dataclass(frozen=True)
class FunctionCall:
    """Call ``method_name`` on the receiver.

    ``args`` is either raw bytes or a JSON-serializable value; see
    ``args_bytes()``.
    """

    method_name: str
    args: Any = field(default_factory=dict)
    gas: int = 30_000_000_000_000
    deposit: int = 0

    def args_bytes(self) -> bytes:
        """Arguments as sent on chain (compact JSON unless already bytes)."""
        if isinstance(self.args, (bytes, bytearray)):
            return bytes(self.args)
        return json.dumps(self.args, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class Transfer:
    deposit: int


@dataclass(frozen=True)
class Stake:
    stake: int
    public_key: str


@dataclass(frozen=True)
class AddKey:
    public_key: str
    access_key: AccessKey


@dataclass(frozen=True)
class DeleteKey:
    public_key: str


@dataclass(frozen=True)
class DeleteAccount:
    beneficiary_id: str


@dataclass(frozen=True)
class UseGlobalContract:
    contract_identifier: GlobalContractIdentifier


@dataclass(frozen=True)
class DeployGlobalContract:
    code: bytes
    deploy_mode: GlobalDeployMode = GlobalDeployMode.CODE_HASH


ConnectorAction = Union[
    CreateAccount,
    DeployContract,
    FunctionCall,
    Transfer,
    Stake,
    AddKey,
    DeleteKey,
    DeleteAccount,
    UseGlobalContract,
    DeployGlobalContract,
]

ACTION_TYPES: tuple[type, ...] = (
    CreateAccount,
    DeployContract,
    FunctionCall,
    Transfer,
    Stake,
    AddKey,
    DeleteKey,
    DeleteAccount,
    UseGlobalContract,
    DeployGlobalContract,
)


# =========================================================================
# Wire conversion helpers
# =========================================================================


def _amount(value: Any, name: str) -> int:
    """Parse a decimal-string (or int) amount. Raise ValueError if invalid."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer amount, got: {value!r}")
    try:
        amount = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be an integer amount, got: {value!r}") from e
    if amount < 0:
        raise ValueError(f"{name} must be non-negative, got: {amount}")
    return amount


def _code(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return base64.b64decode(value)
    if isinstance(value, Iterable):
        return bytes(value)
    raise ValueError(f"contract code must be bytes, base64 or a byte list, got: {type(value).__name__}")


def _args_to_wire(raw: bytes) -> Any:
    """JSON args as their value; any other bytes as a base64 string."""
    try:
        return json.loads(raw)
    except ValueError:
        return base64.b64encode(raw).decode("ascii")


def _permission_from_wire(value: Any) -> AccessKeyPermission:
    if value == "FullAccess":
        return FullAccess()
    if isinstance(value, Mapping):
        allowance = value.get("allowance")
        return FunctionCallPermission(
            receiver_id=value["receiverId"],
            allowance=_amount(allowance, "allowance") if allowance is not None else None,
            method_names=tuple(value.get("methodNames") or ()),
        )
    raise ValueError(f"Invalid access key permission: {value!r}")


def _permission_to_wire(permission: AccessKeyPermission) -> Any:
    if isinstance(permission, FullAccess):
        return "FullAccess"
    result: dict[str, Any] = {
        "receiverId": permission.receiver_id,
        "methodNames": list(permission.method_names),
    }
    if permission.allowance is not None:
        result["allowance"] = str(permission.allowance)
    return result


def action_from_dict(data: Mapping[str, Any]) -> ConnectorAction:
    """Build a ConnectorAction from its ``{"type", "params"}`` wire shape.

    Raises:
        ValueError: If the type is unknown or a field is malformed.
        KeyError: If a required param is missing.
    """
    action_type = data.get("type")
    params: Mapping[str, Any] = data.get("params") or {}

    if action_type == "CreateAccount":
        return CreateAccount()
    if action_type == "DeployContract":
        return DeployContract(code=_code(params["code"]))
    if action_type == "FunctionCall":
        return FunctionCall(
            method_name=params["methodName"],
            args=params.get("args", {}),
            gas=_amount(params["gas"], "gas"),
            deposit=_amount(params.get("deposit", "0"), "deposit"),
        )
    if action_type == "Transfer":
        return Transfer(deposit=_amount(params["deposit"], "deposit"))
    if action_type == "Stake":
        return Stake(stake=_amount(params["stake"], "stake"), public_key=params["publicKey"])
    if action_type == "AddKey":
        access_key = params["accessKey"]
        return AddKey(
            public_key=params["publicKey"],
            access_key=AccessKey(
                permission=_permission_from_wire(access_key["permission"]),
                nonce=int(access_key.get("nonce") or 0),
            ),
        )
    if action_type == "DeleteKey":
        return DeleteKey(public_key=params["publicKey"])
    if action_type == "DeleteAccount":
        return DeleteAccount(beneficiary_id=params["beneficiaryId"])
    if action_type == "UseGlobalContract":
        identifier = params["contractIdentifier"]
        if "accountId" in identifier:
            return UseGlobalContract(GlobalContractAccountId(identifier["accountId"]))
        return UseGlobalContract(GlobalContractCodeHash(identifier["codeHash"]))
    if action_type == "DeployGlobalContract":
        return DeployGlobalContract(
            code=_code(params["code"]),
            deploy_mode=GlobalDeployMode(params.get("deployMode", "CodeHash")),
        )

    raise ValueError(f"Invalid action type: {action_type!r}")


def action_to_dict(action: ConnectorAction) -> dict[str, Any]:
    """Inverse of ``action_from_dict``."""
    if isinstance(action, CreateAccount):
        return {"type": "CreateAccount"}
    if isinstance(action, DeployContract):
        return {"type": "DeployContract", "params": {"code": base64.b64encode(action.code).decode("ascii")}}
    if isinstance(action, FunctionCall):
        args = action.args
        if isinstance(args, (bytes, bytearray)):
            args = _args_to_wire(bytes(args))
        return {
            "type": "FunctionCall",
            "params": {
                "methodName": action.method_name,
                "args": args,
                "gas": str(action.gas),
                "deposit": str(action.deposit),
            },
        }
    if isinstance(action, Transfer):
        return {"type": "Transfer", "params": {"deposit": str(action.deposit)}}
    if isinstance(action, Stake):
        return {"type": "Stake", "params": {"stake": str(action.stake), "publicKey": action.public_key}}
    if isinstance(action, AddKey):
        return {
            "type": "AddKey",
            "params": {
                "publicKey": action.public_key,
                "accessKey": {
                    "nonce": action.access_key.nonce,
                    "permission": _permission_to_wire(action.access_key.permission),
                },
            },
        }
    if isinstance(action, DeleteKey):
        return {"type": "DeleteKey", "params": {"publicKey": action.public_key}}
    if isinstance(action, DeleteAccount):
        return {"type": "DeleteAccount", "params": {"beneficiaryId": action.beneficiary_id}}
    if isinstance(action, UseGlobalContract):
        identifier = action.contract_identifier
        if isinstance(identifier, GlobalContractAccountId):
            wire: dict[str, str] = {"accountId": identifier.account_id}
        else:
            wire = {"codeHash": identifier.code_hash}
        return {"type": "UseGlobalContract", "params": {"contractIdentifier": wire}}
    if isinstance(action, DeployGlobalContract):
        return {
            "type": "DeployGlobalContract",
            "params": {
                "code": base64.b64encode(action.code).decode("ascii"),
                "deployMode": str(action.deploy_mode),
            },
        }

    raise ValueError(f"Invalid action: {action!r}")


def actions_from_dicts(items: Iterable[Mapping[str, Any] | ConnectorAction]) -> list[ConnectorAction]:
    """Accept a mix of wire dicts and ready-made actions."""
    return [item if isinstance(item, ACTION_TYPES) else action_from_dict(item) for item in items]  # type: ignore[arg-type]
