"""
Borsh layout of NEAR transactions.

The chain consumes ``Transaction`` and ``SignedTransaction`` in a fixed
binary schema. This module is the only place that knows that schema;
everything else hands it an ``AssembledTransaction`` and gets bytes back
(or the reverse).

Layout (field order is significant)::

    Transaction       = signerId: string, publicKey: PublicKey, nonce: u64,
                        receiverId: string, blockHash: [u8; 32],
                        actions: Vec<Action>
    SignedTransaction = transaction: Transaction, signature: Signature
    PublicKey         = keyType: u8, data: [u8; 32]
    Signature         = keyType: u8, data: [u8; 64]

Action enum indices:
    0 CreateAccount, 1 DeployContract, 2 FunctionCall, 3 Transfer,
    4 Stake, 5 AddKey, 6 DeleteKey, 7 DeleteAccount, 8 Delegate,
    9 DeployGlobalContract, 10 UseGlobalContract

Delegate (8) is present so later indices line up; it is never produced
from the connector action model and decoding one raises ValueError.

Nested unions (access key permission, global deploy mode, global
contract identifier) are plain ``index``/``value`` structs built from
dicts. ``borsh_construct.Enum`` flattens nested enum values through
``attr.asdict`` when encoding, so only the outer ``Action`` is an Enum.
"""

from __future__ import annotations

import json
from typing import Any

import base58
from borsh_construct import U8, U64, U128, Bytes, CStruct, Enum, Option, String, Vec
from construct import Bytes as FixedBytes
from construct import LazyBound, Pass, Switch, this

from near_connect.actions import (
    AccessKey,
    AddKey,
    ConnectorAction,
    CreateAccount,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    DeployGlobalContract,
    FullAccess,
    FunctionCall,
    FunctionCallPermission,
    GlobalContractAccountId,
    GlobalContractCodeHash,
    GlobalDeployMode,
    Stake,
    Transfer,
    UseGlobalContract,
)
from near_connect.keys import KEY_TYPE_ED25519, public_key_from_bytes, public_key_to_bytes
from near_connect.tx.assemble import AssembledTransaction

# =========================================================================
# Schema
# =========================================================================

PUBLIC_KEY = CStruct("keyType" / U8, "data" / FixedBytes(32))
SIGNATURE = CStruct("keyType" / U8, "data" / FixedBytes(64))


def _tagged(*cases: Any) -> CStruct:
    """u8 variant index followed by that variant's payload (Pass for unit)."""
    return CStruct("index" / U8, "value" / Switch(this.index, dict(enumerate(cases))))


# AccessKeyPermission: 0 FunctionCall, 1 FullAccess
PERMISSION_FUNCTION_CALL = 0
PERMISSION_FULL_ACCESS = 1

ACCESS_KEY_PERMISSION = _tagged(
    CStruct(
        "allowance" / Option(U128),
        "receiverId" / String,
        "methodNames" / Vec(String),
    ),
    Pass,
)

ACCESS_KEY = CStruct("nonce" / U64, "permission" / ACCESS_KEY_PERMISSION)

# GlobalContractDeployMode: 0 CodeHash, 1 AccountId (unit variants)
DEPLOY_MODE_INDEX = {GlobalDeployMode.CODE_HASH: 0, GlobalDeployMode.ACCOUNT_ID: 1}
DEPLOY_MODES = {index: mode for mode, index in DEPLOY_MODE_INDEX.items()}

GLOBAL_DEPLOY_MODE = _tagged(Pass, Pass)

# GlobalContractIdentifier: 0 CodeHash, 1 AccountId
IDENTIFIER_CODE_HASH = 0
IDENTIFIER_ACCOUNT_ID = 1

GLOBAL_CONTRACT_IDENTIFIER = _tagged(
    CStruct("hash" / FixedBytes(32)),
    CStruct("accountId" / String),
)

ACTION = Enum(
    "CreateAccount",
    "DeployContract" / CStruct("code" / Bytes),
    "FunctionCall"
    / CStruct(
        "methodName" / String,
        "args" / Bytes,
        "gas" / U64,
        "deposit" / U128,
    ),
    "Transfer" / CStruct("deposit" / U128),
    "Stake" / CStruct("stake" / U128, "publicKey" / PUBLIC_KEY),
    "AddKey" / CStruct("publicKey" / PUBLIC_KEY, "accessKey" / ACCESS_KEY),
    "DeleteKey" / CStruct("publicKey" / PUBLIC_KEY),
    "DeleteAccount" / CStruct("beneficiaryId" / String),
    "Delegate"
    / CStruct(
        "delegateAction"
        / CStruct(
            "senderId" / String,
            "receiverId" / String,
            "actions" / Vec(LazyBound(lambda: ACTION)),
            "nonce" / U64,
            "maxBlockHeight" / U64,
            "publicKey" / PUBLIC_KEY,
        ),
        "signature" / SIGNATURE,
    ),
    "DeployGlobalContract" / CStruct("code" / Bytes, "deployMode" / GLOBAL_DEPLOY_MODE),
    "UseGlobalContract" / CStruct("contractIdentifier" / GLOBAL_CONTRACT_IDENTIFIER),
    enum_name="Action",
)

TRANSACTION = CStruct(
    "signerId" / String,
    "publicKey" / PUBLIC_KEY,
    "nonce" / U64,
    "receiverId" / String,
    "blockHash" / FixedBytes(32),
    "actions" / Vec(ACTION),
)

SIGNED_TRANSACTION = CStruct("transaction" / TRANSACTION, "signature" / SIGNATURE)


# =========================================================================
# Connector action -> Borsh value
# =========================================================================


def _public_key_value(public_key: str) -> dict[str, Any]:
    return {"keyType": KEY_TYPE_ED25519, "data": public_key_to_bytes(public_key)}


def _public_key_string(value: Any) -> str:
    if value.keyType != KEY_TYPE_ED25519:
        raise ValueError(f"Unsupported key type in transaction: {value.keyType}")
    return public_key_from_bytes(bytes(value.data))


def _permission_value(access_key: AccessKey) -> dict[str, Any]:
    permission = access_key.permission
    if isinstance(permission, FullAccess):
        return {"index": PERMISSION_FULL_ACCESS, "value": None}
    return {
        "index": PERMISSION_FUNCTION_CALL,
        "value": {
            "allowance": permission.allowance,
            "receiverId": permission.receiver_id,
            "methodNames": list(permission.method_names),
        },
    }


def action_to_borsh(action: ConnectorAction) -> Any:
    """Map one ConnectorAction onto its Borsh enum value."""
    variants = ACTION.enum
    if isinstance(action, CreateAccount):
        return variants.CreateAccount()
    if isinstance(action, DeployContract):
        return variants.DeployContract(code=action.code)
    if isinstance(action, FunctionCall):
        return variants.FunctionCall(
            methodName=action.method_name,
            args=action.args_bytes(),
            gas=action.gas,
            deposit=action.deposit,
        )
    if isinstance(action, Transfer):
        return variants.Transfer(deposit=action.deposit)
    if isinstance(action, Stake):
        return variants.Stake(stake=action.stake, publicKey=_public_key_value(action.public_key))
    if isinstance(action, AddKey):
        return variants.AddKey(
            publicKey=_public_key_value(action.public_key),
            accessKey={"nonce": action.access_key.nonce, "permission": _permission_value(action.access_key)},
        )
    if isinstance(action, DeleteKey):
        return variants.DeleteKey(publicKey=_public_key_value(action.public_key))
    if isinstance(action, DeleteAccount):
        return variants.DeleteAccount(beneficiaryId=action.beneficiary_id)
    if isinstance(action, DeployGlobalContract):
        mode = {"index": DEPLOY_MODE_INDEX[action.deploy_mode], "value": None}
        return variants.DeployGlobalContract(code=action.code, deployMode=mode)
    if isinstance(action, UseGlobalContract):
        identifier = action.contract_identifier
        if isinstance(identifier, GlobalContractAccountId):
            wire = {"index": IDENTIFIER_ACCOUNT_ID, "value": {"accountId": identifier.account_id}}
        else:
            wire = {"index": IDENTIFIER_CODE_HASH, "value": {"hash": base58.b58decode(identifier.code_hash)}}
        return variants.UseGlobalContract(contractIdentifier=wire)

    raise ValueError(f"Invalid action: {action!r}")


# =========================================================================
# Borsh value -> connector action
# =========================================================================


def _decode_args(raw: bytes) -> Any:
    """JSON args back to a value; non-JSON args stay as bytes."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def action_from_borsh(value: Any) -> ConnectorAction:
    variants = ACTION.enum
    if isinstance(value, variants.CreateAccount):
        return CreateAccount()
    if isinstance(value, variants.DeployContract):
        return DeployContract(code=bytes(value.code))
    if isinstance(value, variants.FunctionCall):
        return FunctionCall(
            method_name=value.methodName,
            args=_decode_args(bytes(value.args)),
            gas=value.gas,
            deposit=value.deposit,
        )
    if isinstance(value, variants.Transfer):
        return Transfer(deposit=value.deposit)
    if isinstance(value, variants.Stake):
        return Stake(stake=value.stake, public_key=_public_key_string(value.publicKey))
    if isinstance(value, variants.AddKey):
        permission = value.accessKey.permission
        if permission.index == PERMISSION_FULL_ACCESS:
            decoded_permission: FullAccess | FunctionCallPermission = FullAccess()
        else:
            decoded_permission = FunctionCallPermission(
                receiver_id=permission.value.receiverId,
                allowance=permission.value.allowance,
                method_names=tuple(permission.value.methodNames),
            )
        return AddKey(
            public_key=_public_key_string(value.publicKey),
            access_key=AccessKey(permission=decoded_permission, nonce=value.accessKey.nonce),
        )
    if isinstance(value, variants.DeleteKey):
        return DeleteKey(public_key=_public_key_string(value.publicKey))
    if isinstance(value, variants.DeleteAccount):
        return DeleteAccount(beneficiary_id=value.beneficiaryId)
    if isinstance(value, variants.DeployGlobalContract):
        return DeployGlobalContract(code=bytes(value.code), deploy_mode=DEPLOY_MODES[value.deployMode.index])
    if isinstance(value, variants.UseGlobalContract):
        identifier = value.contractIdentifier
        if identifier.index == IDENTIFIER_ACCOUNT_ID:
            return UseGlobalContract(GlobalContractAccountId(identifier.value.accountId))
        code_hash = base58.b58encode(bytes(identifier.value.hash)).decode("ascii")
        return UseGlobalContract(GlobalContractCodeHash(code_hash))

    raise ValueError(f"Action {type(value).__name__} is not part of the connector action model")


# =========================================================================
# Encode / decode
# =========================================================================


def _transaction_value(tx: AssembledTransaction) -> dict[str, Any]:
    return {
        "signerId": tx.signer_id,
        "publicKey": _public_key_value(tx.public_key),
        "nonce": tx.nonce,
        "receiverId": tx.receiver_id,
        "blockHash": base58.b58decode(tx.block_hash),
        "actions": [action_to_borsh(a) for a in tx.actions],
    }


def _transaction_from_value(value: Any) -> AssembledTransaction:
    return AssembledTransaction(
        signer_id=value.signerId,
        receiver_id=value.receiverId,
        actions=tuple(action_from_borsh(a) for a in value.actions),
        public_key=_public_key_string(value.publicKey),
        nonce=value.nonce,
        block_hash=base58.b58encode(bytes(value.blockHash)).decode("ascii"),
    )


def encode_transaction(tx: AssembledTransaction) -> bytes:
    """Borsh bytes of the unsigned transaction (what gets hashed and signed)."""
    return TRANSACTION.build(_transaction_value(tx))


def encode_signed_transaction(tx: AssembledTransaction, signature: bytes) -> bytes:
    if len(signature) != 64:
        raise ValueError(f"ed25519 signature must be 64 bytes, got {len(signature)}")
    return SIGNED_TRANSACTION.build(
        {
            "transaction": _transaction_value(tx),
            "signature": {"keyType": KEY_TYPE_ED25519, "data": signature},
        }
    )


def decode_transaction(data: bytes) -> AssembledTransaction:
    return _transaction_from_value(TRANSACTION.parse(data))


def decode_signed_transaction(data: bytes) -> tuple[AssembledTransaction, bytes]:
    """Parse signed bytes into (transaction, 64-byte signature)."""
    value = SIGNED_TRANSACTION.parse(data)
    return _transaction_from_value(value.transaction), bytes(value.signature.data)
