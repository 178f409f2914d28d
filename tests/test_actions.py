"""
Tests for the connector action model and its wire shape.

Test plan:
- from_dict: each action type parses, amounts become ints, code is
  base64-decoded, defaults applied (FunctionCall deposit)
- to_dict: inverse shape, amounts as decimal strings, bytes args as
  their JSON value or base64
- Validation: unknown type, negative and non-numeric amounts, bool amount
- args_bytes: compact JSON, raw bytes passthrough
- actions_from_dicts: mixes dicts and ready-made actions
"""

import base64

import pytest

from near_connect.actions import (
    AccessKey,
    AddKey,
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
    action_from_dict,
    action_to_dict,
    actions_from_dicts,
)
from near_connect.keys import KeyPair

PUBLIC_KEY = KeyPair.from_random().public_key


# ---------------------------------------------------------------------------
# from_dict
# ---------------------------------------------------------------------------


class TestActionFromDict:
    def test_create_account(self) -> None:
        assert action_from_dict({"type": "CreateAccount"}) == CreateAccount()

    def test_function_call(self) -> None:
        action = action_from_dict(
            {
                "type": "FunctionCall",
                "params": {"methodName": "set", "args": {"v": 1}, "gas": "30000000000000", "deposit": "1"},
            }
        )
        assert action == FunctionCall("set", {"v": 1}, 30_000_000_000_000, 1)

    def test_function_call_deposit_defaults_to_zero(self) -> None:
        action = action_from_dict({"type": "FunctionCall", "params": {"methodName": "m", "gas": "1"}})
        assert isinstance(action, FunctionCall)
        assert action.deposit == 0
        assert action.args == {}

    def test_transfer(self) -> None:
        action = action_from_dict({"type": "Transfer", "params": {"deposit": "1000000000000000000000000"}})
        assert action == Transfer(10**24)

    def test_deploy_contract_base64(self) -> None:
        code = base64.b64encode(b"\x00asm").decode()
        assert action_from_dict({"type": "DeployContract", "params": {"code": code}}) == DeployContract(b"\x00asm")

    def test_stake(self) -> None:
        action = action_from_dict({"type": "Stake", "params": {"stake": "5", "publicKey": PUBLIC_KEY}})
        assert action == Stake(5, PUBLIC_KEY)

    def test_add_full_access_key(self) -> None:
        action = action_from_dict(
            {
                "type": "AddKey",
                "params": {"publicKey": PUBLIC_KEY, "accessKey": {"permission": "FullAccess"}},
            }
        )
        assert action == AddKey(PUBLIC_KEY, AccessKey(FullAccess(), 0))

    def test_add_function_call_key(self) -> None:
        action = action_from_dict(
            {
                "type": "AddKey",
                "params": {
                    "publicKey": PUBLIC_KEY,
                    "accessKey": {
                        "nonce": 3,
                        "permission": {"receiverId": "app.near", "allowance": "250", "methodNames": ["a", "b"]},
                    },
                },
            }
        )
        assert action == AddKey(
            PUBLIC_KEY,
            AccessKey(FunctionCallPermission("app.near", 250, ("a", "b")), 3),
        )

    def test_delete_key_and_account(self) -> None:
        assert action_from_dict({"type": "DeleteKey", "params": {"publicKey": PUBLIC_KEY}}) == DeleteKey(PUBLIC_KEY)
        assert action_from_dict(
            {"type": "DeleteAccount", "params": {"beneficiaryId": "bob.near"}}
        ) == DeleteAccount("bob.near")

    def test_use_global_contract(self) -> None:
        by_account = action_from_dict(
            {"type": "UseGlobalContract", "params": {"contractIdentifier": {"accountId": "lib.near"}}}
        )
        by_hash = action_from_dict(
            {"type": "UseGlobalContract", "params": {"contractIdentifier": {"codeHash": "abc"}}}
        )
        assert by_account == UseGlobalContract(GlobalContractAccountId("lib.near"))
        assert by_hash == UseGlobalContract(GlobalContractCodeHash("abc"))

    def test_deploy_global_contract_mode(self) -> None:
        action = action_from_dict(
            {"type": "DeployGlobalContract", "params": {"code": "AA==", "deployMode": "AccountId"}}
        )
        assert action == DeployGlobalContract(b"\x00", GlobalDeployMode.ACCOUNT_ID)


# ---------------------------------------------------------------------------
# to_dict
# ---------------------------------------------------------------------------


class TestActionToDict:
    def test_function_call_amounts_are_strings(self) -> None:
        wire = action_to_dict(FunctionCall("set", {"v": 1}, gas=10, deposit=2))
        assert wire == {
            "type": "FunctionCall",
            "params": {"methodName": "set", "args": {"v": 1}, "gas": "10", "deposit": "2"},
        }

    def test_add_key_permission_shape(self) -> None:
        wire = action_to_dict(AddKey(PUBLIC_KEY, AccessKey(FunctionCallPermission("app.near", None, ("m",)))))
        assert wire["params"]["accessKey"]["permission"] == {"receiverId": "app.near", "methodNames": ["m"]}

    def test_function_call_json_bytes_args(self) -> None:
        wire = action_to_dict(FunctionCall("set", b'{"v":1}'))
        assert wire["params"]["args"] == {"v": 1}

    def test_function_call_binary_args_are_base64(self) -> None:
        wire = action_to_dict(FunctionCall("raw", b"\xff\x00\x80"))
        assert wire["params"]["args"] == base64.b64encode(b"\xff\x00\x80").decode()

    def test_deploy_contract_code_is_base64(self) -> None:
        wire = action_to_dict(DeployContract(b"\x01\x02"))
        assert wire["params"]["code"] == base64.b64encode(b"\x01\x02").decode()

    def test_create_account_has_no_params(self) -> None:
        assert action_to_dict(CreateAccount()) == {"type": "CreateAccount"}

    def test_inverse_of_from_dict(self) -> None:
        wire = {"type": "Transfer", "params": {"deposit": "7"}}
        assert action_to_dict(action_from_dict(wire)) == wire


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid action type"):
            action_from_dict({"type": "Teleport", "params": {}})

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            action_from_dict({"type": "Transfer", "params": {"deposit": "-1"}})

    def test_non_numeric_amount_rejected(self) -> None:
        with pytest.raises(ValueError, match="integer amount"):
            action_from_dict({"type": "Transfer", "params": {"deposit": "lots"}})

    def test_bool_amount_rejected(self) -> None:
        with pytest.raises(ValueError):
            action_from_dict({"type": "Transfer", "params": {"deposit": True}})

    def test_invalid_permission_rejected(self) -> None:
        with pytest.raises(ValueError, match="permission"):
            action_from_dict(
                {"type": "AddKey", "params": {"publicKey": PUBLIC_KEY, "accessKey": {"permission": "Some"}}}
            )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_args_bytes_compact_json(self) -> None:
        assert FunctionCall("m", {"a": 1, "b": [1, 2]}).args_bytes() == b'{"a":1,"b":[1,2]}'

    def test_args_bytes_passthrough(self) -> None:
        assert FunctionCall("m", b"\xff\x00").args_bytes() == b"\xff\x00"

    def test_actions_from_dicts_mixed(self) -> None:
        ready = Transfer(1)
        parsed = actions_from_dicts([ready, {"type": "CreateAccount"}])
        assert parsed == [ready, CreateAccount()]
