"""
near-connect: wallet connection and signing orchestration for NEAR.

Every signed transaction goes through:
- a resilient RPC client (endpoint failover, adaptive timeout)
- a signing decision (local function-call key, or external wallet)
- an out-of-process signing transport with exactly-once settlement

Wallet backends share one interface and report what they cannot do.
"""

__version__ = "0.1.0"

from near_connect.actions import (
    AddKey,
    ConnectorAction,
    CreateAccount,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    DeployGlobalContract,
    FunctionCall,
    Stake,
    Transfer,
    UseGlobalContract,
    action_from_dict,
    action_to_dict,
)
from near_connect.capability import CapabilityStore, FunctionCallCapability
from near_connect.config import MAINNET, TESTNET, NetworkConfig, load_network_config
from near_connect.errors import (
    CapabilityInsufficient,
    NearConnectError,
    NetworkError,
    RpcError,
    SigningCancelled,
    SigningRejected,
    SigningTimeout,
    TimeoutNetworkError,
    WalletError,
    WalletNotSignedIn,
)
from near_connect.keys import KeyPair
from near_connect.policy import can_sign_locally, check_local_signing
from near_connect.rpc import NearRpc
from near_connect.signing import SigningTransport
from near_connect.storage import KeyValueStorage, MemoryStorage, SqliteStorage
from near_connect.tx import (
    AssembledTransaction,
    SignedTransaction,
    TransactionIntent,
    assemble,
    assemble_batch,
    sign_transaction,
)
from near_connect.wallets import (
    Account,
    BridgeWallet,
    NearWallet,
    PopupWallet,
    SignedMessage,
    UnsupportedOperation,
)

__all__ = [
    "MAINNET",
    "TESTNET",
    "Account",
    "AddKey",
    "AssembledTransaction",
    "BridgeWallet",
    "CapabilityInsufficient",
    "CapabilityStore",
    "ConnectorAction",
    "CreateAccount",
    "DeleteAccount",
    "DeleteKey",
    "DeployContract",
    "DeployGlobalContract",
    "FunctionCall",
    "FunctionCallCapability",
    "KeyPair",
    "KeyValueStorage",
    "MemoryStorage",
    "NearConnectError",
    "NearRpc",
    "NearWallet",
    "NetworkConfig",
    "NetworkError",
    "PopupWallet",
    "RpcError",
    "SignedMessage",
    "SignedTransaction",
    "SigningCancelled",
    "SigningRejected",
    "SigningTimeout",
    "SigningTransport",
    "SqliteStorage",
    "Stake",
    "TimeoutNetworkError",
    "TransactionIntent",
    "Transfer",
    "UnsupportedOperation",
    "UseGlobalContract",
    "WalletError",
    "WalletNotSignedIn",
    "action_from_dict",
    "action_to_dict",
    "assemble",
    "assemble_batch",
    "can_sign_locally",
    "check_local_signing",
    "load_network_config",
    "sign_transaction",
]
