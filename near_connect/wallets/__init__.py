"""
Wallet backends behind one ``NearWallet`` interface.

    - ``PopupWallet``: web wallet on its own origin, driven through
      ``SigningTransport`` (with a local fast path for function-call keys).
    - ``BridgeWallet``: wallet exposed by the host as an async bridge.
"""

from near_connect.wallets.base import (
    Account,
    NearWallet,
    SignedMessage,
    UnsupportedOperation,
    WalletTransaction,
)
from near_connect.wallets.bridge import BridgeWallet, WalletBridge
from near_connect.wallets.popup import PopupWallet

__all__ = [
    "Account",
    "BridgeWallet",
    "NearWallet",
    "PopupWallet",
    "SignedMessage",
    "UnsupportedOperation",
    "WalletBridge",
    "WalletTransaction",
]
