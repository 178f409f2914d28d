"""
Error taxonomy for near-connect.

Every failure a caller can observe is one of these classes. The split
follows where the failure happened, because that decides what the
library does with it:

    - ``NetworkError`` / ``TimeoutNetworkError``: the endpoint could not be
      reached or answered with a non-2xx status. Retried by the RPC client
      (endpoint rotation + pacing) and only surfaced once the retry budget
      is spent.
    - ``RpcError``: the endpoint answered and the chain rejected the call.
      Never retried; ``type`` carries the server-defined error type.
    - ``SigningCancelled``: the user closed the external surface.
    - ``SigningRejected``: the external signer explicitly declined.
    - ``SigningTimeout``: a caller-imposed deadline expired first.
    - ``CapabilityInsufficient``: the cached function-call key cannot cover
      the request. Not a hard failure; the wallet falls back to the
      external signer.
    - ``WalletError`` / ``WalletNotSignedIn``: wallet-level misuse or an
      invalid response from a wallet.
"""

from __future__ import annotations


class NearConnectError(Exception):
    """Base class for all near-connect errors."""


# =========================================================================
# Transport / RPC
# =========================================================================


class NetworkError(NearConnectError):
    """The RPC endpoint was unreachable or returned a non-2xx status.

    Attributes:
        status: HTTP status code, or 0 when no response was received.
        title: Short category, e.g. "RPC Network Error".
        detail: Human-readable detail (response body preview, cause).
    """

    def __init__(self, status: int, title: str, detail: str) -> None:
        super().__init__(f"{status} {title}: {detail}")
        self.status = status
        self.title = title
        self.detail = detail


class TimeoutNetworkError(NetworkError):
    """The request did not complete within the client's current timeout."""

    def __init__(self, title: str) -> None:
        super().__init__(0, title, "Timeout error")


class RpcError(NearConnectError):
    """The endpoint answered with a JSON-RPC error.

    Attributes:
        type: Server-defined error type (e.g. "AccessKeyDoesNotExist",
            "TimeoutError", "ServerError", "UntypedError").
    """

    def __init__(self, message: str, type: str) -> None:
        super().__init__(message)
        self.message = message
        self.type = type


# =========================================================================
# Out-of-process signing
# =========================================================================


class SigningCancelled(NearConnectError):
    """The user closed the external surface before it answered."""

    def __init__(self, message: str = "User closed the window") -> None:
        super().__init__(message)


class SigningRejected(NearConnectError):
    """The external signer reported a failure outcome."""

    def __init__(self, message: str = "Transaction failed", code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class SigningTimeout(NearConnectError):
    """No outcome arrived before the caller's deadline."""


class CapabilityInsufficient(NearConnectError):
    """The cached function-call key cannot sign the requested transaction.

    Attributes:
        reason: Which eligibility rule failed (machine-readable).
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Function call key cannot sign locally: {reason}")
        self.reason = reason


# =========================================================================
# Wallets
# =========================================================================


class WalletError(NearConnectError):
    """A wallet backend returned an invalid response or failed outright."""


class WalletNotSignedIn(WalletError):
    """The operation needs a signed-in account."""

    def __init__(self, message: str = "Wallet not signed in") -> None:
        super().__init__(message)
