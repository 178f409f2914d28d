"""
Out-of-process signing: host seams plus the pending-operation transport.
"""

from near_connect.signing.surface import ApprovalPrompt, SurfaceHandle, SurfaceOpener
from near_connect.signing.transport import (
    OperationState,
    PendingOperation,
    SigningTransport,
)

__all__ = [
    "ApprovalPrompt",
    "OperationState",
    "PendingOperation",
    "SigningTransport",
    "SurfaceHandle",
    "SurfaceOpener",
]
