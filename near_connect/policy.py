"""
Signing decision policy: can a transaction skip the external signer?

Local signing with a cached function-call key is a latency optimisation.
It is allowed only for the narrowest shape of transaction, the one the
chain itself would accept from a function-call access key without
spending the user's funds:

    1. a capability is cached,
    2. its contract is the transaction receiver,
    3. the transaction has exactly one action,
    4. that action is a FunctionCall,
    5. its deposit is zero,
    6. the capability's method list is empty or names the method.

Anything else goes to the external signer.
"""

from __future__ import annotations

from collections.abc import Sequence

from near_connect.actions import ConnectorAction, FunctionCall
from near_connect.capability import FunctionCallCapability
from near_connect.errors import CapabilityInsufficient

REASON_NO_CAPABILITY = "no_capability"
REASON_WRONG_RECEIVER = "wrong_receiver"
REASON_NOT_SINGLE_ACTION = "not_single_action"
REASON_NOT_FUNCTION_CALL = "not_function_call"
REASON_NONZERO_DEPOSIT = "nonzero_deposit"
REASON_METHOD_NOT_ALLOWED = "method_not_allowed"


def check_local_signing(
    receiver_id: str,
    actions: Sequence[ConnectorAction],
    capability: FunctionCallCapability | None,
) -> FunctionCallCapability:
    """Return the capability if it may sign locally.

    Raises:
        CapabilityInsufficient: With ``reason`` naming the first failed rule.
    """
    if capability is None:
        raise CapabilityInsufficient(REASON_NO_CAPABILITY)
    if capability.contract_id != receiver_id:
        raise CapabilityInsufficient(REASON_WRONG_RECEIVER)
    if len(actions) != 1:
        raise CapabilityInsufficient(REASON_NOT_SINGLE_ACTION)

    action = actions[0]
    if not isinstance(action, FunctionCall):
        raise CapabilityInsufficient(REASON_NOT_FUNCTION_CALL)
    if action.deposit != 0:
        raise CapabilityInsufficient(REASON_NONZERO_DEPOSIT)
    if capability.methods and action.method_name not in capability.methods:
        raise CapabilityInsufficient(REASON_METHOD_NOT_ALLOWED)
    return capability


def can_sign_locally(
    receiver_id: str,
    actions: Sequence[ConnectorAction],
    capability: FunctionCallCapability | None,
) -> bool:
    try:
        check_local_signing(receiver_id, actions, capability)
    except CapabilityInsufficient:
        return False
    return True
