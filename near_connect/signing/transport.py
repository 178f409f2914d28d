"""
Out-of-process signing transport.

Drives a request that a human (or another process) must answer in an
external surface, with no latency bound, while staying cancellable and
leak-free.

One call to ``SigningTransport.request()`` does:
    1. Tag the request URL with the operation id (``?requestId=``) and
       open the surface for it. If the host reports it blocked, ask for
       explicit approval and open again.
    2. Register one PendingOperation (opaque id, indexed by surface)
       before any message can be dispatched to it.
    3. Wait for exactly one outcome:
         - "success" message  → close surface, resolve with extract(message)
         - "failure" message  → close surface, reject with SigningRejected
         - surface closed     → reject with SigningCancelled (300ms poll)
         - caller timeout     → close surface, reject with SigningTimeout
    4. Deregister and stop the poll task on every path.

State machine per operation::

    OPENING -> OPEN_FAILED -> OPENING (after approval)
    OPENING -> AWAITING_RESPONSE -> RESOLVED | REJECTED | CANCELLED | TIMED_OUT

AWAITING_RESPONSE is the only state that accepts messages. Terminal
states are absorbing: a second outcome is a no-op.

Correlation:
    The host delivers every incoming message to ``dispatch(message,
    source)``. Messages with a ``method`` field belong to other code on
    the same channel and are ignored. The operation is found by, in
    order: ``message["requestId"]`` (the id the request URL carried), the
    ``source`` surface, or, when exactly one operation is pending, that
    operation. Anything else is ignored.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx

from near_connect.errors import SigningCancelled, SigningRejected, SigningTimeout
from near_connect.signing.surface import (
    DEFAULT_POPUP_FEATURES,
    ApprovalPrompt,
    SurfaceHandle,
    SurfaceOpener,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.3
REQUEST_ID_PARAM = "requestId"

Message = Mapping[str, Any]
Extractor = Callable[[Message], Any]


class OperationState(StrEnum):
    OPENING = "OPENING"
    OPEN_FAILED = "OPEN_FAILED"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    TIMED_OUT = "TIMED_OUT"


TERMINAL_STATES = frozenset(
    {
        OperationState.RESOLVED,
        OperationState.REJECTED,
        OperationState.CANCELLED,
        OperationState.TIMED_OUT,
    }
)


def _whole_message(message: Message) -> Any:
    return dict(message)


@dataclass
class PendingOperation:
    """One outstanding external request.

    Attributes:
        id: Opaque correlation id.
        future: Settled exactly once with the outcome.
        extract: Maps a success message to the caller's payload.
        created_at: Monotonic creation time.
        surface: The opened surface; None while OPENING.
        state: Current state (see module docs).
    """

    id: str
    future: asyncio.Future[Any]
    extract: Extractor
    created_at: float
    surface: SurfaceHandle | None = None
    state: OperationState = OperationState.OPENING
    poll_task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class SigningTransport:
    """Opens external surfaces and correlates their outcome messages.

    Args:
        opener: Host seam that opens surfaces.
        approval: Host seam asking the user to allow a blocked surface.
            Without one, a blocked surface is reported as SigningCancelled.
        window_name: Target name passed to the opener.
        features: Window feature string passed to the opener.
        poll_interval: Seconds between surface-closed checks.
        request_id_param: Query parameter that carries the operation id in
            the request URL so the signer can echo it back as
            ``requestId``. None leaves the URL untouched.
    """

    def __init__(
        self,
        opener: SurfaceOpener,
        approval: ApprovalPrompt | None = None,
        *,
        window_name: str = "NearWallet",
        features: str = DEFAULT_POPUP_FEATURES,
        poll_interval: float = POLL_INTERVAL,
        request_id_param: str | None = REQUEST_ID_PARAM,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._opener = opener
        self._approval = approval
        self._window_name = window_name
        self._features = features
        self._poll_interval = poll_interval
        self._request_id_param = request_id_param
        self._clock = clock or time.monotonic
        self._pending: dict[str, PendingOperation] = {}

    @property
    def pending(self) -> dict[str, PendingOperation]:
        """Snapshot of outstanding operations keyed by id."""
        return dict(self._pending)

    # -----------------------------------------------------------------
    # Request
    # -----------------------------------------------------------------

    async def request(
        self,
        url: str,
        extract: Extractor | None = None,
        *,
        title: str = "Request action",
        button: str = "Open wallet",
        timeout: float | None = None,
    ) -> Any:
        """Present ``url`` externally and wait for its single outcome.

        Args:
            url: One-time request URL for the external signer.
            extract: Maps the success message to the return value.
                Defaults to the whole message as a dict. If it raises, the
                operation is rejected with that exception.
            title: Approval prompt title, shown only if the open is blocked.
            button: Approval prompt button label.
            timeout: Optional deadline in seconds.

        Raises:
            SigningRejected: The signer reported failure.
            SigningCancelled: The user closed the surface (or it was blocked
                and no approval prompt is configured).
            SigningTimeout: ``timeout`` expired first.
        """
        loop = asyncio.get_running_loop()
        op = PendingOperation(
            id=uuid.uuid4().hex,
            future=loop.create_future(),
            extract=extract or _whole_message,
            created_at=self._clock(),
        )
        if self._request_id_param:
            url = str(httpx.URL(url).copy_add_param(self._request_id_param, op.id))

        op.surface = await self._open_surface(op, url, title, button)
        op.state = OperationState.AWAITING_RESPONSE
        self._pending[op.id] = op
        op.poll_task = asyncio.create_task(self._watch_closed(op))

        try:
            if timeout is None:
                return await op.future
            return await asyncio.wait_for(op.future, timeout)
        except TimeoutError as e:
            self._settle(op, OperationState.TIMED_OUT, error=SigningTimeout(f"No response within {timeout}s"))
            raise SigningTimeout(f"No response within {timeout}s") from e
        finally:
            if not op.is_terminal:
                # Caller task was cancelled while waiting.
                self._settle(op, OperationState.CANCELLED, error=SigningCancelled("Request was cancelled"))

    async def _open_surface(self, op: PendingOperation, url: str, title: str, button: str) -> SurfaceHandle:
        while True:
            op.state = OperationState.OPENING
            surface = await self._opener.open(url, self._window_name, self._features)
            if surface is not None:
                return surface

            op.state = OperationState.OPEN_FAILED
            if self._approval is None:
                raise SigningCancelled("Wallet window was blocked")
            logger.info("Wallet window was blocked, asking for approval to open it")
            await self._approval.when_approve(title, button)

    async def _watch_closed(self, op: PendingOperation) -> None:
        while not op.is_terminal:
            await asyncio.sleep(self._poll_interval)
            if op.surface is not None and op.surface.closed:
                self._settle(op, OperationState.CANCELLED, error=SigningCancelled(), close_surface=False)
                return

    # -----------------------------------------------------------------
    # Message dispatch
    # -----------------------------------------------------------------

    def dispatch(self, message: Any, source: SurfaceHandle | None = None) -> bool:
        """Deliver one incoming message. Returns True if it settled an operation."""
        if not isinstance(message, Mapping):
            return False
        if message.get("method"):
            return False

        op = self._correlate(message, source)
        if op is None:
            logger.debug("Ignoring message with no matching pending operation")
            return False

        status = message.get("status")
        if status == "success":
            try:
                payload = op.extract(message)
            except Exception as e:
                return self._settle(op, OperationState.REJECTED, error=e)
            return self._settle(op, OperationState.RESOLVED, result=payload)

        if status == "failure":
            error = SigningRejected(
                message.get("errorMessage") or "Transaction failed",
                code=message.get("errorCode"),
            )
            return self._settle(op, OperationState.REJECTED, error=error)

        logger.debug("Unhandled message status: %r", status)
        return False

    def _correlate(self, message: Message, source: SurfaceHandle | None) -> PendingOperation | None:
        request_id = message.get("requestId")
        if request_id is not None:
            return self._pending.get(str(request_id))
        if source is not None:
            for op in self._pending.values():
                if op.surface is source:
                    return op
            return None
        if len(self._pending) == 1:
            return next(iter(self._pending.values()))
        return None

    # -----------------------------------------------------------------
    # Settlement
    # -----------------------------------------------------------------

    def _settle(
        self,
        op: PendingOperation,
        state: OperationState,
        *,
        result: Any = None,
        error: BaseException | None = None,
        close_surface: bool = True,
    ) -> bool:
        """Move ``op`` to a terminal state exactly once and tear it down."""
        if op.is_terminal:
            return False
        op.state = state
        self._pending.pop(op.id, None)

        if op.poll_task is not None and op.poll_task is not asyncio.current_task():
            op.poll_task.cancel()
        if close_surface and op.surface is not None and not op.surface.closed:
            op.surface.close()

        if not op.future.done():
            if error is not None:
                op.future.set_exception(error)
            else:
                op.future.set_result(result)
        return True
