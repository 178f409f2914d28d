"""
Host seams for external signing surfaces.

The library never draws windows itself. The host (browser bridge,
desktop shell, test harness) implements these protocols:

    - SurfaceOpener: open a popup / deep link for a URL. Returns None when
      the environment blocked it (e.g. no user gesture).
    - SurfaceHandle: the opened surface. ``closed`` is polled; ``close()``
      is called once an outcome arrives.
    - ApprovalPrompt: ask the user to explicitly allow opening a surface.
      Returns when approved; raises if the user declines.

Incoming messages flow the other way, through
``SigningTransport.dispatch()``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

DEFAULT_POPUP_WIDTH = 480
DEFAULT_POPUP_HEIGHT = 640
DEFAULT_POPUP_FEATURES = (
    f"width={DEFAULT_POPUP_WIDTH},height={DEFAULT_POPUP_HEIGHT},scrollbars=yes,resizable=yes"
)


@runtime_checkable
class SurfaceHandle(Protocol):
    """An opened external surface."""

    @property
    def closed(self) -> bool:
        """True once the surface is gone (user closed it or close() ran)."""
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class SurfaceOpener(Protocol):
    """Opens external surfaces on behalf of the signing transport."""

    async def open(self, url: str, name: str, features: str) -> SurfaceHandle | None:
        """Open ``url``; None means the environment blocked the surface."""
        ...


@runtime_checkable
class ApprovalPrompt(Protocol):
    """Asks the user for an explicit gesture before retrying a blocked open."""

    async def when_approve(self, title: str, button: str) -> None:
        ...
