"""Ports for live browsing sessions."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from clipscout.domain.entities.network import NetworkEvent

NetworkCallback = Callable[[NetworkEvent], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class SessionHandle(Protocol):
    """A single browsing session with one navigation state at a time.

    A session is owned by exactly one resolution run; implementations
    are not expected to be safe for concurrent navigation.
    """

    @property
    def has_navigated(self) -> bool:
        """Whether a page has been loaded in this session."""
        ...

    async def navigate(self, url: str, *, timeout_ms: int) -> None:
        """Load *url* and wait for the document to settle."""
        ...

    async def reload(self, *, timeout_ms: int) -> None:
        """Reload the current page."""
        ...

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> bool:
        """Wait until *selector* matches. ``False`` on timeout."""
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a read-only query against the rendered document."""
        ...

    def subscribe(self, callback: NetworkCallback) -> Unsubscribe:
        """Deliver every observed response to *callback* until unsubscribed."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class SessionProviderPort(Protocol):
    """Hands out independent browsing sessions."""

    async def warmup(self) -> None:
        """Prepare the underlying browser so ``open()`` is fast."""
        ...

    async def open(self) -> SessionHandle:
        """Acquire a fresh session exclusively owned by the caller."""
        ...

    async def cleanup(self) -> None:
        ...
