"""Port for discovery strategies."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from clipscout.domain.entities.clip import PageTarget, StrategyOutcome, StrategySource
from clipscout.domain.ports.session import SessionHandle


@runtime_checkable
class DiscoveryStrategyPort(Protocol):
    """One independent technique for discovering asset URL candidates.

    Implementations return an empty outcome for "no data" and raise a
    ``StrategyError`` subclass for faults.

    *deadline* is the event-loop time (``loop.time()``) by which the
    attempt should return; the caller cancels it shortly afterwards.
    Strategies that gather candidates over time stop there and return
    what they have with ``truncated=True``. Others may ignore it.
    """

    @property
    def source(self) -> StrategySource:
        ...

    async def attempt(
        self,
        target: PageTarget,
        session: SessionHandle | None,
        *,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        ...
