"""Port for recording resolution results."""

from __future__ import annotations

from typing import Any, Protocol

from clipscout.domain.entities.clip import PageTarget, ResolutionResult


class ResultSinkPort(Protocol):
    """Durably records one result per resolution run."""

    async def record(self, target: PageTarget, result: ResolutionResult) -> None:
        ...

    async def latest(self, slug: str) -> dict[str, Any] | None:
        """Return the last recorded entry for *slug*, if still retained."""
        ...
