"""Second observation pass for runs that only found opaque references."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog

from clipscout.application.run_state import RunState
from clipscout.domain.entities.clip import StrategyOutcome
from clipscout.domain.ports.session import SessionHandle

log = structlog.get_logger(__name__)


class _Observer(Protocol):
    """Network observation capability (PassiveObservationStrategy)."""

    async def observe(
        self,
        session: SessionHandle,
        *,
        window_ms: int,
        prime: Callable[[], Awaitable[None]] | None = None,
        deadline: float | None = None,
    ) -> StrategyOutcome: ...


class Reviver:
    """Reloads the session's page under observation, at most once per run.

    A failed reload is logged and swallowed; whatever the pool already
    holds goes on to selection. URLs observed before the run
    deadline cuts the pass short are kept.
    """

    def __init__(
        self,
        observer: _Observer,
        *,
        window_ms: int,
        reload_timeout_ms: int,
    ) -> None:
        self._observer = observer
        self._window_ms = window_ms
        self._reload_timeout_ms = reload_timeout_ms

    async def revive(
        self,
        run: RunState,
        session: SessionHandle,
        *,
        deadline: float | None = None,
    ) -> int:
        """Append newly observed candidates to *run*; return how many."""
        if run.revival_attempted:
            log.debug("revival_already_attempted")
            return 0
        run.revival_attempted = True

        log.info("revival_started", window_ms=self._window_ms)

        async def _reload() -> None:
            await session.reload(timeout_ms=self._reload_timeout_ms)

        try:
            outcome = await self._observer.observe(
                session, window_ms=self._window_ms, prime=_reload, deadline=deadline
            )
        except Exception:  # noqa: BLE001
            log.warning("revival_failed", exc_info=True)
            return 0

        added = run.extend(outcome.candidates)
        if outcome.truncated:
            run.deadline_exceeded = True
        log.info(
            "revival_completed", candidates=len(added), truncated=outcome.truncated
        )
        return len(added)
