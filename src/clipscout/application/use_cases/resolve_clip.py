"""Clip asset resolution use case.

target -> StructuredQuery (browser warms up meanwhile)
-> [short-circuit] or PassiveObservation -> DomInspection
   (MarkupScan when no session is available)
-> Reviver (only opaque references found) -> select -> result.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from contextlib import suppress
from typing import Protocol
from uuid import uuid4

import structlog

from clipscout.application.revival import Reviver
from clipscout.application.run_state import RunState
from clipscout.application.selection import needs_revival, select_candidate
from clipscout.domain.entities.clip import (
    Candidate,
    ErrorKind,
    PageTarget,
    ResolutionFailure,
    ResolutionResult,
    ResolutionSuccess,
    StrategySource,
)
from clipscout.domain.exceptions import InvalidTargetError, StrategyError
from clipscout.domain.ports.result_sink import ResultSinkPort
from clipscout.domain.ports.session import SessionHandle, SessionProviderPort
from clipscout.domain.ports.strategy import DiscoveryStrategyPort

log = structlog.get_logger(__name__)

# Cooperative strategies are asked to return this long before the hard
# timeout cancels them.
_RETURN_MARGIN_S = 0.1


class _ResolverConfig(Protocol):
    """Configuration values consumed by ResolveClipUseCase."""

    run_deadline_ms: int
    strategy_timeout_ms: int
    preferred_quality_order: list[str]
    short_circuit_structured_query: bool


_ParseTargetFn = Callable[[str], PageTarget]
_SelectFn = Callable[[Sequence[Candidate], Sequence[str]], Candidate | None]


class ResolveClipUseCase:
    """Drives the discovery strategies for one target per ``execute`` call.

    Nothing run-specific is stored on the instance, so concurrent
    ``execute`` calls are independent (each acquires its own session).
    """

    def __init__(
        self,
        *,
        config: _ResolverConfig,
        parse_target: _ParseTargetFn,
        structured_query: DiscoveryStrategyPort | None = None,
        session_strategies: Sequence[DiscoveryStrategyPort] = (),
        markup_scan: DiscoveryStrategyPort | None = None,
        reviver: Reviver | None = None,
        sessions: SessionProviderPort | None = None,
        sink: ResultSinkPort | None = None,
        select_fn: _SelectFn = select_candidate,
    ) -> None:
        self._parse_target = parse_target
        self._structured_query = structured_query
        self._session_strategies = list(session_strategies)
        self._markup_scan = markup_scan
        self._reviver = reviver
        self._sessions = sessions
        self._sink = sink
        self._select = select_fn
        self._run_deadline = config.run_deadline_ms / 1000
        self._strategy_timeout = config.strategy_timeout_ms / 1000
        self._preferred_quality_order = list(config.preferred_quality_order)
        self._short_circuit = config.short_circuit_structured_query

    async def execute(self, target: str | PageTarget) -> ResolutionResult:
        """Resolve *target* to an asset URL. Never raises for bad input."""
        if isinstance(target, PageTarget):
            page_target = target
        else:
            try:
                page_target = self._parse_target(target)
            except InvalidTargetError as exc:
                log.warning("invalid_target", target=target, detail=exc.detail)
                result: ResolutionResult = ResolutionFailure(
                    reason=ErrorKind.INVALID_TARGET, detail=exc.detail
                )
                await self._record(PageTarget(raw=target, slug="", page_url=target), result)
                return result

        run = RunState(target=page_target, run_id=uuid4().hex[:12])
        with structlog.contextvars.bound_contextvars(
            run_id=run.run_id, slug=page_target.slug
        ):
            t0 = time.perf_counter()
            log.info("resolution_started", target=page_target.raw)
            result = await self._run(run)
            duration_ms = round((time.perf_counter() - t0) * 1000, 1)
            if isinstance(result, ResolutionSuccess):
                log.info(
                    "resolution_succeeded",
                    strategy=result.strategy_used.value,
                    quality=result.quality,
                    pool_size=len(run.pool),
                    duration_ms=duration_ms,
                )
            else:
                log.warning(
                    "resolution_failed",
                    reason=result.reason.value,
                    detail=result.detail,
                    pool_size=len(run.pool),
                    duration_ms=duration_ms,
                )
            await self._record(page_target, result)
        return result

    # ------------------------------------------------------------------
    # Run phases
    # ------------------------------------------------------------------

    async def _run(self, run: RunState) -> ResolutionResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._run_deadline

        warmup: asyncio.Task[None] | None = None
        if self._sessions is not None and self._session_strategies:
            warmup = asyncio.create_task(self._warmup())

        try:
            if self._structured_query is not None:
                await self._attempt(run, self._structured_query, None, deadline)

            if self._short_circuit and run.has_selectable():
                log.info("structured_query_short_circuit", candidates=len(run.pool))
            else:
                await self._session_phase(run, deadline, warmup)
        finally:
            if warmup is not None and not warmup.done():
                warmup.cancel()
                with suppress(asyncio.CancelledError):
                    await warmup

        return self._conclude(run)

    async def _session_phase(
        self,
        run: RunState,
        deadline: float,
        warmup: asyncio.Task[None] | None,
    ) -> None:
        session: SessionHandle | None = None
        if self._sessions is not None and self._session_strategies:
            session = await self._open_session(run, deadline, warmup)

        if session is None:
            if self._markup_scan is not None:
                await self._attempt(run, self._markup_scan, None, deadline)
            return

        try:
            for strategy in self._session_strategies:
                await self._attempt(run, strategy, session, deadline)

            if self._reviver is not None and needs_revival(run.pool):
                await self._revive(run, session, deadline)
        finally:
            try:
                await session.close()
            except Exception:  # noqa: BLE001
                log.debug("session_close_error", exc_info=True)

    def _conclude(self, run: RunState) -> ResolutionResult:
        chosen = self._select(run.pool, self._preferred_quality_order)
        if chosen is None:
            if not run.pool:
                if run.deadline_exceeded or run.only_timeouts():
                    return ResolutionFailure(
                        reason=ErrorKind.RUN_TIMEOUT,
                        detail=f"no candidates before deadline ({run.failure_summary()})",
                    )
                return ResolutionFailure(
                    reason=ErrorKind.NO_CANDIDATES,
                    detail=run.failure_summary(),
                )
            return ResolutionFailure(
                reason=ErrorKind.NO_VALID_CANDIDATE,
                detail=(
                    f"{len(run.pool)} candidate(s) found, "
                    "all opaque local references"
                ),
            )

        title, creator = run.merged_metadata()
        return ResolutionSuccess(
            asset_url=chosen.url,
            title=title,
            creator=creator,
            quality=chosen.quality,
            strategy_used=chosen.source,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _remaining(self, deadline: float) -> float:
        return deadline - asyncio.get_running_loop().time()

    def _soft_deadline(self, timeout: float) -> float:
        """Loop time at which a cooperative attempt hands back what it has."""
        margin = min(_RETURN_MARGIN_S, timeout / 2)
        return asyncio.get_running_loop().time() + timeout - margin

    def _note_timeout(
        self, run: RunState, source: StrategySource, timeout: float, kept: int
    ) -> None:
        run.timed_out.add(source)
        if timeout < self._strategy_timeout:
            run.deadline_exceeded = True
        if not kept:
            run.soft_failures[source] = f"timed out after {timeout:.1f}s"
        log.warning(
            "strategy_timeout", strategy=source.value, timeout=timeout, kept=kept
        )

    async def _attempt(
        self,
        run: RunState,
        strategy: DiscoveryStrategyPort,
        session: SessionHandle | None,
        deadline: float,
    ) -> None:
        """Run one strategy; every failure becomes an empty outcome.

        A truncated outcome still counts as a timeout, but its candidates
        join the pool.
        """
        source = strategy.source
        remaining = self._remaining(deadline)
        if remaining <= 0:
            run.deadline_exceeded = True
            run.soft_failures[source] = "skipped, run deadline exceeded"
            log.warning("strategy_skipped_deadline", strategy=source.value)
            return

        timeout = min(self._strategy_timeout, remaining)
        run.attempted.append(source)
        t0 = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(
                strategy.attempt(
                    run.target, session, deadline=self._soft_deadline(timeout)
                ),
                timeout=timeout,
            )
        except TimeoutError:
            self._note_timeout(run, source, timeout, kept=0)
            return
        except StrategyError as exc:
            run.soft_failures[source] = f"{exc.kind.value}: {exc.detail}"
            log.warning(
                "strategy_soft_failure",
                strategy=source.value,
                kind=exc.kind.value,
                detail=exc.detail,
            )
            return
        except Exception as exc:  # noqa: BLE001
            run.soft_failures[source] = (
                f"{ErrorKind.STRATEGY_TRANSPORT_FAILURE.value}: {exc!r}"
            )
            log.warning(
                "strategy_unexpected_error", strategy=source.value, exc_info=True
            )
            return

        added = run.extend(outcome.candidates)
        if outcome.metadata is not None:
            run.metadata[source] = outcome.metadata
        if outcome.truncated:
            self._note_timeout(run, source, timeout, kept=len(added))
        elif not added:
            run.soft_failures[source] = "no candidates"
        log.info(
            "strategy_completed",
            strategy=source.value,
            candidates=len(added),
            truncated=outcome.truncated,
            opaque=sum(1 for c in added if c.is_opaque),
            duration_ms=round((time.perf_counter() - t0) * 1000, 1),
        )

    async def _warmup(self) -> None:
        assert self._sessions is not None
        try:
            await self._sessions.warmup()
        except Exception:  # noqa: BLE001
            log.warning("session_warmup_failed", exc_info=True)

    async def _open_session(
        self,
        run: RunState,
        deadline: float,
        warmup: asyncio.Task[None] | None,
    ) -> SessionHandle | None:
        assert self._sessions is not None
        remaining = self._remaining(deadline)
        if remaining <= 0:
            run.deadline_exceeded = True
            return None
        try:
            if warmup is not None:
                await asyncio.wait_for(asyncio.shield(warmup), timeout=remaining)
            return await asyncio.wait_for(
                self._sessions.open(), timeout=self._remaining(deadline)
            )
        except TimeoutError:
            run.deadline_exceeded = True
            log.warning("session_open_timeout")
        except Exception:  # noqa: BLE001
            log.warning("session_unavailable", exc_info=True)
        return None

    async def _revive(
        self, run: RunState, session: SessionHandle, deadline: float
    ) -> None:
        assert self._reviver is not None
        remaining = self._remaining(deadline)
        if remaining <= 0:
            run.deadline_exceeded = True
            return
        try:
            await asyncio.wait_for(
                self._reviver.revive(
                    run, session, deadline=self._soft_deadline(remaining)
                ),
                timeout=remaining,
            )
        except TimeoutError:
            run.deadline_exceeded = True
            log.warning("revival_timeout", timeout=remaining)

    async def _record(self, target: PageTarget, result: ResolutionResult) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.record(target, result)
        except Exception:  # noqa: BLE001
            log.error("result_sink_failed", exc_info=True)
