"""PassiveObservation strategy: collects asset URLs from live traffic.

The subscription callback fills a bounded, de-duplicating buffer; its
contents become candidates once the observation window elapses or the
attempt deadline arrives.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable

import structlog

from clipscout.domain.entities.clip import (
    Candidate,
    PageTarget,
    StrategyOutcome,
    StrategySource,
)
from clipscout.domain.entities.network import NetworkEvent
from clipscout.domain.exceptions import StrategyError, StrategyTransportError
from clipscout.domain.ports.session import SessionHandle
from clipscout.infrastructure.strategies.patterns import is_asset_url

log = structlog.get_logger(__name__)

MEDIA_SELECTOR = "video"


def _seconds_left(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - asyncio.get_running_loop().time())


class ObservationBuffer:
    """First-seen ordered URL buffer; evicts the oldest entry when full."""

    def __init__(self, max_size: int = 256) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._urls: deque[str] = deque(maxlen=max_size)
        self.evicted = 0

    def offer(self, event: NetworkEvent) -> None:
        url = event.url
        if not url or not is_asset_url(url) or url in self._urls:
            return
        if len(self._urls) == self._urls.maxlen:
            self.evicted += 1
        self._urls.append(url)

    def snapshot(self) -> list[str]:
        return list(self._urls)

    def __len__(self) -> int:
        return len(self._urls)


class PassiveObservationStrategy:
    """Watches the session's network responses for asset URLs.

    On a session that has not loaded anything yet, the subscription is
    installed first and the page is navigated under observation, so the
    player's initial media requests are not missed. When the deadline
    arrives first, whatever the buffer holds is returned as a truncated
    outcome.
    """

    def __init__(
        self,
        *,
        window_ms: int = 3_000,
        buffer_size: int = 256,
        navigation_timeout_ms: int = 30_000,
        render_timeout_ms: int = 30_000,
    ) -> None:
        self._window_ms = window_ms
        self._buffer_size = buffer_size
        self._navigation_timeout_ms = navigation_timeout_ms
        self._render_timeout_ms = render_timeout_ms

    @property
    def source(self) -> StrategySource:
        return StrategySource.PASSIVE_OBSERVATION

    async def attempt(
        self,
        target: PageTarget,
        session: SessionHandle | None,
        *,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        if session is None:
            raise StrategyTransportError("passive observation needs a live session")

        prime: Callable[[], Awaitable[None]] | None = None
        if not session.has_navigated:

            async def prime() -> None:
                await session.navigate(
                    target.page_url, timeout_ms=self._navigation_timeout_ms
                )
                rendered = await session.wait_for_selector(
                    MEDIA_SELECTOR, timeout_ms=self._render_timeout_ms
                )
                if not rendered:
                    log.info("passive_media_element_missing", url=target.page_url)

        return await self.observe(
            session, window_ms=self._window_ms, prime=prime, deadline=deadline
        )

    async def observe(
        self,
        session: SessionHandle,
        *,
        window_ms: int,
        prime: Callable[[], Awaitable[None]] | None = None,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        """Subscribe, run *prime* (navigate/reload), then wait *window_ms*.

        Both steps stop at *deadline*; the outcome then carries the
        partial buffer and ``truncated=True``.
        """
        buffer = ObservationBuffer(self._buffer_size)
        truncated = False
        unsubscribe = session.subscribe(buffer.offer)
        try:
            if prime is not None:
                try:
                    await asyncio.wait_for(prime(), timeout=_seconds_left(deadline))
                except TimeoutError:
                    truncated = True
                except StrategyError:
                    raise
                except Exception as exc:
                    raise StrategyTransportError(
                        f"page load under observation failed: {exc!r}"
                    ) from exc

            if not truncated:
                window = window_ms / 1000
                left = _seconds_left(deadline)
                if left is not None and left < window:
                    window, truncated = left, True
                await asyncio.sleep(window)
        finally:
            unsubscribe()

        urls = buffer.snapshot()
        log.debug(
            "passive_observation_window_closed",
            window_ms=window_ms,
            matches=len(urls),
            evicted=buffer.evicted,
            truncated=truncated,
        )
        return StrategyOutcome(
            candidates=[
                Candidate(url=url, source=StrategySource.PASSIVE_OBSERVATION)
                for url in urls
            ],
            truncated=truncated,
        )
