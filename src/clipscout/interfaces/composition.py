"""Composition root: wires config into strategies, sessions, sink and resolver."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from clipscout.application.revival import Reviver
from clipscout.application.use_cases.resolve_clip import ResolveClipUseCase
from clipscout.domain.ports.result_sink import ResultSinkPort
from clipscout.domain.ports.session import SessionProviderPort
from clipscout.infrastructure.browser import PlaywrightSessionPool
from clipscout.infrastructure.cache import DiskcacheAdapter
from clipscout.infrastructure.common import RetryTransport
from clipscout.infrastructure.config.schema import AppConfig
from clipscout.infrastructure.persistence import CacheResultSink
from clipscout.infrastructure.strategies import (
    DomInspectionStrategy,
    MarkupScanStrategy,
    PassiveObservationStrategy,
    StructuredQueryStrategy,
    parse_page_target,
)
from clipscout.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    """Shared client for GQL and markup requests (retries 429/502/503)."""
    transport = RetryTransport(
        httpx.AsyncHTTPTransport(),
        max_retries=config.http_retry_max_attempts,
        backoff_base=config.http_retry_backoff_base,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": config.http_user_agent},
        transport=transport,
    )


def build_session_pool(config: AppConfig) -> PlaywrightSessionPool:
    return PlaywrightSessionPool(
        headless=config.playwright_headless,
        stealth=config.playwright_stealth,
        user_agent=config.http_user_agent,
        timeout_ms=config.playwright_timeout_ms,
    )


def build_resolver(
    config: AppConfig,
    *,
    http_client: httpx.AsyncClient,
    sessions: SessionProviderPort | None,
    sink: ResultSinkPort | None,
) -> ResolveClipUseCase:
    """Assemble the resolver with strategies in their fixed run order."""
    resolver_cfg = config.resolver

    passive = PassiveObservationStrategy(
        window_ms=resolver_cfg.max_observation_window_ms,
        buffer_size=resolver_cfg.observation_buffer_size,
        navigation_timeout_ms=config.playwright_timeout_ms,
        render_timeout_ms=resolver_cfg.render_timeout_ms,
    )
    dom = DomInspectionStrategy(
        navigation_timeout_ms=config.playwright_timeout_ms,
        render_timeout_ms=resolver_cfg.render_timeout_ms,
    )

    return ResolveClipUseCase(
        config=resolver_cfg,
        parse_target=parse_page_target,
        structured_query=StructuredQueryStrategy(
            http_client,
            gql_url=config.twitch.gql_url,
            client_id=config.twitch.client_id,
            timeout=config.http_timeout_seconds,
        ),
        session_strategies=[passive, dom],
        markup_scan=MarkupScanStrategy(
            http_client,
            raise_on_empty=True,
            timeout=config.http_timeout_seconds,
        ),
        reviver=Reviver(
            passive,
            window_ms=resolver_cfg.revive_observation_window_ms,
            reload_timeout_ms=config.playwright_timeout_ms,
        ),
        sessions=sessions,
        sink=sink,
    )


@dataclass
class Runtime:
    """Live resources behind one resolver instance."""

    http_client: httpx.AsyncClient
    cache: DiskcacheAdapter
    sessions: PlaywrightSessionPool | None
    sink: CacheResultSink
    resolver: ResolveClipUseCase


@asynccontextmanager
async def open_runtime(
    config: AppConfig, *, use_browser: bool = True
) -> AsyncIterator[Runtime]:
    """Create every resource in order and release them in reverse.

    With ``use_browser=False`` no session provider is wired, so runs fall
    back to the markup scan after the structured query.
    """
    cache = DiskcacheAdapter(
        directory=config.cache_dir,
        ttl_seconds=config.cache_ttl_seconds,
    )
    await cache.__aenter__()
    log.info("cache_initialized", directory=str(config.cache_dir))

    http_client = build_http_client(config)
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    sessions = build_session_pool(config) if use_browser else None
    sink = CacheResultSink(cache, ttl_seconds=config.cache_ttl_seconds)
    resolver = build_resolver(
        config, http_client=http_client, sessions=sessions, sink=sink
    )
    log.info(
        "resolver_initialized",
        browser=use_browser,
        run_deadline_ms=config.resolver.run_deadline_ms,
    )

    try:
        yield Runtime(
            http_client=http_client,
            cache=cache,
            sessions=sessions,
            sink=sink,
            resolver=resolver,
        )
    finally:
        if sessions is not None:
            await sessions.cleanup()
            log.info("session_pool_cleaned_up")

        await http_client.aclose()
        log.info("http_client_closed")

        await cache.aclose()
        log.info("cache_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """FastAPI lifespan: expose the runtime on ``app.state``."""
    state = cast(AppState, app.state)
    config = state.config

    async with open_runtime(config) as runtime:
        state.http_client = runtime.http_client
        state.cache = runtime.cache
        state.sessions = runtime.sessions
        state.sink = runtime.sink
        state.resolver = runtime.resolver
        log.info("app_startup_complete")
        yield

    log.info("app_shutdown_complete")
