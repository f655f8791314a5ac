"""Shared test fixtures for the clipscout test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fakes import CLIP_SLUG, FakeSession

from clipscout.domain.entities.clip import PageTarget
from clipscout.infrastructure.config.schema import ResolverConfig

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def page_target() -> PageTarget:
    return PageTarget(
        raw=f"https://clips.twitch.tv/{CLIP_SLUG}",
        slug=CLIP_SLUG,
        page_url=f"https://clips.twitch.tv/{CLIP_SLUG}",
    )


@pytest.fixture()
def resolver_config() -> ResolverConfig:
    """Short windows so tests never wait on real observation time."""
    return ResolverConfig(
        max_observation_window_ms=10,
        revive_observation_window_ms=10,
        run_deadline_ms=5_000,
        strategy_timeout_ms=1_000,
        render_timeout_ms=100,
    )


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.aclose = AsyncMock()
    return cache


@pytest.fixture()
def mock_sink() -> AsyncMock:
    """Mock ResultSinkPort."""
    sink = AsyncMock()
    sink.record = AsyncMock()
    sink.latest = AsyncMock(return_value=None)
    return sink
