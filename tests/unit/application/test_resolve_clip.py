"""Tests for ResolveClipUseCase."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

from fakes import CDN_URL, CLIP_SLUG, FakeSession, FakeSessionProvider, FakeStrategy

from clipscout.application.revival import Reviver
from clipscout.application.use_cases.resolve_clip import ResolveClipUseCase
from clipscout.domain.entities.clip import (
    UNKNOWN_CREATOR,
    UNKNOWN_TITLE,
    Candidate,
    ClipMetadata,
    ErrorKind,
    PageTarget,
    ResolutionFailure,
    ResolutionSuccess,
    StrategyOutcome,
    StrategySource,
)
from clipscout.domain.exceptions import NoMatchError, StrategyTransportError
from clipscout.infrastructure.config.schema import ResolverConfig
from clipscout.infrastructure.strategies import (
    PassiveObservationStrategy,
    parse_page_target,
)

_SQ = StrategySource.STRUCTURED_QUERY
_PASSIVE = StrategySource.PASSIVE_OBSERVATION
_DOM = StrategySource.DOM_INSPECTION
_MARKUP = StrategySource.MARKUP_SCAN

_TARGET = f"https://clips.twitch.tv/{CLIP_SLUG}"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_config(**overrides: Any) -> ResolverConfig:
    defaults: dict[str, Any] = {
        "max_observation_window_ms": 10,
        "revive_observation_window_ms": 10,
        "run_deadline_ms": 5_000,
        "strategy_timeout_ms": 1_000,
        "render_timeout_ms": 100,
    }
    defaults.update(overrides)
    return ResolverConfig(**defaults)


def _make_uc(config: ResolverConfig | None = None, **kwargs: Any) -> ResolveClipUseCase:
    return ResolveClipUseCase(
        config=config or _make_config(),
        parse_target=parse_page_target,
        **kwargs,
    )


def _outcome(*candidates: Candidate, metadata: ClipMetadata | None = None) -> StrategyOutcome:
    return StrategyOutcome(candidates=list(candidates), metadata=metadata)


def _gql_candidates() -> list[Candidate]:
    return [
        Candidate(url=f"{CDN_URL}/AT-1080.mp4?sig=a&token=t", source=_SQ, quality="1080"),
        Candidate(url=f"{CDN_URL}/AT-720.mp4?sig=a&token=t", source=_SQ, quality="720"),
    ]


def _blob() -> Candidate:
    return Candidate(url="blob:https://clips.twitch.tv/uuid", source=_DOM, is_opaque=True)


# ---------------------------------------------------------------------------
# Target handling
# ---------------------------------------------------------------------------


class TestInvalidTarget:
    async def test_invalid_target_attempts_nothing(self, mock_sink: AsyncMock) -> None:
        sq = FakeStrategy(_SQ)
        uc = _make_uc(structured_query=sq, sink=mock_sink)

        result = await uc.execute("https://example.com/not-a-clip")

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.INVALID_TARGET
        assert sq.calls == 0
        mock_sink.record.assert_awaited_once()
        recorded_target = mock_sink.record.await_args.args[0]
        assert recorded_target.slug == ""
        assert recorded_target.raw == "https://example.com/not-a-clip"

    async def test_empty_target(self) -> None:
        result = await _make_uc().execute("")
        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.INVALID_TARGET

    async def test_accepts_parsed_target(self, page_target: PageTarget) -> None:
        sq = FakeStrategy(_SQ, outcome=_outcome(*_gql_candidates()))
        result = await _make_uc(structured_query=sq).execute(page_target)
        assert result.ok
        assert sq.calls == 1


# ---------------------------------------------------------------------------
# Structured query short-circuit
# ---------------------------------------------------------------------------


class TestStructuredQuery:
    async def test_short_circuit_picks_preferred_quality(self) -> None:
        provider = FakeSessionProvider([FakeSession()])
        sq = FakeStrategy(
            _SQ,
            outcome=_outcome(
                *_gql_candidates(),
                metadata=ClipMetadata(title="Big play", creator="streamer"),
            ),
        )
        passive = FakeStrategy(_PASSIVE)
        uc = _make_uc(
            structured_query=sq,
            session_strategies=[passive],
            sessions=provider,
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.quality == "1080"
        assert result.asset_url.startswith(f"{CDN_URL}/AT-1080.mp4")
        assert result.strategy_used is _SQ
        assert result.title == "Big play"
        assert result.creator == "streamer"
        assert passive.calls == 0
        assert provider.open_calls == 0

    async def test_short_circuit_disabled_runs_session_strategies(self) -> None:
        session = FakeSession()
        provider = FakeSessionProvider([session])
        sq = FakeStrategy(_SQ, outcome=_outcome(*_gql_candidates()))
        passive = FakeStrategy(_PASSIVE)
        uc = _make_uc(
            _make_config(short_circuit_structured_query=False),
            structured_query=sq,
            session_strategies=[passive],
            sessions=provider,
        )

        result = await uc.execute(_TARGET)

        assert result.ok
        assert passive.calls == 1
        assert passive.sessions[0] is session
        assert session.close_count == 1

    async def test_sq_failure_falls_through_to_browser(self) -> None:
        session = FakeSession()
        sq = FakeStrategy(_SQ, error=StrategyTransportError("gql returned HTTP 500"))
        passive = FakeStrategy(
            _PASSIVE,
            outcome=_outcome(Candidate(url=f"{CDN_URL}/clip.mp4", source=_PASSIVE)),
        )
        uc = _make_uc(
            structured_query=sq,
            session_strategies=[passive],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.strategy_used is _PASSIVE
        assert result.title == UNKNOWN_TITLE
        assert result.creator == UNKNOWN_CREATOR


# ---------------------------------------------------------------------------
# Session phase
# ---------------------------------------------------------------------------


class TestSessionPhase:
    async def test_strategies_share_one_session_in_order(self) -> None:
        session = FakeSession()
        order: list[StrategySource] = []

        class _Recording(FakeStrategy):
            async def attempt(
                self, target: PageTarget, s: Any, **kwargs: Any
            ) -> StrategyOutcome:
                order.append(self.source)
                return await super().attempt(target, s, **kwargs)

        passive = _Recording(_PASSIVE)
        dom = _Recording(
            _DOM,
            outcome=_outcome(
                Candidate(url=f"{CDN_URL}/clip.mp4", source=_DOM),
                metadata=ClipMetadata(title="DOM title"),
            ),
        )
        uc = _make_uc(
            structured_query=FakeStrategy(
                _SQ, outcome=_outcome(metadata=ClipMetadata(title="GQL", creator="gql"))
            ),
            session_strategies=[passive, dom],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert order == [_PASSIVE, _DOM]
        assert passive.sessions[0] is dom.sessions[0] is session
        assert isinstance(result, ResolutionSuccess)
        assert result.title == "DOM title"
        assert result.creator == "gql"
        assert session.close_count == 1

    async def test_session_closed_after_unexpected_error(self) -> None:
        session = FakeSession()
        passive = FakeStrategy(_PASSIVE, error=ValueError("bug"))
        uc = _make_uc(
            session_strategies=[passive],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_CANDIDATES
        assert "passive_observation" in result.detail
        assert session.close_count == 1

    async def test_markup_scan_when_session_unavailable(self) -> None:
        provider = FakeSessionProvider(open_error=RuntimeError("chromium missing"))
        passive = FakeStrategy(_PASSIVE)
        markup = FakeStrategy(
            _MARKUP,
            outcome=_outcome(Candidate(url=f"{CDN_URL}/clip.mp4", source=_MARKUP)),
        )
        uc = _make_uc(
            session_strategies=[passive],
            markup_scan=markup,
            sessions=provider,
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.strategy_used is _MARKUP
        assert passive.calls == 0
        assert markup.sessions == [None]

    async def test_markup_scan_without_provider(self) -> None:
        markup = FakeStrategy(
            _MARKUP,
            outcome=_outcome(Candidate(url=f"{CDN_URL}/clip.mp4", source=_MARKUP)),
        )
        result = await _make_uc(markup_scan=markup).execute(_TARGET)
        assert result.ok
        assert markup.calls == 1

    async def test_markup_not_used_when_session_available(self) -> None:
        markup = FakeStrategy(_MARKUP)
        passive = FakeStrategy(_PASSIVE)
        uc = _make_uc(
            session_strategies=[passive],
            markup_scan=markup,
            sessions=FakeSessionProvider([FakeSession()]),
        )
        await uc.execute(_TARGET)
        assert markup.calls == 0

    async def test_markup_no_match_is_soft_failure(self) -> None:
        markup = FakeStrategy(_MARKUP, error=NoMatchError("nothing in markup"))
        result = await _make_uc(markup_scan=markup).execute(_TARGET)
        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_CANDIDATES
        assert "markup_scan: no_match: nothing in markup" in result.detail


# ---------------------------------------------------------------------------
# Revival
# ---------------------------------------------------------------------------


class TestRevival:
    async def test_opaque_only_triggers_reload(self) -> None:
        session = FakeSession(
            navigate_urls=[],
            reload_urls=[f"{CDN_URL}/clip.mp4?sig=s&token=t"],
        )
        passive = PassiveObservationStrategy(window_ms=10, render_timeout_ms=100)
        dom = FakeStrategy(_DOM, outcome=_outcome(_blob()))
        uc = _make_uc(
            session_strategies=[passive, dom],
            reviver=Reviver(passive, window_ms=10, reload_timeout_ms=1_000),
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.strategy_used is _PASSIVE
        assert result.asset_url == f"{CDN_URL}/clip.mp4?sig=s&token=t"
        assert session.calls.count("reload") == 1

    async def test_no_revival_when_admissible_candidate_exists(self) -> None:
        session = FakeSession(navigate_urls=[f"{CDN_URL}/clip.mp4"])
        passive = PassiveObservationStrategy(window_ms=10, render_timeout_ms=100)
        dom = FakeStrategy(_DOM, outcome=_outcome(_blob()))
        uc = _make_uc(
            session_strategies=[passive, dom],
            reviver=Reviver(passive, window_ms=10, reload_timeout_ms=1_000),
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert result.ok
        assert "reload" not in session.calls

    async def test_revival_finds_nothing(self) -> None:
        session = FakeSession()
        passive = PassiveObservationStrategy(window_ms=10, render_timeout_ms=100)
        dom = FakeStrategy(_DOM, outcome=_outcome(_blob()))
        uc = _make_uc(
            session_strategies=[passive, dom],
            reviver=Reviver(passive, window_ms=10, reload_timeout_ms=1_000),
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_VALID_CANDIDATE
        assert session.calls.count("reload") == 1

    async def test_failed_reload_keeps_pool(self) -> None:
        session = FakeSession(reload_error=RuntimeError("target closed"))
        passive = PassiveObservationStrategy(window_ms=10, render_timeout_ms=100)
        dom = FakeStrategy(_DOM, outcome=_outcome(_blob()))
        uc = _make_uc(
            session_strategies=[passive, dom],
            reviver=Reviver(passive, window_ms=10, reload_timeout_ms=1_000),
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_VALID_CANDIDATE
        assert session.close_count == 1


# ---------------------------------------------------------------------------
# Exhaustion and timeouts
# ---------------------------------------------------------------------------


class TestExhaustion:
    async def test_all_empty_is_no_candidates(self) -> None:
        uc = _make_uc(
            structured_query=FakeStrategy(_SQ),
            session_strategies=[
                FakeStrategy(_PASSIVE),
                FakeStrategy(_DOM),
            ],
            sessions=FakeSessionProvider([FakeSession()]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_CANDIDATES
        assert "structured_query: no candidates" in result.detail
        assert "passive_observation: no candidates" in result.detail
        assert "dom_inspection: no candidates" in result.detail

    async def test_every_strategy_timing_out_is_run_timeout(self) -> None:
        session = FakeSession()
        uc = _make_uc(
            _make_config(strategy_timeout_ms=30),
            structured_query=FakeStrategy(_SQ, delay=1.0),
            session_strategies=[
                FakeStrategy(_PASSIVE, delay=1.0),
                FakeStrategy(_DOM, delay=1.0),
            ],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.RUN_TIMEOUT
        assert session.close_count == 1

    async def test_single_timeout_among_empties_is_no_candidates(self) -> None:
        uc = _make_uc(
            _make_config(strategy_timeout_ms=30),
            structured_query=FakeStrategy(_SQ, delay=1.0),
            markup_scan=FakeStrategy(_MARKUP),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.NO_CANDIDATES
        assert "structured_query: timed out" in result.detail

    async def test_run_deadline_bounds_the_whole_run(self) -> None:
        uc = _make_uc(
            _make_config(run_deadline_ms=50, strategy_timeout_ms=1_000),
            structured_query=FakeStrategy(_SQ, delay=1.0),
            markup_scan=FakeStrategy(_MARKUP, delay=1.0),
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.RUN_TIMEOUT
        assert loop.time() - started < 0.5

    async def test_deadline_keeps_partial_pool(self) -> None:
        session = FakeSession()
        passive = FakeStrategy(
            _PASSIVE,
            outcome=_outcome(Candidate(url=f"{CDN_URL}/clip.mp4", source=_PASSIVE)),
        )
        dom = FakeStrategy(_DOM, delay=1.0)
        uc = _make_uc(
            _make_config(run_deadline_ms=100, strategy_timeout_ms=1_000),
            session_strategies=[passive, dom],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.strategy_used is _PASSIVE
        assert session.close_count == 1

    async def test_strategy_timeout_keeps_observed_asset(self) -> None:
        # The asset is fetched during navigation, then the render wait hangs.
        asset = f"{CDN_URL}/clip.mp4?sig=abc"
        session = FakeSession(navigate_urls=[asset], selector_delay=5.0)
        uc = _make_uc(
            _make_config(run_deadline_ms=10_000, strategy_timeout_ms=200),
            session_strategies=[PassiveObservationStrategy(window_ms=3_000)],
            sessions=FakeSessionProvider([session]),
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.asset_url == asset
        assert result.strategy_used is _PASSIVE
        assert loop.time() - started < 1.0
        assert session.subscriber_count == 0
        assert session.close_count == 1

    async def test_run_deadline_keeps_observed_asset(self) -> None:
        asset = f"{CDN_URL}/clip.mp4?sig=abc"
        session = FakeSession(navigate_urls=[asset], selector_delay=5.0)
        dom = FakeStrategy(_DOM, delay=1.0)
        uc = _make_uc(
            _make_config(run_deadline_ms=200, strategy_timeout_ms=1_000),
            session_strategies=[PassiveObservationStrategy(window_ms=3_000), dom],
            sessions=FakeSessionProvider([session]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.asset_url == asset
        assert session.close_count == 1

    async def test_truncated_empty_outcome_counts_as_timeout(self) -> None:
        uc = _make_uc(
            _make_config(strategy_timeout_ms=30),
            session_strategies=[
                FakeStrategy(_PASSIVE, outcome=StrategyOutcome(truncated=True)),
                FakeStrategy(_DOM, delay=1.0),
            ],
            sessions=FakeSessionProvider([FakeSession()]),
        )

        result = await uc.execute(_TARGET)

        assert isinstance(result, ResolutionFailure)
        assert result.reason is ErrorKind.RUN_TIMEOUT
        assert "passive_observation: timed out" in result.detail

    async def test_attempt_is_asked_to_return_before_timeout(self) -> None:
        sq = FakeStrategy(_SQ, outcome=_outcome(*_gql_candidates()))
        uc = _make_uc(_make_config(strategy_timeout_ms=1_000), structured_query=sq)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await uc.execute(_TARGET)

        (deadline,) = sq.deadlines
        assert deadline is not None
        assert started < deadline < started + 1.0


# ---------------------------------------------------------------------------
# Result sink
# ---------------------------------------------------------------------------


class TestResultSink:
    async def test_records_success(self, mock_sink: AsyncMock) -> None:
        sq = FakeStrategy(_SQ, outcome=_outcome(*_gql_candidates()))
        result = await _make_uc(structured_query=sq, sink=mock_sink).execute(_TARGET)

        mock_sink.record.assert_awaited_once()
        target, recorded = mock_sink.record.await_args.args
        assert target.slug == CLIP_SLUG
        assert recorded is result

    async def test_records_failure(self, mock_sink: AsyncMock) -> None:
        result = await _make_uc(
            structured_query=FakeStrategy(_SQ), sink=mock_sink
        ).execute(_TARGET)

        assert not result.ok
        mock_sink.record.assert_awaited_once()

    async def test_sink_failure_does_not_change_result(self, mock_sink: AsyncMock) -> None:
        mock_sink.record.side_effect = OSError("disk full")
        sq = FakeStrategy(_SQ, outcome=_outcome(*_gql_candidates()))

        result = await _make_uc(structured_query=sq, sink=mock_sink).execute(_TARGET)

        assert isinstance(result, ResolutionSuccess)
        assert result.quality == "1080"


class TestConcurrentRuns:
    async def test_runs_are_independent(self) -> None:
        first = FakeSession(navigate_urls=[f"{CDN_URL}/first.mp4"])
        second = FakeSession(navigate_urls=[f"{CDN_URL}/second.mp4"])
        passive = PassiveObservationStrategy(window_ms=10, render_timeout_ms=100)
        uc = _make_uc(
            session_strategies=[passive],
            sessions=FakeSessionProvider([first, second]),
        )

        a, b = await asyncio.gather(uc.execute(_TARGET), uc.execute(_TARGET))

        assert isinstance(a, ResolutionSuccess)
        assert isinstance(b, ResolutionSuccess)
        assert {a.asset_url, b.asset_url} == {
            f"{CDN_URL}/first.mp4",
            f"{CDN_URL}/second.mp4",
        }
        assert first.close_count == second.close_count == 1
