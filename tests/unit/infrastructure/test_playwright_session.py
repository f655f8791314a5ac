"""Tests for PlaywrightSession (SessionHandle over a Playwright page)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from clipscout.domain.entities.network import NetworkEvent
from clipscout.domain.ports.session import SessionHandle
from clipscout.infrastructure.browser.session import PlaywrightSession


def _mock_page(*, status: int = 200) -> MagicMock:
    page = MagicMock()
    response = MagicMock()
    response.status = status
    page.goto = AsyncMock(return_value=response)
    page.reload = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.evaluate = AsyncMock(return_value={"title": "x"})
    page.is_closed = MagicMock(return_value=False)
    page.close = AsyncMock()
    return page


def _mock_response(url: str) -> MagicMock:
    response = MagicMock()
    response.url = url
    response.status = 206
    response.request.resource_type = "media"
    response.headers = {"content-type": "video/mp4"}
    return response


def _session(page: MagicMock | None = None) -> tuple[PlaywrightSession, MagicMock, AsyncMock]:
    page = page or _mock_page()
    context = AsyncMock()
    return PlaywrightSession(context, page), page, context


class TestPlaywrightSession:
    def test_satisfies_port(self) -> None:
        session, _, _ = _session()
        assert isinstance(session, SessionHandle)

    async def test_navigate(self) -> None:
        session, page, _ = _session()
        assert session.has_navigated is False

        await session.navigate("https://clips.twitch.tv/x", timeout_ms=5_000)

        page.goto.assert_awaited_once_with(
            "https://clips.twitch.tv/x", wait_until="domcontentloaded", timeout=5_000
        )
        page.wait_for_load_state.assert_awaited_once()
        assert session.has_navigated is True

    async def test_networkidle_timeout_is_tolerated(self) -> None:
        session, page, _ = _session()
        page.wait_for_load_state.side_effect = PlaywrightTimeoutError("busy")

        await session.navigate("https://clips.twitch.tv/x", timeout_ms=5_000)

        assert session.has_navigated is True

    async def test_reload(self) -> None:
        session, page, _ = _session()
        await session.reload(timeout_ms=1_000)
        page.reload.assert_awaited_once_with(wait_until="domcontentloaded", timeout=1_000)

    async def test_wait_for_selector(self) -> None:
        session, page, _ = _session()
        assert await session.wait_for_selector("video", timeout_ms=100) is True

        page.wait_for_selector.side_effect = PlaywrightTimeoutError("no video")
        assert await session.wait_for_selector("video", timeout_ms=100) is False

    async def test_evaluate_passes_argument(self) -> None:
        session, page, _ = _session()
        result = await session.evaluate("(x) => x", [1, 2])
        page.evaluate.assert_awaited_once_with("(x) => x", [1, 2])
        assert result == {"title": "x"}

    def test_subscribe_converts_responses(self) -> None:
        session, page, _ = _session()
        seen: list[NetworkEvent] = []

        unsubscribe = session.subscribe(seen.append)
        event_name, handler = page.on.call_args.args
        assert event_name == "response"

        handler(_mock_response("https://cdn.example.com/a.mp4"))
        assert seen == [
            NetworkEvent(
                url="https://cdn.example.com/a.mp4",
                status=206,
                resource_type="media",
                content_type="video/mp4",
            )
        ]

        unsubscribe()
        page.remove_listener.assert_called_once_with("response", handler)

    def test_callback_errors_are_contained(self) -> None:
        session, page, _ = _session()

        def _boom(event: NetworkEvent) -> None:
            raise RuntimeError("callback bug")

        session.subscribe(_boom)
        _, handler = page.on.call_args.args
        handler(_mock_response("https://cdn.example.com/a.mp4"))  # no raise

    async def test_close_is_idempotent(self) -> None:
        session, page, context = _session()

        await session.close()
        await session.close()

        page.close.assert_awaited_once()
        context.close.assert_awaited_once()

    async def test_close_skips_closed_page(self) -> None:
        session, page, context = _session()
        page.is_closed.return_value = True

        await session.close()

        page.close.assert_not_awaited()
        context.close.assert_awaited_once()
