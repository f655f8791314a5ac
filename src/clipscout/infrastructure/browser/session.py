"""Playwright-backed browsing session (one context + one page)."""

from __future__ import annotations

from typing import Any

import structlog
from playwright.async_api import BrowserContext, Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from clipscout.domain.entities.network import NetworkEvent
from clipscout.domain.ports.session import NetworkCallback, Unsubscribe

log = structlog.get_logger(__name__)


def _to_event(response: Response) -> NetworkEvent:
    return NetworkEvent(
        url=response.url,
        status=response.status,
        resource_type=response.request.resource_type,
        content_type=response.headers.get("content-type", ""),
    )


class PlaywrightSession:
    """Implements ``SessionHandle`` on top of a dedicated BrowserContext.

    The context is closed together with the session, so cookies and
    storage never leak between resolution runs.
    """

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        *,
        networkidle_timeout_ms: int = 10_000,
    ) -> None:
        self._context = context
        self._page = page
        self._networkidle_timeout_ms = networkidle_timeout_ms
        self._navigated = False
        self._closed = False

    @property
    def has_navigated(self) -> bool:
        return self._navigated

    async def navigate(self, url: str, *, timeout_ms: int) -> None:
        """``goto`` then best-effort ``networkidle``. Goto errors propagate."""
        resp = await self._page.goto(
            url, wait_until="domcontentloaded", timeout=timeout_ms
        )
        self._navigated = True
        if resp is not None and resp.status >= 400:
            log.warning("session_navigate_http_error", url=url, status=resp.status)
        await self._wait_for_idle()

    async def reload(self, *, timeout_ms: int) -> None:
        await self._page.reload(wait_until="domcontentloaded", timeout=timeout_ms)
        await self._wait_for_idle()

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    def subscribe(self, callback: NetworkCallback) -> Unsubscribe:
        def _on_response(response: Response) -> None:
            try:
                callback(_to_event(response))
            except Exception:  # noqa: BLE001
                log.debug("session_network_callback_error", exc_info=True)

        self._page.on("response", _on_response)

        def _unsubscribe() -> None:
            self._page.remove_listener("response", _on_response)

        return _unsubscribe

    async def close(self) -> None:
        """Close page and context (idempotent)."""
        if self._closed:
            return
        self._closed = True
        try:
            if not self._page.is_closed():
                await self._page.close()
        finally:
            await self._context.close()

    async def _wait_for_idle(self) -> None:
        try:
            await self._page.wait_for_load_state(
                "networkidle", timeout=self._networkidle_timeout_ms
            )
        except PlaywrightTimeoutError:
            pass  # a playing clip keeps the network busy
