"""Shared Chromium browser handing out isolated sessions.

A single Chromium process serves every resolution run. Each ``open()``
creates its own ``BrowserContext`` + page, so concurrent runs never
share navigation state. Images, fonts and stylesheets are blocked;
media requests must go through because they are what gets observed.
"""

from __future__ import annotations

import asyncio

import structlog
from playwright.async_api import (
    Browser,
    Playwright,
    Route,
    async_playwright,
)
from playwright_stealth import Stealth

from clipscout.infrastructure.browser.session import PlaywrightSession

log = structlog.get_logger(__name__)

_BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "stylesheet"})


async def _block_resources(route: Route) -> None:
    """Abort requests for heavy, irrelevant resource types."""
    if route.request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class PlaywrightSessionPool:
    """Lazy-launch Chromium pool implementing ``SessionProviderPort``.

    Usage::

        pool = PlaywrightSessionPool(headless=True)
        await pool.warmup()            # optional, e.g. while the GQL call runs
        session = await pool.open()
        ...
        await session.close()
        await pool.cleanup()
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        stealth: bool = True,
        user_agent: str | None = None,
        timeout_ms: int = 30_000,
    ) -> None:
        self._headless = headless
        self._stealth = stealth
        self._user_agent = user_agent
        self._timeout_ms = timeout_ms
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def warmup(self) -> None:
        """Ensure Chromium is running; concurrent callers share one launch."""
        await self._ensure_browser()

    async def _ensure_browser(self) -> Browser:
        if self._browser is not None and self._browser.is_connected():
            return self._browser

        async with self._lock:
            # Double-check after acquiring lock
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            # Clean up stale state if browser crashed
            await self._stop_playwright()

            try:
                self._pw = await async_playwright().start()
                self._browser = await self._pw.chromium.launch(
                    headless=self._headless,
                )
            except BaseException:
                await self._stop_playwright()
                raise

            log.info(
                "session_pool_browser_launched",
                headless=self._headless,
                stealth=self._stealth,
            )
            return self._browser

    async def open(self) -> PlaywrightSession:
        """Create a new context + page exclusively owned by the caller."""
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=self._user_agent,
            viewport={"width": 1280, "height": 720},
        )
        try:
            if self._stealth:
                await Stealth().apply_stealth_async(context)
            await context.route("**/*", _block_resources)
            page = await context.new_page()
            page.set_default_timeout(self._timeout_ms)
        except BaseException:
            await context.close()
            raise

        log.debug("session_opened")
        return PlaywrightSession(context, page)

    async def cleanup(self) -> None:
        """Close browser and Playwright (idempotent)."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:  # noqa: BLE001
                log.debug("session_pool_browser_close_error", exc_info=True)
            self._browser = None
        await self._stop_playwright()

    async def _stop_playwright(self) -> None:
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception:  # noqa: BLE001
                log.debug("session_pool_stale_pw_stop_error", exc_info=True)
        self._pw = None
        self._browser = None
