"""MarkupScan strategy: pattern scan of the raw (unrendered) page.

Finds ``.mp4`` URL literals in inline scripts/state blobs and OpenGraph
video tags. No browser needed, so it is the fallback when no session
can be acquired.
"""

from __future__ import annotations

import httpx
import structlog
from bs4 import BeautifulSoup

from clipscout.domain.entities.clip import (
    Candidate,
    ClipMetadata,
    PageTarget,
    StrategyOutcome,
    StrategySource,
)
from clipscout.domain.exceptions import NoMatchError, StrategyTransportError
from clipscout.domain.ports.session import SessionHandle
from clipscout.infrastructure.strategies.patterns import (
    MARKUP_ASSET_RE,
    is_asset_url,
    unescape_markup,
)

log = structlog.get_logger(__name__)

_VIDEO_META_PROPERTIES = (
    "og:video:secure_url",
    "og:video:url",
    "og:video",
    "twitter:player:stream",
)


def _meta_content(soup: BeautifulSoup, key: str) -> str | None:
    tag = soup.find("meta", attrs={"property": key}) or soup.find(
        "meta", attrs={"name": key}
    )
    if tag is None:
        return None
    content = tag.get("content")
    if isinstance(content, str) and content.strip():
        return content.strip()
    return None


def scan_markup(html: str) -> tuple[list[str], ClipMetadata]:
    """Return asset URLs (first-seen order, unique) and page metadata."""
    urls: list[str] = []

    soup = BeautifulSoup(html, "html.parser")
    for key in _VIDEO_META_PROPERTIES:
        content = _meta_content(soup, key)
        if content and is_asset_url(content) and content not in urls:
            urls.append(content)

    for match in MARKUP_ASSET_RE.finditer(unescape_markup(html)):
        url = match.group(0)
        if url not in urls:
            urls.append(url)

    title = _meta_content(soup, "og:title")
    if title is None and soup.title is not None and soup.title.string:
        title = soup.title.string.strip() or None
    creator = _meta_content(soup, "author")
    return urls, ClipMetadata(title=title, creator=creator)


class MarkupScanStrategy:
    """Regex/meta scan over raw markup.

    With ``raise_on_empty`` the strategy reports ``NoMatchError`` instead
    of an empty outcome; set when it runs as the last resort.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        raise_on_empty: bool = False,
        timeout: float = 15.0,
    ) -> None:
        self._http = http_client
        self._raise_on_empty = raise_on_empty
        self._timeout = timeout

    @property
    def source(self) -> StrategySource:
        return StrategySource.MARKUP_SCAN

    async def attempt(
        self,
        target: PageTarget,
        session: SessionHandle | None = None,
        *,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        try:
            resp = await self._http.get(
                target.page_url, follow_redirects=True, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise StrategyTransportError(f"markup fetch failed: {exc!r}") from exc

        if resp.status_code != 200:
            raise StrategyTransportError(f"markup fetch returned HTTP {resp.status_code}")

        urls, metadata = scan_markup(resp.text)
        log.debug("markup_scan_matches", url=target.page_url, matches=len(urls))

        if not urls and self._raise_on_empty:
            raise NoMatchError("no asset URL literal in page markup")

        return StrategyOutcome(
            candidates=[
                Candidate(url=url, source=StrategySource.MARKUP_SCAN) for url in urls
            ],
            metadata=metadata,
        )
