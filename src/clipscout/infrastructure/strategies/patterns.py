"""Asset URL patterns shared by the discovery strategies."""

from __future__ import annotations

import re

# Network responses worth keeping as candidates.
ASSET_URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\.mp4(?:[?#]|$)", re.IGNORECASE),
    re.compile(r"^https?://[^/]*video-edge[^/]*/", re.IGNORECASE),
    re.compile(r"^https?://clips-media-assets\d*\.twitch\.tv/", re.IGNORECASE),
    re.compile(
        r"^https?://production\.assets\.clips\.twitchcdn\.net/", re.IGNORECASE
    ),
)

# URL-shaped literal ending in the asset extension, inside raw markup.
MARKUP_ASSET_RE = re.compile(
    r"""https?://[^\s"'<>\\]+?\.mp4(?:\?[^\s"'<>\\]*)?(?=["'<>\s\\]|$)""",
    re.IGNORECASE,
)

# Handles only valid inside the rendering context that created them.
OPAQUE_PREFIXES: tuple[str, ...] = ("blob:", "mediasource:", "data:")


def is_asset_url(url: str) -> bool:
    return any(p.search(url) for p in ASSET_URL_PATTERNS)


def is_opaque_reference(url: str) -> bool:
    return url.lower().startswith(OPAQUE_PREFIXES)


def unescape_markup(html: str) -> str:
    """Undo the JSON escaping of slashes found in inline state blobs."""
    return (
        html.replace("\\u002F", "/")
        .replace("\\u002f", "/")
        .replace("\\/", "/")
        .replace("\\u0026", "&")
        .replace("&amp;", "&")
    )
