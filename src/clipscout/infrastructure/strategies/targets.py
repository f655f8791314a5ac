"""Clip target parsing.

Accepted shapes:
    https://clips.twitch.tv/{slug}
    https://clips.twitch.tv/embed?clip={slug}
    https://www.twitch.tv/{channel}/clip/{slug}
    {slug}
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from clipscout.domain.entities.clip import PageTarget
from clipscout.domain.exceptions import InvalidTargetError

CLIPS_BASE_URL = "https://clips.twitch.tv"

_SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{3,99}$")

_CLIPS_HOSTS = {"clips.twitch.tv"}
_CHANNEL_HOSTS = {"twitch.tv", "www.twitch.tv", "m.twitch.tv"}


def _slug_from_url(raw: str) -> str | None:
    parsed = urlparse(raw)
    hostname = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    if hostname in _CLIPS_HOSTS:
        if segments[:1] == ["embed"]:
            values = parse_qs(parsed.query).get("clip", [])
            return values[0] if values else None
        return segments[0] if len(segments) == 1 else None

    if hostname in _CHANNEL_HOSTS:
        # /{channel}/clip/{slug}
        if len(segments) == 3 and segments[1] == "clip":
            return segments[2]
        return None

    return None


def parse_page_target(raw: str) -> PageTarget:
    """Parse *raw* into a PageTarget or raise ``InvalidTargetError``."""
    value = (raw or "").strip()
    if not value:
        raise InvalidTargetError("empty target")

    if value.lower().startswith(("http://", "https://")):
        slug = _slug_from_url(value)
        page_url = value
    else:
        slug = value
        page_url = ""

    if not slug or not _SLUG_RE.match(slug):
        raise InvalidTargetError(f"no clip slug in target: {value!r}")

    return PageTarget(
        raw=raw,
        slug=slug,
        page_url=page_url or f"{CLIPS_BASE_URL}/{slug}",
    )
