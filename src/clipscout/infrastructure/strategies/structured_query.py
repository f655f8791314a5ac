"""StructuredQuery strategy: asks the Twitch GraphQL backend for the clip.

One POST to ``gql.twitch.tv`` returns the clip's quality descriptors
plus a playback access token. Each descriptor becomes a candidate with
``sig``/``token`` appended, which is what the clip CDN expects.

Response shape (abridged)::

    {"data": {"clip": {
        "title": "...",
        "broadcaster": {"displayName": "..."},
        "videoQualities": [
            {"quality": "1080", "frameRate": 60, "sourceURL": "https://..."}
        ],
        "playbackAccessToken": {"signature": "...", "value": "{...}"}
    }}}
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from clipscout.domain.entities.clip import (
    Candidate,
    ClipMetadata,
    PageTarget,
    StrategyOutcome,
    StrategySource,
)
from clipscout.domain.exceptions import InvalidTargetError, StrategyTransportError
from clipscout.domain.ports.session import SessionHandle

log = structlog.get_logger(__name__)

DEFAULT_GQL_URL = "https://gql.twitch.tv/gql"
# Public client id of the twitch.tv web player.
DEFAULT_CLIENT_ID = "kimne78kx3ncx6brgo4mv6wki5h1ko"

_CLIP_QUERY = """
query ClipAssets($slug: ID!) {
  clip(slug: $slug) {
    title
    broadcaster { displayName }
    videoQualities { frameRate quality sourceURL }
    playbackAccessToken(
      params: {platform: "web", playerBackend: "mediaplayer", playerType: "site"}
    ) { signature value }
  }
}
"""


def _signed_url(source_url: str, token: dict[str, Any] | None) -> str:
    if not token:
        return source_url
    signature = token.get("signature")
    value = token.get("value")
    if not signature or not value:
        return source_url
    sep = "&" if "?" in source_url else "?"
    return f"{source_url}{sep}{urlencode({'sig': signature, 'token': value})}"


def parse_clip_payload(payload: Any) -> StrategyOutcome:
    """Turn a GraphQL response body into candidates (empty on bad shape)."""
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return StrategyOutcome()

    data = payload.get("data")
    clip = data.get("clip") if isinstance(data, dict) else None
    if not isinstance(clip, dict):
        return StrategyOutcome()

    broadcaster = clip.get("broadcaster")
    if not isinstance(broadcaster, dict):
        broadcaster = {}
    metadata = ClipMetadata(
        title=str(clip.get("title") or "").strip() or None,
        creator=str(broadcaster.get("displayName") or "").strip() or None,
    )

    token = clip.get("playbackAccessToken")
    if not isinstance(token, dict):
        token = None
    qualities = clip.get("videoQualities")
    if not isinstance(qualities, list):
        qualities = []
    candidates: list[Candidate] = []
    for descriptor in qualities:
        if not isinstance(descriptor, dict):
            continue
        source_url = descriptor.get("sourceURL")
        if not isinstance(source_url, str) or not source_url.strip():
            continue
        quality = descriptor.get("quality")
        candidates.append(
            Candidate(
                url=_signed_url(source_url, token),
                source=StrategySource.STRUCTURED_QUERY,
                quality=str(quality) if quality else None,
            )
        )
    return StrategyOutcome(candidates=candidates, metadata=metadata)


class StructuredQueryStrategy:
    """Direct backend query; needs no browsing session."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        gql_url: str = DEFAULT_GQL_URL,
        client_id: str = DEFAULT_CLIENT_ID,
        timeout: float = 15.0,
    ) -> None:
        self._http = http_client
        self._gql_url = gql_url
        self._client_id = client_id
        self._timeout = timeout

    @property
    def source(self) -> StrategySource:
        return StrategySource.STRUCTURED_QUERY

    async def attempt(
        self,
        target: PageTarget,
        session: SessionHandle | None = None,
        *,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        if not target.slug:
            raise InvalidTargetError(f"no clip slug in target: {target.raw!r}")

        body = {
            "operationName": "ClipAssets",
            "query": _CLIP_QUERY,
            "variables": {"slug": target.slug},
        }
        try:
            resp = await self._http.post(
                self._gql_url,
                json=body,
                headers={"Client-ID": self._client_id},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise StrategyTransportError(f"gql request failed: {exc!r}") from exc

        if resp.status_code != 200:
            raise StrategyTransportError(f"gql returned HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError:
            log.info("structured_query_malformed_body", slug=target.slug)
            return StrategyOutcome()

        outcome = parse_clip_payload(payload)
        log.debug(
            "structured_query_parsed",
            slug=target.slug,
            qualities=[c.quality for c in outcome.candidates],
        )
        return outcome
