"""DomInspection strategy: reads the rendered player and page text.

Field extraction is data-driven: each field maps to an ordered tuple of
rules, and the first rule yielding non-empty text wins. New rules are
added to the table, not to the control flow.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from clipscout.domain.entities.clip import (
    Candidate,
    ClipMetadata,
    PageTarget,
    StrategyOutcome,
    StrategySource,
)
from clipscout.domain.exceptions import StrategyTransportError
from clipscout.domain.ports.session import SessionHandle
from clipscout.infrastructure.strategies.passive_observation import MEDIA_SELECTOR
from clipscout.infrastructure.strategies.patterns import is_opaque_reference

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExtractionRule:
    """CSS selector plus the property to read (``None`` = text content)."""

    selector: str
    attribute: str | None = None


FieldRules = dict[str, tuple[ExtractionRule, ...]]

DEFAULT_FIELD_RULES: FieldRules = {
    "media_src": (
        ExtractionRule("video", "currentSrc"),
        ExtractionRule("video", "src"),
        ExtractionRule("video source", "src"),
    ),
    "title": (
        ExtractionRule("h2"),
        ExtractionRule('[data-a-target="stream-title"]'),
        ExtractionRule('meta[property="og:title"]', "content"),
    ),
    "creator": (
        ExtractionRule('[data-a-target="stream-info-card-channel-link"]'),
        ExtractionRule('a[href*="/videos"]'),
    ),
}

# Time left for page.evaluate after a deadline-capped render wait.
_EVALUATE_RESERVE_MS = 250

# Read-only: one querySelector per rule, no mutation of the document.
_EXTRACT_JS = """
(rules) => {
  const out = {};
  for (const [field, candidates] of rules) {
    for (const rule of candidates) {
      const el = document.querySelector(rule.selector);
      if (!el) continue;
      let value = rule.attribute
        ? (el[rule.attribute] ?? el.getAttribute(rule.attribute))
        : el.textContent;
      if (typeof value === "string" && value.trim()) {
        out[field] = value.trim();
        break;
      }
    }
  }
  return out;
}
"""


def _render_budget_ms(timeout_ms: int, deadline: float | None) -> int:
    """Shorten the render wait so the evaluate step still fits before *deadline*.

    Never 0, which Playwright reads as "no timeout".
    """
    if deadline is None:
        return timeout_ms
    left_ms = int((deadline - asyncio.get_running_loop().time()) * 1000)
    return max(1, min(timeout_ms, left_ms - _EVALUATE_RESERVE_MS))


def _rules_payload(rules: FieldRules) -> list[list[Any]]:
    return [[name, [asdict(r) for r in chain]] for name, chain in rules.items()]


class DomInspectionStrategy:
    """Extracts the media element source and clip metadata."""

    def __init__(
        self,
        *,
        rules: FieldRules | None = None,
        navigation_timeout_ms: int = 30_000,
        render_timeout_ms: int = 30_000,
    ) -> None:
        self._rules = rules or DEFAULT_FIELD_RULES
        self._navigation_timeout_ms = navigation_timeout_ms
        self._render_timeout_ms = render_timeout_ms

    @property
    def source(self) -> StrategySource:
        return StrategySource.DOM_INSPECTION

    async def attempt(
        self,
        target: PageTarget,
        session: SessionHandle | None,
        *,
        deadline: float | None = None,
    ) -> StrategyOutcome:
        if session is None:
            raise StrategyTransportError("dom inspection needs a live session")

        try:
            if not session.has_navigated:
                await session.navigate(
                    target.page_url, timeout_ms=self._navigation_timeout_ms
                )
            rendered = await session.wait_for_selector(
                MEDIA_SELECTOR,
                timeout_ms=_render_budget_ms(self._render_timeout_ms, deadline),
            )
            if not rendered:
                log.info("dom_media_element_missing", url=target.page_url)
            fields = await session.evaluate(_EXTRACT_JS, _rules_payload(self._rules))
        except Exception as exc:
            raise StrategyTransportError(f"dom evaluation failed: {exc!r}") from exc

        if not isinstance(fields, dict):
            fields = {}

        metadata = ClipMetadata(title=fields.get("title"), creator=fields.get("creator"))
        media_src = fields.get("media_src")
        if not media_src:
            return StrategyOutcome(metadata=metadata)

        opaque = is_opaque_reference(media_src)
        if opaque:
            log.info("dom_media_src_opaque", prefix=media_src.split(":", 1)[0])
        return StrategyOutcome(
            candidates=[
                Candidate(
                    url=media_src,
                    source=StrategySource.DOM_INSPECTION,
                    is_opaque=opaque,
                )
            ],
            metadata=metadata,
        )
