"""Candidate selection.

Candidates from every strategy that ran are pooled and judged on URL
shape alone; no strategy's provenance says whether its URL carries a
complete authorization token.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from clipscout.domain.entities.clip import Candidate

_PRIMARY_FORMAT_RE = re.compile(r"\.mp4(?:[?#]|$)", re.IGNORECASE)


def is_primary_format(url: str) -> bool:
    """Whether *url* points at the canonical asset container (``.mp4``)."""
    return _PRIMARY_FORMAT_RE.search(url) is not None


def url_length_score(url: str) -> int:
    """Longer URL ranks higher.

    Proxy for "carries a complete sig/token pair", observed against the
    Twitch clip CDN only. Replace with explicit token detection if the
    asset URL scheme changes.
    """
    return len(url)


def needs_revival(pool: Sequence[Candidate]) -> bool:
    """True when only opaque local references were found."""
    has_opaque = False
    for candidate in pool:
        if not candidate.is_opaque:
            return False
        has_opaque = True
    return has_opaque


def select_candidate(
    pool: Sequence[Candidate],
    preferred_quality_order: Sequence[str] = (),
) -> Candidate | None:
    """Pick the final candidate from *pool* (read-only).

    1. Drop opaque local references; ``None`` when nothing is left.
    2. Prefer primary-format URLs; fall back to the remaining ones.
    3. Rank by URL length descending. Equal lengths go to the better
       preferred quality (when given), then to discovery order, so the
       quality label never outranks a longer URL.
    """
    admissible = [c for c in pool if not c.is_opaque]
    if not admissible:
        return None

    primary = [c for c in admissible if is_primary_format(c.url)]
    partition = primary or admissible

    preference = {q: i for i, q in enumerate(preferred_quality_order)}
    unranked = len(preference)

    def _key(c: Candidate) -> tuple[int, int, int]:
        quality_rank = preference.get(c.quality, unranked) if c.quality else unranked
        return (-url_length_score(c.url), quality_rank, c.observed_at)

    return min(partition, key=_key)
