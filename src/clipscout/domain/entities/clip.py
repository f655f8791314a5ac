"""Domain entities for clip asset resolution.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_CREATOR = "Unknown Creator"


class StrategySource(str, Enum):
    """Discovery technique that produced a candidate."""

    STRUCTURED_QUERY = "structured_query"
    PASSIVE_OBSERVATION = "passive_observation"
    DOM_INSPECTION = "dom_inspection"
    MARKUP_SCAN = "markup_scan"


class ErrorKind(str, Enum):
    """Typed failure reasons surfaced by a resolution run."""

    INVALID_TARGET = "invalid_target"
    STRATEGY_TRANSPORT_FAILURE = "strategy_transport_failure"
    NO_MATCH = "no_match"
    NO_CANDIDATES = "no_candidates"
    NO_VALID_CANDIDATE = "no_valid_candidate"
    RUN_TIMEOUT = "run_timeout"


@dataclass(frozen=True)
class PageTarget:
    """Parsed clip target.

    ``raw`` is the caller's input, ``slug`` the clip identifier and
    ``page_url`` the page that browser- and markup-based strategies load.
    """

    raw: str
    slug: str
    page_url: str


@dataclass(frozen=True)
class Candidate:
    """One discovered asset URL plus provenance metadata."""

    url: str
    source: StrategySource
    quality: str | None = None
    is_opaque: bool = False  # local handle (blob:), never a final result
    observed_at: int = -1  # stamped by the run state on append

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("Candidate url must not be empty")


@dataclass(frozen=True)
class ClipMetadata:
    """Descriptive fields a strategy may recover alongside candidates."""

    title: str | None = None
    creator: str | None = None


@dataclass(frozen=True)
class StrategyOutcome:
    """Everything one strategy attempt produced.

    ``truncated`` marks an attempt that ran out of time and returned what
    it had gathered so far.
    """

    candidates: list[Candidate] = field(default_factory=list)
    metadata: ClipMetadata | None = None
    truncated: bool = False


@dataclass(frozen=True)
class ResolutionSuccess:
    asset_url: str
    title: str
    creator: str
    quality: str | None
    strategy_used: StrategySource

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ResolutionFailure:
    reason: ErrorKind
    detail: str

    @property
    def ok(self) -> bool:
        return False


ResolutionResult = Union[ResolutionSuccess, ResolutionFailure]
