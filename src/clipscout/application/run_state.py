"""Ephemeral state of one resolution run."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from clipscout.domain.entities.clip import (
    UNKNOWN_CREATOR,
    UNKNOWN_TITLE,
    Candidate,
    ClipMetadata,
    PageTarget,
    StrategySource,
)

# Per-field metadata precedence for the final result.
_METADATA_PRECEDENCE: tuple[StrategySource, ...] = (
    StrategySource.DOM_INSPECTION,
    StrategySource.STRUCTURED_QUERY,
    StrategySource.MARKUP_SCAN,
)


@dataclass
class RunState:
    """Owns the candidate pool for exactly one target.

    The pool is append-only; ``observed_at`` is assigned on append.
    """

    target: PageTarget
    run_id: str
    pool: list[Candidate] = field(default_factory=list)
    metadata: dict[StrategySource, ClipMetadata] = field(default_factory=dict)
    attempted: list[StrategySource] = field(default_factory=list)
    timed_out: set[StrategySource] = field(default_factory=set)
    soft_failures: dict[StrategySource, str] = field(default_factory=dict)
    revival_attempted: bool = False
    deadline_exceeded: bool = False

    def extend(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Stamp and append *candidates*; return the stamped copies."""
        added: list[Candidate] = []
        for candidate in candidates:
            stamped = replace(candidate, observed_at=len(self.pool))
            self.pool.append(stamped)
            added.append(stamped)
        return added

    def has_selectable(self) -> bool:
        return any(not c.is_opaque for c in self.pool)

    def only_timeouts(self) -> bool:
        """Every attempted strategy ran out of time."""
        return bool(self.attempted) and set(self.attempted) <= self.timed_out

    def merged_metadata(self) -> tuple[str, str]:
        """Best-available (title, creator), falling back to sentinels."""
        title: str | None = None
        creator: str | None = None
        for source in _METADATA_PRECEDENCE:
            meta = self.metadata.get(source)
            if meta is None:
                continue
            title = title or meta.title
            creator = creator or meta.creator
        return title or UNKNOWN_TITLE, creator or UNKNOWN_CREATOR

    def failure_summary(self) -> str:
        if not self.soft_failures:
            return "no strategy was attempted"
        return "; ".join(
            f"{source.value}: {reason}" for source, reason in self.soft_failures.items()
        )
