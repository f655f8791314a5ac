"""Discovery strategy implementations for Twitch clips."""

from __future__ import annotations

from .dom_inspection import DEFAULT_FIELD_RULES, DomInspectionStrategy, ExtractionRule
from .markup_scan import MarkupScanStrategy
from .passive_observation import ObservationBuffer, PassiveObservationStrategy
from .structured_query import StructuredQueryStrategy
from .targets import parse_page_target

__all__ = [
    "DEFAULT_FIELD_RULES",
    "DomInspectionStrategy",
    "ExtractionRule",
    "MarkupScanStrategy",
    "ObservationBuffer",
    "PassiveObservationStrategy",
    "StructuredQueryStrategy",
    "parse_page_target",
]
