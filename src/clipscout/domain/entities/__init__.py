from .clip import (
    UNKNOWN_CREATOR,
    UNKNOWN_TITLE,
    Candidate,
    ClipMetadata,
    ErrorKind,
    PageTarget,
    ResolutionFailure,
    ResolutionResult,
    ResolutionSuccess,
    StrategyOutcome,
    StrategySource,
)
from .network import NetworkEvent

__all__ = [
    "UNKNOWN_CREATOR",
    "UNKNOWN_TITLE",
    "Candidate",
    "ClipMetadata",
    "ErrorKind",
    "NetworkEvent",
    "PageTarget",
    "ResolutionFailure",
    "ResolutionResult",
    "ResolutionSuccess",
    "StrategyOutcome",
    "StrategySource",
]
