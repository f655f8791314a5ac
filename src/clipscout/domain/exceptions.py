"""Resolution exceptions."""

from __future__ import annotations

from clipscout.domain.entities.clip import ErrorKind


class ClipScoutError(Exception):
    """Base class for all clipscout errors."""


class StrategyError(ClipScoutError):
    """Raised by a discovery strategy; carries a typed error kind."""

    kind: ErrorKind = ErrorKind.STRATEGY_TRANSPORT_FAILURE

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidTargetError(StrategyError):
    """Raised when the clip identifier cannot be parsed from the target."""

    kind = ErrorKind.INVALID_TARGET


class StrategyTransportError(StrategyError):
    """Raised on a network or browser-session fault inside one strategy."""

    kind = ErrorKind.STRATEGY_TRANSPORT_FAILURE


class NoMatchError(StrategyError):
    """Raised by a last-resort strategy that found nothing."""

    kind = ErrorKind.NO_MATCH
