from .cache import CachePort
from .result_sink import ResultSinkPort
from .session import (
    NetworkCallback,
    SessionHandle,
    SessionProviderPort,
    Unsubscribe,
)
from .strategy import DiscoveryStrategyPort

__all__ = [
    "CachePort",
    "DiscoveryStrategyPort",
    "NetworkCallback",
    "ResultSinkPort",
    "SessionHandle",
    "SessionProviderPort",
    "Unsubscribe",
]
