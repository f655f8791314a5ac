"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from clipscout.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from clipscout.application.use_cases.resolve_clip import ResolveClipUseCase
    from clipscout.domain.ports import CachePort, ResultSinkPort, SessionProviderPort


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    sessions: SessionProviderPort | None

    # Domain ports
    sink: ResultSinkPort

    # Application services
    resolver: ResolveClipUseCase
