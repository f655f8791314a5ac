"""Playwright browser sessions."""

from __future__ import annotations

from .session import PlaywrightSession
from .session_pool import PlaywrightSessionPool

__all__ = ["PlaywrightSession", "PlaywrightSessionPool"]
