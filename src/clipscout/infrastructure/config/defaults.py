"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "clipscout",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "user_agent": (
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        "retry_max_attempts": 2,
        "retry_backoff_base": 0.5,
    },
    "playwright": {
        "headless": True,
        "timeout_ms": 60_000,
        "stealth": True,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/clipscout",
        "ttl_seconds": 3600,
    },
    "resolver": {
        "max_observation_window_ms": 3_000,
        "revive_observation_window_ms": 5_000,
        "run_deadline_ms": 90_000,
        "strategy_timeout_ms": 45_000,
        "render_timeout_ms": 30_000,
        "preferred_quality_order": ["1080", "720", "480", "360"],
        "short_circuit_structured_query": True,
        "observation_buffer_size": 256,
    },
    "twitch": {
        "gql_url": "https://gql.twitch.tv/gql",
        "client_id": "kimne78kx3ncx6brgo4mv6wki5h1ko",
    },
}
