"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class ResolverConfig(BaseModel):
    """Timing and ranking knobs of the resolution engine.

    All values configurable via YAML (resolver section) or ENV vars.
    """

    max_observation_window_ms: int = Field(
        default=3_000,
        description="How long passive observation listens after the page loads.",
    )
    revive_observation_window_ms: int = Field(
        default=5_000,
        description="Observation window after the revival reload.",
    )
    run_deadline_ms: int = Field(
        default=90_000,
        description="Wall-clock budget for one resolution run.",
    )
    strategy_timeout_ms: int = Field(
        default=45_000,
        description="Wall-clock budget for a single strategy attempt.",
    )
    render_timeout_ms: int = Field(
        default=30_000,
        description="How long to wait for the player's <video> element.",
    )
    preferred_quality_order: list[str] = Field(
        default=["1080", "720", "480", "360"],
        description="Quality labels in order of preference (first = best).",
    )
    short_circuit_structured_query: bool = Field(
        default=True,
        description="Skip browser strategies when the GQL query already succeeded.",
    )
    observation_buffer_size: int = Field(
        default=256,
        description="Max URLs kept per observation window (oldest evicted).",
    )

    @field_validator(
        "max_observation_window_ms",
        "run_deadline_ms",
        "strategy_timeout_ms",
        "render_timeout_ms",
        "observation_buffer_size",
    )
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("revive_observation_window_ms")
    @classmethod
    def _validate_revive_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("revive_observation_window_ms must be >= 0")
        return v


class TwitchConfig(BaseModel):
    """Backend endpoint used by the structured query."""

    gql_url: str = Field(
        default="https://gql.twitch.tv/gql",
        description="Twitch GraphQL endpoint.",
    )
    client_id: str = Field(
        default="kimne78kx3ncx6brgo4mv6wki5h1ko",
        description="Client-ID header sent with GraphQL requests.",
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/playwright/logging/cache/resolver/twitch).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="clipscout", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="HTTP timeout in seconds for GQL and markup requests.",
    )
    http_user_agent: str = Field(
        default="Mozilla/5.0 (X11; Linux x86_64) clipscout/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests and browser contexts.",
    )
    http_retry_max_attempts: int = Field(
        default=2,
        validation_alias=AliasChoices(
            "http_retry_max_attempts",
            AliasPath("http", "retry_max_attempts"),
        ),
        description="Retries on 429/502/503 responses.",
    )
    http_retry_backoff_base: float = Field(
        default=0.5,
        validation_alias=AliasChoices(
            "http_retry_backoff_base",
            AliasPath("http", "retry_backoff_base"),
        ),
        description="Base delay (seconds) for exponential retry backoff.",
    )

    # Playwright (YAML section: playwright.*)
    playwright_headless: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_headless",
            AliasPath("playwright", "headless"),
        ),
        description="Run Playwright headless.",
    )
    playwright_timeout_ms: int = Field(
        default=60_000,
        validation_alias=AliasChoices(
            "playwright_timeout_ms",
            AliasPath("playwright", "timeout_ms"),
        ),
        description="Playwright navigation timeout in milliseconds.",
    )
    playwright_stealth: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_stealth",
            AliasPath("playwright", "stealth"),
        ),
        description="Apply playwright-stealth evasions to every session.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Result sink (YAML section: cache.*)
    cache_dir: Path = Field(
        default=Path("./.cache/clipscout"),
        validation_alias=AliasChoices(
            "cache_dir",
            AliasPath("cache", "dir"),
        ),
        description="Diskcache directory for recorded results.",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        validation_alias=AliasChoices(
            "cache_ttl_seconds",
            AliasPath("cache", "ttl_seconds"),
        ),
        description="How long recorded results are retained (asset URLs expire).",
    )

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    twitch: TwitchConfig = Field(default_factory=TwitchConfig)

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("http_retry_max_attempts")
    @classmethod
    def _validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_retry_max_attempts must be >= 0")
        return v

    @field_validator("playwright_timeout_ms")
    @classmethod
    def _validate_playwright_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("playwright_timeout_ms must be > 0")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_cache_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
                "retry_max_attempts": self.http_retry_max_attempts,
                "retry_backoff_base": self.http_retry_backoff_base,
            },
            "playwright": {
                "headless": self.playwright_headless,
                "timeout_ms": self.playwright_timeout_ms,
                "stealth": self.playwright_stealth,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {
                "dir": str(self.cache_dir),
                "ttl_seconds": self.cache_ttl_seconds,
            },
            "resolver": self.resolver.model_dump(),
            "twitch": self.twitch.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read CLIPSCOUT_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - CLIPSCOUT_HTTP_TIMEOUT_SECONDS
    - CLIPSCOUT_PLAYWRIGHT_HEADLESS
    - CLIPSCOUT_LOG_LEVEL
    - CLIPSCOUT_RUN_DEADLINE_MS
    """

    model_config = SettingsConfigDict(
        env_prefix="CLIPSCOUT_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    http_retry_max_attempts: Optional[int] = None

    playwright_headless: Optional[bool] = None
    playwright_timeout_ms: Optional[int] = None
    playwright_stealth: Optional[bool] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_dir: Optional[Path] = None
    cache_ttl_seconds: Optional[int] = None

    max_observation_window_ms: Optional[int] = None
    revive_observation_window_ms: Optional[int] = None
    run_deadline_ms: Optional[int] = None
    strategy_timeout_ms: Optional[int] = None

    twitch_client_id: Optional[str] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
