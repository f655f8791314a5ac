from __future__ import annotations

from .load import load_config
from .schema import AppConfig, EnvOverrides, ResolverConfig, TwitchConfig

__all__ = ["AppConfig", "EnvOverrides", "ResolverConfig", "TwitchConfig", "load_config"]
