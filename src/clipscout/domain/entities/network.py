"""Network exchange events observed by a browsing session."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NetworkEvent:
    """One observed response (URL plus basic metadata)."""

    url: str
    status: int = 0
    resource_type: str = ""
    content_type: str = ""
