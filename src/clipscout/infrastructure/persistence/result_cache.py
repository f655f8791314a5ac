"""Resolution result sink backed by CachePort (diskcache)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import structlog

from clipscout.domain.entities.clip import (
    PageTarget,
    ResolutionFailure,
    ResolutionResult,
)
from clipscout.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)


def _cache_key(slug: str) -> str:
    return f"resolution:{slug}:latest"


def serialize_result(
    clip_url: str,
    result: ResolutionResult,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the persisted record for one run.

    Successes carry ``videoUrl``; failures carry ``error`` (the reason
    kind) and ``detail``. ``title``/``creator`` are present on both, empty
    for failures.
    """
    stamp = (now or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    record: dict[str, Any] = {
        "clipUrl": clip_url,
        "success": result.ok,
        "timestamp": stamp,
    }
    if isinstance(result, ResolutionFailure):
        record.update(
            error=result.reason.value,
            detail=result.detail,
            title="",
            creator="",
        )
        return record

    record.update(
        videoUrl=result.asset_url,
        title=result.title,
        creator=result.creator,
        quality=result.quality,
        strategy=result.strategy_used.value,
    )
    return record


class CacheResultSink:
    """Stores the latest result per clip slug via CachePort."""

    def __init__(self, cache: CachePort, ttl_seconds: int = 3600) -> None:
        self.cache = cache
        self.ttl = ttl_seconds

    async def record(self, target: PageTarget, result: ResolutionResult) -> None:
        # Unparseable targets have no slug; key them by their raw text.
        slug = target.slug or target.raw
        payload = json.dumps(serialize_result(target.raw, result))
        await self.cache.set(_cache_key(slug), payload, ttl=self.ttl)
        log.debug("result_recorded", slug=slug, success=result.ok, ttl=self.ttl)

    async def latest(self, slug: str) -> dict[str, Any] | None:
        data = await self.cache.get(_cache_key(slug))
        if data is None:
            return None
        try:
            record = json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            log.error("result_deserialize_error", slug=slug, error=str(e))
            return None
        if not isinstance(record, dict):
            return None
        return record
