"""Resolve endpoints: run a resolution or read the last recorded result."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from clipscout.domain.entities.clip import ErrorKind, ResolutionFailure
from clipscout.infrastructure.persistence import serialize_result
from clipscout.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["resolve"])

_FAILURE_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_TARGET: 400,
    ErrorKind.NO_CANDIDATES: 404,
    ErrorKind.NO_VALID_CANDIDATE: 404,
    ErrorKind.RUN_TIMEOUT: 504,
}


def failure_status(reason: ErrorKind) -> int:
    return _FAILURE_STATUS.get(reason, 502)


@router.get("/resolve")
async def resolve_clip(
    request: Request,
    target: str = Query(..., description="Clip URL or bare clip slug."),
) -> JSONResponse:
    """Resolve *target* to a direct asset URL.

    Returns the same record the result sink stores: 200 on success;
    400/404/504 on failure with ``error`` naming the failure kind.
    """
    state = cast(AppState, request.app.state)

    result = await state.resolver.execute(target)
    body = serialize_result(target, result)

    if isinstance(result, ResolutionFailure):
        status = failure_status(result.reason)
        log.info("resolve_request_failed", reason=result.reason.value, status=status)
        return JSONResponse(body, status_code=status)

    return JSONResponse(body, status_code=200)


@router.get("/resolve/latest/{slug}")
async def latest_result(slug: str, request: Request) -> JSONResponse:
    """Return the last recorded result for *slug* while it is retained."""
    state = cast(AppState, request.app.state)

    try:
        record = await state.sink.latest(slug)
    except Exception as e:
        log.error("result_lookup_failed", slug=slug, error=str(e))
        raise HTTPException(
            status_code=500, detail="Failed to read result store"
        ) from e

    if record is None:
        raise HTTPException(status_code=404, detail=f"No recorded result: {slug}")
    return JSONResponse(record)
