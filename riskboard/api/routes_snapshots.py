"""Refresh, backfill and snapshot endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from riskboard.api.deps import get_service, require_refresh_token
from riskboard.errors import ConfigurationError, RiskboardError, UpstreamError
from riskboard.pipeline.orchestrator import RefreshService
from riskboard.snapshots.schemas import Region

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["snapshots"])


def _error_response(e: RiskboardError) -> JSONResponse:
    if isinstance(e, UpstreamError):
        status = 502
    else:
        status = 500
    details: str | list[str] = e.detail
    if isinstance(e, ConfigurationError):
        details = e.detail.split("; ")
    return JSONResponse(
        status_code=status,
        content={"ok": False, "error": e.summary, "kind": e.kind, "details": details},
    )


@router.api_route("/refresh", methods=["GET", "POST"], dependencies=[Depends(require_refresh_token)])
async def refresh(
    period: str | None = Query(None, description="Quarter label 'YYYY Qn', defaults to the current quarter"),
    service: RefreshService = Depends(get_service),
):
    """Fetch latest indicators and upsert the period's six rows."""
    try:
        result = await service.refresh(period)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RiskboardError as e:
        logger.error("Refresh failed (%s): %s", e.kind, e.detail)
        return _error_response(e)

    return {
        "ok": True,
        "period": result.period,
        "updated": [r.to_record() for r in result.updated_rows],
        "warnings": result.warnings,
    }


@router.api_route("/backfill", methods=["GET", "POST"], dependencies=[Depends(require_refresh_token)])
async def backfill(
    quarters: int | None = Query(None, ge=1, le=80),
    service: RefreshService = Depends(get_service),
):
    """Rebuild recent quarters from point-in-time values."""
    try:
        result = await service.backfill(quarters)
    except RiskboardError as e:
        logger.error("Backfill failed (%s): %s", e.kind, e.detail)
        return _error_response(e)

    return {"ok": True, "backfilled": result.periods, "warnings": result.warnings}


@router.get("/snapshot")
async def snapshot(
    region: Region = Query(Region.GLOBAL),
    limit: int | None = Query(None, ge=1),
    service: RefreshService = Depends(get_service),
):
    """Stored rows of one region, ascending by period."""
    try:
        rows = await service.get_snapshot(region, limit)
    except RiskboardError as e:
        return _error_response(e)
    return {"region": region.value, "rows": [r.to_record() for r in rows]}
