from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from riskboard.config import Settings, get_settings
from riskboard.pipeline.orchestrator import RefreshService


class RefreshUnauthorized(Exception):
    """Raised by require_refresh_token; rendered by the app as a bare 401 body."""


async def refresh_unauthorized_handler(request: Request, exc: RefreshUnauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"ok": False, "error": "unauthorized"})


def get_service(request: Request) -> RefreshService:
    """The RefreshService built at startup (see main.py lifespan)."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Refresh service not initialised")
    return service


def _get_token(request: Request) -> str | None:
    # Header first, then ?token= query parameter.
    token = request.headers.get("x-refresh-token")
    if token:
        return token.strip()
    token = request.query_params.get("token")
    if token:
        return token.strip()
    return None


def require_refresh_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject refresh/backfill calls without the configured token.

    An empty ``REFRESH_TOKEN`` leaves the endpoints open.
    """
    required = settings.refresh_token.strip()
    if not required:
        return
    token = _get_token(request)
    if token is None or not secrets.compare_digest(token, required):
        raise RefreshUnauthorized()
