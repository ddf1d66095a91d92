from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from riskboard.api.deps import RefreshUnauthorized, refresh_unauthorized_handler
from riskboard.api.health import router as health_router
from riskboard.api.routes_snapshots import router as snapshots_router
from riskboard.config import PipelineConfig, get_settings
from riskboard.score.versions import SCORE_CALC_VERSION

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: load config (validates region weights) and build the pipeline
    settings = get_settings()

    from riskboard.pipeline.orchestrator import RefreshService
    from riskboard.snapshots.store import make_row_store

    config = PipelineConfig.from_settings(settings)
    app.state.service = RefreshService(config, make_row_store(settings))
    logger.info(
        "Refresh service ready (store=%s, regions config %s, score %s)",
        settings.store_backend,
        config.regions.config_version,
        SCORE_CALC_VERSION,
    )

    yield

    # Shutdown
    if settings.store_backend == "database":
        from riskboard.db.session import dispose_engine
        await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title="Quarterly Risk Monitor", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RefreshUnauthorized, refresh_unauthorized_handler)

    app.include_router(health_router)
    app.include_router(snapshots_router)

    return app


app = create_app()
