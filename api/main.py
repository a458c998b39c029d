"""FastAPI application for pick generation and the prediction ledger.

Endpoints:
- GET /health - Liveness
- GET /predictions - Predictions with accuracy stats
- POST /predictions - Record a prediction
- POST /picks/generate - Run one pick cycle (bearer CRON_SECRET)
- GET /picks/generate - Service description
- GET /picks/consensus - Consensus over the stored pick universe
- GET /picks/performance - Per-source, per-day potential gain
- GET /picks/sources - Per-source pick statistics
- GET /picks/review/latest - Most recent reviewer narrative

Environment:
- DATABASE_URL - Optional. Selects the SQL prediction and pick stores.
- CRON_SECRET - Required for POST /picks/generate.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.routes import health, picks, predictions
from core.oracle.config import OracleSettings, load_settings
from core.oracle.pipeline import PickPipeline
from core.oracle.store import InMemoryPickStore, PickStore, SqlPickStore, SqlPredictionStore
from core.oracle.tracker import PredictionTracker
from db.session import create_session_factory

logger = logging.getLogger(__name__)


def _default_tracker(session_factory: async_sessionmaker[AsyncSession] | None) -> PredictionTracker:
    if session_factory is not None:
        logger.info("Using SQL prediction store")
        return PredictionTracker(SqlPredictionStore(session_factory))
    logger.info("DATABASE_URL not set; using in-memory prediction store")
    return PredictionTracker()


def _default_pick_store(session_factory: async_sessionmaker[AsyncSession] | None) -> PickStore:
    if session_factory is not None:
        logger.info("Using SQL pick store")
        return SqlPickStore(session_factory)
    logger.info("DATABASE_URL not set; using in-memory pick store")
    return InMemoryPickStore()


def create_app(
    tracker: PredictionTracker | None = None,
    pipeline: PickPipeline | None = None,
    settings: OracleSettings | None = None,
    pick_store: PickStore | None = None,
) -> FastAPI:
    """Build the API app.

    Args:
        tracker: Prediction tracker (default: chosen from DATABASE_URL).
        pipeline: Fixed pick pipeline; ``None`` builds a fresh one per request.
        settings: Runtime settings (default: ``load_settings()``).
        pick_store: Stored pick universe (default: chosen from DATABASE_URL).
    """
    settings = settings or load_settings()

    session_factory = None
    if settings.database_url and (tracker is None or pick_store is None):
        session_factory = create_session_factory(settings.database_url)

    app = FastAPI(
        title="Market Oracle API",
        description="Multi-source stock picks, consensus and prediction tracking",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.tracker = tracker if tracker is not None else _default_tracker(session_factory)
    app.state.pick_store = pick_store if pick_store is not None else _default_pick_store(session_factory)
    app.state.pipeline = pipeline

    app.include_router(health.router)
    app.include_router(predictions.router)
    app.include_router(picks.router)

    @app.exception_handler(Exception)
    async def global_exception_handler(_request, exc):
        """Global exception handler to ensure consistent error responses."""
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
