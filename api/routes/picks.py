"""Pick generation API routes.

- POST /picks/generate      - run one full pick cycle (bearer CRON_SECRET)
- GET /picks/generate       - describe the service
- GET /picks/consensus      - consensus over the stored pick universe
- GET /picks/performance    - per-source, per-day potential gain
- GET /picks/sources        - per-source pick statistics
- GET /picks/review/latest  - most recent reviewer narrative
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse

from core.oracle.config import OracleSettings
from core.oracle.consensus import DEFAULT_LIMIT, DEFAULT_MATRIX_DAYS, DEFAULT_MIN_AGREEMENT, ConsensusEngine
from core.oracle.orchestrator import PickOrchestrator
from core.oracle.pipeline import PickPipeline
from core.oracle.providers import default_providers
from core.oracle.reviewer import ReviewAgentClient
from core.oracle.store import PickStore
from core.oracle.types import REVIEWER_SOURCE, SourceName, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/picks", tags=["picks"])


def _build_pipeline(settings: OracleSettings, pick_store: PickStore) -> PickPipeline:
    """Create a pipeline for one request.

    A fresh instance per call keeps concurrent cycles (cron and manual
    trigger) from sharing anything but the pick store.
    """
    return PickPipeline(
        orchestrator=PickOrchestrator(default_providers(), per_call_timeout=settings.per_call_timeout),
        reviewer=ReviewAgentClient(base_url=settings.reviewer_api_url, api_key=settings.reviewer_api_key),
        pick_store=pick_store,
    )


def _get_pipeline(request: Request) -> PickPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is not None:
        return pipeline
    return _build_pipeline(request.app.state.settings, request.app.state.pick_store)


def _is_authorized(authorization: Optional[str], cron_secret: str) -> bool:
    if not cron_secret or not authorization:
        return False
    return secrets.compare_digest(authorization, f"Bearer {cron_secret}")


@router.post("/generate")
async def generate_picks(request: Request, authorization: Optional[str] = Header(None)):
    """Run the full pick cycle and return its summary."""
    settings: OracleSettings = request.app.state.settings
    if not _is_authorized(authorization, settings.cron_secret):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    report = await _get_pipeline(request).run()
    summary = report.summary()
    if not report.success:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "All AIs failed to generate picks",
                "ai_results": summary["ai_results"],
            },
        )

    summary["message"] = (
        f"Generated {summary['total_picks']} picks from {summary['successful_ais']} "
        f"of {len(summary['ai_results'])} sources"
    )
    return summary


@router.get("/generate")
async def describe_service():
    """Describe the pick generation service."""
    return {
        "service": "Market Oracle pick generation",
        "sources": [s.value for s in SourceName],
        "reviewer": REVIEWER_SOURCE,
        "method": "POST",
        "auth": "Authorization: Bearer <CRON_SECRET>",
        "features": [
            "Parallel calls to every opinion source",
            "Second-stage review of competitor picks",
            "Cross-source consensus ranking",
            "Stored pick universe with consensus and performance views",
        ],
    }


def _get_pick_store(request: Request) -> PickStore:
    return request.app.state.pick_store


@router.get("/consensus")
async def stored_consensus(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365, description="Only picks from the last N days"),
    min_agreement: int = Query(DEFAULT_MIN_AGREEMENT, ge=1, le=10, description="Distinct sources required"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100, description="Maximum symbols to return"),
):
    """Rank symbols by consensus across every stored pick."""
    since = utc_now() - timedelta(days=days) if days else None
    stored = await _get_pick_store(request).list_picks(since=since)
    entries = ConsensusEngine(min_agreement=min_agreement, limit=limit).rank(stored)
    return {
        "total_picks": len(stored),
        "consensus": [e.to_dict() for e in entries],
    }


@router.get("/performance")
async def stored_performance(
    request: Request,
    days: int = Query(DEFAULT_MATRIX_DAYS, ge=1, le=90, description="Most recent days to include"),
):
    """Summed potential gain per source and UTC day."""
    stored = await _get_pick_store(request).list_picks(since=utc_now() - timedelta(days=days))
    matrix = ConsensusEngine().performance_matrix(stored, days=days)
    return {
        "days": list(matrix.days),
        "sources": list(matrix.sources),
        "rows": matrix.rows(),
    }


@router.get("/sources")
async def stored_source_stats(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365, description="Only picks from the last N days"),
):
    """Pick counts and averages per source."""
    since = utc_now() - timedelta(days=days) if days else None
    stored = await _get_pick_store(request).list_picks(since=since)
    return {"sources": [s.to_dict() for s in ConsensusEngine().source_statistics(stored)]}


@router.get("/review/latest")
async def latest_review(request: Request):
    """The reviewer's narrative from the most recent stored cycle."""
    snapshot = await _get_pick_store(request).latest_review()
    if snapshot is None:
        return JSONResponse(status_code=404, content={"error": "No reviewer analysis stored"})
    return snapshot.to_dict()
