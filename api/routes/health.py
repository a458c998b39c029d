"""Health check API endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])

# Track API start time
_api_start_time = time.time()


@router.get("")
async def health_check(request: Request):
    """Liveness plus which stores are active."""
    store = type(request.app.state.tracker.store).__name__
    return {
        "status": "ok",
        "uptime_seconds": int(time.time() - _api_start_time),
        "prediction_store": store,
        "pick_store": type(request.app.state.pick_store).__name__,
    }
