"""Prediction ledger API routes.

- GET /predictions  - list predictions with stats
- POST /predictions - record a new prediction
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.oracle.tracker import PredictionTracker, PredictionValidationError, compute_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/predictions", tags=["predictions"])


class CreatePredictionRequest(BaseModel):
    """Request to record a prediction.

    Fields are loosely typed so that bad values reach the tracker's
    validation and come back as a 400 with a readable message.
    """

    symbol: Optional[str] = None
    prediction_type: Optional[str] = None
    confidence: Any = None
    target_price: Any = None
    timeframe_days: Any = None
    reasoning: Optional[str] = None


def _get_tracker(request: Request) -> PredictionTracker:
    return request.app.state.tracker


@router.get("")
async def list_predictions(
    request: Request,
    symbol: Optional[str] = Query(None, description="Filter by symbol"),
    outcome: Optional[Literal["pending", "success", "failure"]] = Query(None, description="Filter by outcome"),
    limit: int = Query(50, ge=1, le=500, description="Maximum predictions to return"),
):
    """List predictions, most recent first, with accuracy stats over the result."""
    tracker = _get_tracker(request)
    predictions = await tracker.query(symbol=symbol, outcome=outcome, limit=limit)
    return {
        "predictions": [p.to_dict() for p in predictions],
        "stats": compute_stats(predictions).to_dict(),
        "total": len(predictions),
    }


@router.post("")
async def create_prediction(request: Request, body: CreatePredictionRequest):
    """Record a new pending prediction."""
    tracker = _get_tracker(request)
    try:
        prediction = await tracker.record(body.model_dump())
    except PredictionValidationError as e:
        logger.info("Rejected prediction for %s: %s", body.symbol, e)
        return JSONResponse(status_code=400, content={"error": str(e)})

    return {
        "success": True,
        "prediction": prediction.to_dict(),
        "message": "Prediction stored successfully",
    }
