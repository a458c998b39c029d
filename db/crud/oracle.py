"""Async CRUD operations for the prediction ledger and stored picks.

Uses asyncpg/SQLAlchemy async sessions for database operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.oracle import PredictionRecord, ReviewSnapshotRecord, StockPickRecord


async def create_prediction(
    db: AsyncSession,
    symbol: str,
    prediction_type: str,
    confidence: float,
    predicted_at: datetime,
    target_price: float | None = None,
    timeframe_days: int = 7,
    reasoning: str = "Based on market analysis",
    actual_outcome: str = "pending",
) -> PredictionRecord:
    """Insert a prediction row."""
    record = PredictionRecord(
        symbol=symbol,
        prediction_type=prediction_type,
        confidence=confidence,
        target_price=target_price,
        timeframe_days=timeframe_days,
        reasoning=reasoning,
        predicted_at=predicted_at,
        actual_outcome=actual_outcome,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def get_predictions(
    db: AsyncSession,
    symbol: str | None = None,
    outcome: str | None = None,
    limit: int = 50,
) -> Sequence[PredictionRecord]:
    """Get predictions, most recent first, with optional filters."""
    query = select(PredictionRecord)
    if symbol:
        query = query.where(PredictionRecord.symbol == symbol)
    if outcome:
        query = query.where(PredictionRecord.actual_outcome == outcome)
    query = query.order_by(PredictionRecord.predicted_at.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def get_prediction(db: AsyncSession, prediction_id: str) -> PredictionRecord | None:
    result = await db.execute(select(PredictionRecord).where(PredictionRecord.id == prediction_id))
    return result.scalars().first()


async def resolve_prediction(
    db: AsyncSession,
    prediction_id: str,
    outcome: str,
    verified_at: datetime,
) -> PredictionRecord | None:
    """Set the outcome of a still-pending prediction.

    Returns the updated row, or None when no pending row matched.
    """
    result = await db.execute(
        update(PredictionRecord)
        .where(PredictionRecord.id == prediction_id, PredictionRecord.actual_outcome == "pending")
        .values(actual_outcome=outcome, outcome_verified_at=verified_at)
    )
    await db.commit()
    if result.rowcount == 0:
        return None
    return await get_prediction(db, prediction_id)


# ---------------------------------------------------------------------------
# Stored picks
# ---------------------------------------------------------------------------


async def create_picks(db: AsyncSession, rows: Sequence[dict[str, Any]]) -> int:
    """Insert one cycle's picks in a single commit; returns the row count."""
    db.add_all([StockPickRecord(**row) for row in rows])
    await db.commit()
    return len(rows)


async def get_picks(
    db: AsyncSession,
    since: datetime | None = None,
    ai_name: str | None = None,
    limit: int | None = None,
) -> Sequence[StockPickRecord]:
    """Get stored picks, most recent first."""
    query = select(StockPickRecord)
    if since is not None:
        query = query.where(StockPickRecord.picked_at >= since)
    if ai_name:
        query = query.where(StockPickRecord.ai_name == ai_name)
    query = query.order_by(StockPickRecord.picked_at.desc(), StockPickRecord.pick_rank.asc())
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def create_review_snapshot(
    db: AsyncSession,
    cycle_id: str,
    competitor_review: dict[str, Any],
    market_research: dict[str, Any],
    javari_reasoning: dict[str, Any],
    created_at: datetime,
) -> ReviewSnapshotRecord:
    record = ReviewSnapshotRecord(
        cycle_id=cycle_id,
        competitor_review=competitor_review,
        market_research=market_research,
        javari_reasoning=javari_reasoning,
        created_at=created_at,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def get_latest_review_snapshot(db: AsyncSession) -> ReviewSnapshotRecord | None:
    result = await db.execute(select(ReviewSnapshotRecord).order_by(ReviewSnapshotRecord.created_at.desc()).limit(1))
    return result.scalars().first()
