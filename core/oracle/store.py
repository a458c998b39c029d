"""Stores for recorded predictions and for the pick universe.

``PredictionTracker`` only talks to the ``PredictionStore`` protocol and
``PickPipeline`` only talks to ``PickStore``.  The in-memory stores serve
tests and runs without DATABASE_URL; the SQL stores persist to
``javari_predictions``, ``stock_picks`` and ``javari_analysis`` through
SQLAlchemy async sessions.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import fields, replace
from datetime import datetime
from typing import Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.oracle.types import (
    REVIEWER_SOURCE,
    Pick,
    Prediction,
    PredictionOutcome,
    PredictionType,
    ReviewerPick,
    ReviewSnapshot,
)
from db.crud import oracle as oracle_crud
from db.models.oracle import PredictionRecord, ReviewSnapshotRecord, StockPickRecord

logger = logging.getLogger(__name__)


class PredictionStore(Protocol):
    async def add(self, prediction: Prediction) -> Prediction: ...

    async def list(
        self,
        symbol: str | None = None,
        outcome: PredictionOutcome | None = None,
        limit: int = 50,
    ) -> Sequence[Prediction]: ...

    async def get(self, prediction_id: str) -> Prediction | None: ...

    async def update_outcome(
        self,
        prediction_id: str,
        outcome: PredictionOutcome,
        verified_at: datetime,
    ) -> Prediction | None: ...


class InMemoryPredictionStore:
    """Process-local store; one instance per app or test."""

    def __init__(self) -> None:
        self._records: dict[str, Prediction] = {}
        self._lock = asyncio.Lock()

    async def add(self, prediction: Prediction) -> Prediction:
        stored = replace(prediction, id=prediction.id or str(uuid.uuid4()))
        async with self._lock:
            self._records[stored.id] = stored
        return replace(stored)

    async def list(
        self,
        symbol: str | None = None,
        outcome: PredictionOutcome | None = None,
        limit: int = 50,
    ) -> list[Prediction]:
        rows = [
            p
            for p in self._records.values()
            if (symbol is None or p.symbol == symbol) and (outcome is None or p.actual_outcome == outcome)
        ]
        rows.sort(key=lambda p: p.predicted_at, reverse=True)
        return [replace(p) for p in rows[:limit]]

    async def get(self, prediction_id: str) -> Prediction | None:
        found = self._records.get(prediction_id)
        return replace(found) if found else None

    async def update_outcome(
        self,
        prediction_id: str,
        outcome: PredictionOutcome,
        verified_at: datetime,
    ) -> Prediction | None:
        async with self._lock:
            current = self._records.get(prediction_id)
            if current is None or current.actual_outcome != PredictionOutcome.PENDING:
                return None
            updated = replace(current, actual_outcome=outcome, outcome_verified_at=verified_at)
            self._records[prediction_id] = updated
        return replace(updated)

    def __len__(self) -> int:
        return len(self._records)


def _from_record(record: PredictionRecord) -> Prediction:
    return Prediction(
        id=record.id,
        symbol=record.symbol,
        prediction_type=PredictionType(record.prediction_type),
        confidence=record.confidence,
        target_price=record.target_price,
        timeframe_days=record.timeframe_days,
        reasoning=record.reasoning,
        predicted_at=record.predicted_at,
        actual_outcome=PredictionOutcome(record.actual_outcome),
        outcome_verified_at=record.outcome_verified_at,
    )


class SqlPredictionStore:
    """Store backed by the ``javari_predictions`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, prediction: Prediction) -> Prediction:
        async with self._session_factory() as db:
            record = await oracle_crud.create_prediction(
                db,
                symbol=prediction.symbol,
                prediction_type=prediction.prediction_type.value,
                confidence=prediction.confidence,
                predicted_at=prediction.predicted_at,
                target_price=prediction.target_price,
                timeframe_days=prediction.timeframe_days,
                reasoning=prediction.reasoning,
                actual_outcome=prediction.actual_outcome.value,
            )
            return _from_record(record)

    async def list(
        self,
        symbol: str | None = None,
        outcome: PredictionOutcome | None = None,
        limit: int = 50,
    ) -> list[Prediction]:
        async with self._session_factory() as db:
            records = await oracle_crud.get_predictions(
                db, symbol=symbol, outcome=outcome.value if outcome else None, limit=limit
            )
            return [_from_record(r) for r in records]

    async def get(self, prediction_id: str) -> Prediction | None:
        async with self._session_factory() as db:
            record = await oracle_crud.get_prediction(db, prediction_id)
            return _from_record(record) if record else None

    async def update_outcome(
        self,
        prediction_id: str,
        outcome: PredictionOutcome,
        verified_at: datetime,
    ) -> Prediction | None:
        async with self._session_factory() as db:
            record = await oracle_crud.resolve_prediction(db, prediction_id, outcome.value, verified_at)
            return _from_record(record) if record else None


# ---------------------------------------------------------------------------
# Pick universe
# ---------------------------------------------------------------------------


class PickStore(Protocol):
    async def add_picks(self, cycle_id: str, picks: Sequence[Pick]) -> int: ...

    async def list_picks(
        self,
        since: datetime | None = None,
        ai_name: str | None = None,
        limit: int | None = None,
    ) -> Sequence[Pick]: ...

    async def add_review(self, snapshot: ReviewSnapshot) -> None: ...

    async def latest_review(self) -> ReviewSnapshot | None: ...


class InMemoryPickStore:
    """Process-local pick universe; one instance per app or test."""

    def __init__(self) -> None:
        self._picks: list[tuple[str, Pick]] = []
        self._reviews: list[ReviewSnapshot] = []
        self._lock = asyncio.Lock()

    async def add_picks(self, cycle_id: str, picks: Sequence[Pick]) -> int:
        async with self._lock:
            self._picks.extend((cycle_id, p) for p in picks)
        return len(picks)

    async def list_picks(
        self,
        since: datetime | None = None,
        ai_name: str | None = None,
        limit: int | None = None,
    ) -> list[Pick]:
        rows = [
            p
            for _, p in self._picks
            if (since is None or p.picked_at >= since) and (ai_name is None or p.ai_name == ai_name)
        ]
        rows.sort(key=lambda p: (-p.picked_at.timestamp(), p.rank))
        return rows if limit is None else rows[:limit]

    async def add_review(self, snapshot: ReviewSnapshot) -> None:
        async with self._lock:
            self._reviews.append(snapshot)

    async def latest_review(self) -> ReviewSnapshot | None:
        if not self._reviews:
            return None
        return max(self._reviews, key=lambda s: s.recorded_at)


def _pick_row(cycle_id: str, pick: Pick) -> dict:
    row = {
        "cycle_id": cycle_id,
        "ai_name": pick.ai_name,
        "symbol": pick.symbol,
        "entry_price": pick.entry_price,
        "target_price": pick.target_price,
        "stop_loss": pick.stop_loss,
        "confidence_score": pick.confidence_score,
        "reasoning": pick.reasoning,
        "pick_rank": pick.rank,
        "is_top_pick": pick.is_top_pick,
        "timeframe": pick.timeframe,
        "sector": pick.sector,
        "catalyst": pick.catalyst,
        "picked_at": pick.picked_at,
    }
    if isinstance(pick, ReviewerPick):
        row["learned_from"] = ", ".join(sorted(pick.learned_from))
        row["is_contrarian"] = pick.contrarian_bet
    return row


def _pick_from_record(record: StockPickRecord) -> Pick:
    pick = Pick(
        symbol=record.symbol,
        entry_price=record.entry_price,
        target_price=record.target_price,
        stop_loss=record.stop_loss,
        confidence_score=record.confidence_score,
        reasoning=record.reasoning,
        rank=record.pick_rank,
        is_top_pick=record.is_top_pick,
        timeframe=record.timeframe or "",
        sector=record.sector,
        catalyst=record.catalyst,
        ai_name=record.ai_name,
        picked_at=record.picked_at,
    )
    if record.ai_name != REVIEWER_SOURCE:
        return pick
    learned = frozenset(name.strip() for name in (record.learned_from or "").split(",") if name.strip())
    return ReviewerPick(
        **{f.name: getattr(pick, f.name) for f in fields(pick)},
        learned_from=learned,
        contrarian_bet=bool(record.is_contrarian),
    )


class SqlPickStore:
    """Pick universe backed by the ``stock_picks`` and ``javari_analysis`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_picks(self, cycle_id: str, picks: Sequence[Pick]) -> int:
        if not picks:
            return 0
        async with self._session_factory() as db:
            return await oracle_crud.create_picks(db, [_pick_row(cycle_id, p) for p in picks])

    async def list_picks(
        self,
        since: datetime | None = None,
        ai_name: str | None = None,
        limit: int | None = None,
    ) -> list[Pick]:
        async with self._session_factory() as db:
            records = await oracle_crud.get_picks(db, since=since, ai_name=ai_name, limit=limit)
            return [_pick_from_record(r) for r in records]

    async def add_review(self, snapshot: ReviewSnapshot) -> None:
        async with self._session_factory() as db:
            await oracle_crud.create_review_snapshot(
                db,
                cycle_id=snapshot.cycle_id,
                competitor_review=snapshot.competitor_review,
                market_research=snapshot.market_research,
                javari_reasoning=snapshot.reviewer_reasoning,
                created_at=snapshot.recorded_at,
            )

    async def latest_review(self) -> ReviewSnapshot | None:
        async with self._session_factory() as db:
            record = await oracle_crud.get_latest_review_snapshot(db)
        if record is None:
            return None
        return _snapshot_from_record(record)


def _snapshot_from_record(record: ReviewSnapshotRecord) -> ReviewSnapshot:
    return ReviewSnapshot(
        cycle_id=record.cycle_id,
        competitor_review=record.competitor_review or {},
        market_research=record.market_research or {},
        reviewer_reasoning=record.javari_reasoning or {},
        recorded_at=record.created_at,
    )
