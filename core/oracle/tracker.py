"""Prediction tracker — records directional claims and scores their accuracy.

Resolution (pending → success/failure) belongs to an external evaluator that
compares each prediction against later market data; ``resolve`` is the seam
it calls.  Statistics are computed by the pure ``compute_stats`` function.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from core.oracle.store import InMemoryPredictionStore, PredictionStore
from core.oracle.types import (
    PREDICTION_CONFIDENCE_MAX,
    PREDICTION_CONFIDENCE_MIN,
    ErrorKind,
    Prediction,
    PredictionOutcome,
    PredictionStats,
    PredictionType,
    TypeStats,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 50
DEFAULT_TIMEFRAME_DAYS = 7
DEFAULT_REASONING = "Based on market analysis"

REQUIRED_FIELDS = ("symbol", "prediction_type", "confidence")


class PredictionValidationError(ValueError):
    """A prediction payload was rejected; nothing was stored."""

    kind = ErrorKind.VALIDATION


class PredictionResolutionError(Exception):
    """A prediction could not be resolved (unknown id or already terminal)."""


def _accuracy(success: int, resolved: int) -> float:
    return round(success / resolved, 2) if resolved > 0 else 0.0


def _type_stats(records: list[Prediction], prediction_type: PredictionType) -> TypeStats:
    matching = [p for p in records if p.prediction_type == prediction_type]
    success = sum(1 for p in matching if p.actual_outcome == PredictionOutcome.SUCCESS)
    resolved = sum(1 for p in matching if p.actual_outcome != PredictionOutcome.PENDING)
    return TypeStats(total=len(matching), success=success, accuracy=_accuracy(success, resolved))


def compute_stats(records: Iterable[Prediction]) -> PredictionStats:
    """Summarize ``records``: counts per outcome, accuracy and per-type breakdown.

    Accuracy is ``success / (success + failure)`` and 0 when nothing has been
    resolved.  Derived numbers are rounded to 2 decimals.
    """
    records = list(records)
    if not records:
        return PredictionStats()

    pending = sum(1 for p in records if p.actual_outcome == PredictionOutcome.PENDING)
    success = sum(1 for p in records if p.actual_outcome == PredictionOutcome.SUCCESS)
    failure = sum(1 for p in records if p.actual_outcome == PredictionOutcome.FAILURE)
    avg_confidence = sum(p.confidence for p in records) / len(records)

    return PredictionStats(
        total=len(records),
        pending=pending,
        success=success,
        failure=failure,
        accuracy=_accuracy(success, success + failure),
        average_confidence=round(avg_confidence, 2),
        by_type={t.value: _type_stats(records, t) for t in PredictionType},
    )


def validate_payload(payload: Mapping[str, Any]) -> Prediction:
    """Build a pending ``Prediction`` from a raw payload.

    Raises:
        PredictionValidationError: missing required field, unknown type,
            confidence outside [0, 1] or a non-datetime ``predicted_at``.
    """
    missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "")]
    if missing:
        raise PredictionValidationError("Missing required fields: symbol, prediction_type, confidence")

    symbol = str(payload["symbol"]).strip().upper()
    if not symbol:
        raise PredictionValidationError("Missing required fields: symbol, prediction_type, confidence")

    try:
        prediction_type = PredictionType(str(payload["prediction_type"]).strip().lower())
    except ValueError:
        raise PredictionValidationError("prediction_type must be one of: long, short, hold") from None

    raw_confidence = payload["confidence"]
    if isinstance(raw_confidence, bool):
        raise PredictionValidationError("Confidence must be a number")
    try:
        confidence = float(raw_confidence)
    except (TypeError, ValueError):
        raise PredictionValidationError("Confidence must be a number") from None
    if not math.isfinite(confidence) or not PREDICTION_CONFIDENCE_MIN <= confidence <= PREDICTION_CONFIDENCE_MAX:
        raise PredictionValidationError("Confidence must be between 0 and 1")

    target_price = payload.get("target_price")
    if target_price is not None:
        try:
            target_price = float(target_price)
        except (TypeError, ValueError):
            raise PredictionValidationError("target_price must be a number") from None
        if not math.isfinite(target_price) or target_price <= 0:
            raise PredictionValidationError("target_price must be positive")

    timeframe_days = payload.get("timeframe_days") or DEFAULT_TIMEFRAME_DAYS
    try:
        timeframe_days = int(timeframe_days)
    except (TypeError, ValueError):
        raise PredictionValidationError("timeframe_days must be an integer") from None
    if timeframe_days <= 0:
        raise PredictionValidationError("timeframe_days must be positive")

    predicted_at = payload.get("predicted_at")
    if predicted_at is None:
        predicted_at = utc_now()
    elif not isinstance(predicted_at, datetime):
        raise PredictionValidationError("predicted_at must be a datetime")
    elif predicted_at.tzinfo is None:
        # Naive timestamps are taken as UTC
        predicted_at = predicted_at.replace(tzinfo=timezone.utc)
    else:
        predicted_at = predicted_at.astimezone(timezone.utc)

    return Prediction(
        symbol=symbol,
        prediction_type=prediction_type,
        confidence=confidence,
        target_price=target_price,
        timeframe_days=timeframe_days,
        reasoning=str(payload.get("reasoning") or DEFAULT_REASONING),
        predicted_at=predicted_at,
        actual_outcome=PredictionOutcome.PENDING,
    )


class PredictionTracker:
    """Records predictions into a store and reports on them.

    Usage::

        tracker = PredictionTracker()
        prediction = await tracker.record({"symbol": "ABCD", "prediction_type": "long", "confidence": 0.8})
        stats = compute_stats(await tracker.query(symbol="ABCD"))
    """

    def __init__(self, store: PredictionStore | None = None) -> None:
        self.store = store if store is not None else InMemoryPredictionStore()

    async def record(self, payload: Mapping[str, Any] | Prediction) -> Prediction:
        if isinstance(payload, Prediction):
            payload = {**payload.to_dict(), "predicted_at": payload.predicted_at}
        prediction = validate_payload(payload)
        stored = await self.store.add(prediction)
        logger.info(
            "Recorded %s prediction for %s (confidence=%.2f, id=%s)",
            stored.prediction_type.value,
            stored.symbol,
            stored.confidence,
            stored.id,
        )
        return stored

    async def query(
        self,
        symbol: str | None = None,
        outcome: PredictionOutcome | str | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[Prediction]:
        """Matching predictions, most recent first, capped at ``limit``."""
        if isinstance(outcome, str):
            outcome = PredictionOutcome(outcome)
        if symbol:
            symbol = symbol.strip().upper()
        return list(await self.store.list(symbol=symbol or None, outcome=outcome, limit=max(limit, 0)))

    async def resolve(self, prediction_id: str, outcome: PredictionOutcome | str) -> Prediction:
        """Move a pending prediction to its terminal outcome.

        Raises:
            PredictionResolutionError: unknown id, non-terminal outcome, or the
                prediction was already resolved.
        """
        outcome = PredictionOutcome(outcome)
        if outcome == PredictionOutcome.PENDING:
            raise PredictionResolutionError("Outcome must be success or failure")

        updated = await self.store.update_outcome(prediction_id, outcome, utc_now())
        if updated is None:
            existing = await self.store.get(prediction_id)
            if existing is None:
                raise PredictionResolutionError(f"Prediction {prediction_id} not found")
            raise PredictionResolutionError(
                f"Prediction {prediction_id} already resolved as {existing.actual_outcome.value}"
            )

        logger.info("Resolved prediction %s (%s) as %s", updated.id, updated.symbol, outcome.value)
        return updated

    async def stats(self, symbol: str | None = None, limit: int = DEFAULT_QUERY_LIMIT) -> PredictionStats:
        return compute_stats(await self.query(symbol=symbol, limit=limit))
