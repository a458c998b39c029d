"""SQLAlchemy models for the prediction ledger and the stored pick universe.

Tables:
- javari_predictions
- stock_picks
- javari_analysis
"""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class PredictionRecord(Base):
    """One tracked directional prediction.

    Table: javari_predictions
    """

    __tablename__ = "javari_predictions"

    id = Column(Text, primary_key=True, default=_new_id)
    symbol = Column(Text, nullable=False)
    prediction_type = Column(Text, nullable=False)  # long|short|hold
    confidence = Column(Float, nullable=False)  # 0.0 - 1.0
    target_price = Column(Float, nullable=True)
    timeframe_days = Column(Integer, nullable=False, default=7)
    reasoning = Column(Text, nullable=False, default="Based on market analysis")
    predicted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    actual_outcome = Column(Text, nullable=False, default="pending")  # pending|success|failure
    outcome_verified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_javari_predictions_symbol", "symbol", "predicted_at"),
        Index("idx_javari_predictions_outcome", "actual_outcome"),
    )

    def __repr__(self) -> str:
        return (
            f"<PredictionRecord(id={self.id}, symbol={self.symbol}, "
            f"type={self.prediction_type}, outcome={self.actual_outcome})>"
        )


class StockPickRecord(Base):
    """One pick from one source in one cycle.

    Table: stock_picks
    """

    __tablename__ = "stock_picks"

    id = Column(Text, primary_key=True, default=_new_id)
    cycle_id = Column(Text, nullable=False)
    ai_name = Column(Text, nullable=False)
    symbol = Column(Text, nullable=False)
    entry_price = Column(Float, nullable=False)
    target_price = Column(Float, nullable=False)
    stop_loss = Column(Float, nullable=False)
    confidence_score = Column(Integer, nullable=False)  # 0 - 100
    reasoning = Column(Text, nullable=False)
    pick_rank = Column(Integer, nullable=False)
    is_top_pick = Column(Boolean, nullable=False, default=False)
    timeframe = Column(Text, nullable=False, default="")
    sector = Column(Text, nullable=True)
    catalyst = Column(Text, nullable=True)
    learned_from = Column(Text, nullable=True)  # reviewer picks only, comma separated
    is_contrarian = Column(Boolean, nullable=False, default=False)
    picked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_stock_picks_picked_at", "picked_at"),
        Index("idx_stock_picks_symbol", "symbol"),
        Index("idx_stock_picks_cycle", "cycle_id"),
    )

    def __repr__(self) -> str:
        return f"<StockPickRecord(id={self.id}, ai={self.ai_name}, symbol={self.symbol}, cycle={self.cycle_id})>"


class ReviewSnapshotRecord(Base):
    """The reviewer's narrative for one cycle.

    Table: javari_analysis
    """

    __tablename__ = "javari_analysis"

    id = Column(Text, primary_key=True, default=_new_id)
    cycle_id = Column(Text, nullable=False)
    competitor_review = Column(JSON, nullable=False, default=dict)
    market_research = Column(JSON, nullable=False, default=dict)
    javari_reasoning = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_javari_analysis_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<ReviewSnapshotRecord(id={self.id}, cycle={self.cycle_id})>"
