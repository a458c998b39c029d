"""SQLAlchemy models for the market oracle database."""

from db.models.oracle import Base, PredictionRecord, ReviewSnapshotRecord, StockPickRecord

__all__ = ["Base", "PredictionRecord", "ReviewSnapshotRecord", "StockPickRecord"]
