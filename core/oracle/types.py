"""Oracle module types — shared dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


UNKNOWN_SOURCE = "Unknown"
REVIEWER_SOURCE = "Javari AI"

# Pick.confidence_score lives on a 0-100 integer scale.
PICK_CONFIDENCE_MIN = 0
PICK_CONFIDENCE_MAX = 100

# Prediction.confidence lives on a 0.0-1.0 float scale.
PREDICTION_CONFIDENCE_MIN = 0.0
PREDICTION_CONFIDENCE_MAX = 1.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SourceName(str, Enum):
    """Opinion sources queried in the first stage."""

    GPT4 = "GPT-4"
    CLAUDE = "Claude"
    GEMINI = "Gemini"
    PERPLEXITY = "Perplexity"


class ErrorKind(str, Enum):
    """Failure taxonomy shared by adapters, the reviewer and the tracker."""

    NETWORK = "NetworkError"
    AUTH = "AuthError"
    RATE_LIMITED = "RateLimited"
    MALFORMED_RESPONSE = "MalformedResponse"
    VALIDATION = "ValidationError"


class PredictionType(str, Enum):
    LONG = "long"
    SHORT = "short"
    HOLD = "hold"


class PredictionOutcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


# ---------------------------------------------------------------------------
# Source configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceConfig:
    """Configuration for one opinion source."""

    name: SourceName
    api_key_env: str  # e.g. "OPENAI_API_KEY"
    base_url: str
    model: str
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout_seconds: int = 90


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pick:
    """One directional stock recommendation from a single source."""

    symbol: str
    entry_price: float
    target_price: float
    stop_loss: float
    confidence_score: int  # 0 - 100
    reasoning: str
    rank: int
    is_top_pick: bool = False
    timeframe: str = ""
    sector: str | None = None
    catalyst: str | None = None
    ai_name: str = UNKNOWN_SOURCE
    picked_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ReviewerPick(Pick):
    """A reviewer pick, annotated with the sources that informed it."""

    learned_from: frozenset[str] = frozenset()
    contrarian_bet: bool = False


@dataclass(frozen=True)
class ProviderResult:
    """Outcome of one opinion-source invocation."""

    ai_name: str
    success: bool
    picks: tuple[Pick, ...] = ()
    error: str | None = None
    error_kind: ErrorKind | None = None
    latency_ms: float = 0.0
    dropped_picks: int = 0

    def __post_init__(self) -> None:
        if not self.success and self.picks:
            raise ValueError("A failed ProviderResult cannot carry picks")

    @classmethod
    def failure(
        cls,
        ai_name: str | None,
        error: str,
        kind: ErrorKind,
        latency_ms: float = 0.0,
    ) -> "ProviderResult":
        return cls(
            ai_name=ai_name or UNKNOWN_SOURCE,
            success=False,
            error=error,
            error_kind=kind,
            latency_ms=latency_ms,
        )

    @property
    def top_pick_count(self) -> int:
        return sum(1 for p in self.picks if p.is_top_pick)


@dataclass(frozen=True)
class AggregateBatch:
    """All source results of one orchestrator run, in registration order."""

    results: tuple[ProviderResult, ...] = ()
    successful_count: int = field(init=False)
    total_picks: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "successful_count", sum(1 for r in self.results if r.success))
        object.__setattr__(self, "total_picks", sum(len(r.picks) for r in self.results if r.success))

    @property
    def success(self) -> bool:
        return self.successful_count > 0

    @property
    def source_names(self) -> frozenset[str]:
        return frozenset(r.ai_name for r in self.results if r.success)

    def all_picks(self) -> list[Pick]:
        return [p for r in self.results if r.success for p in r.picks]


# ---------------------------------------------------------------------------
# Reviewer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompetitorPick:
    """A first-stage pick, normalized for the reviewer request."""

    ai_name: str
    symbol: str
    entry_price: float
    target_price: float
    stop_loss: float
    confidence_score: int
    reasoning: str
    sector: str | None = None
    catalyst: str | None = None


@dataclass
class ReviewRequest:
    """Body of ``POST /stock-analysis``."""

    competitor_picks: list[CompetitorPick]
    market_data: dict[str, Any] | None = None
    news_context: list[str] | None = None
    manual_insights: str | None = None


@dataclass(frozen=True)
class ReviewerAnalysis:
    """Normalized second-stage analysis."""

    competitor_review: dict[str, Any]
    market_research: dict[str, Any]
    reviewer_reasoning: dict[str, Any]
    picks: tuple[ReviewerPick, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def contrarian_count(self) -> int:
        return sum(1 for p in self.picks if p.contrarian_bet)


@dataclass(frozen=True)
class ReviewSnapshot:
    """The reviewer's narrative for one cycle, as kept in the pick store."""

    cycle_id: str
    competitor_review: dict[str, Any]
    market_research: dict[str, Any]
    reviewer_reasoning: dict[str, Any]
    recorded_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_analysis(cls, cycle_id: str, analysis: ReviewerAnalysis) -> "ReviewSnapshot":
        return cls(
            cycle_id=cycle_id,
            competitor_review=analysis.competitor_review,
            market_research=analysis.market_research,
            reviewer_reasoning=analysis.reviewer_reasoning,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "competitor_review": self.competitor_review,
            "market_research": self.market_research,
            "javari_reasoning": self.reviewer_reasoning,
            "recorded_at": self.recorded_at.isoformat(),
        }


@dataclass(frozen=True)
class ReviewResult:
    """Outcome of a reviewer call; failures are data, not exceptions."""

    success: bool
    analysis: ReviewerAnalysis | None = None
    error: str | None = None
    message: str | None = None
    status_code: int | None = None
    error_kind: ErrorKind | None = None


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsensusEntry:
    """Cross-source agreement on one symbol."""

    symbol: str
    agreement_count: int
    average_confidence: float
    average_potential_gain: float
    consensus_score: float
    contributing_sources: frozenset[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "agreement_count": self.agreement_count,
            "average_confidence": round(self.average_confidence, 2),
            "average_potential_gain": round(self.average_potential_gain, 2),
            "consensus_score": round(self.consensus_score, 2),
            "sources": sorted(self.contributing_sources),
        }


@dataclass(frozen=True)
class SourceStats:
    """Activity of one source across the stored pick universe."""

    ai_name: str
    total_picks: int
    top_picks: int
    average_confidence: float
    average_potential_gain: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "ai_name": self.ai_name,
            "total_picks": self.total_picks,
            "top_picks": self.top_picks,
            "average_confidence": round(self.average_confidence, 2),
            "average_potential_gain": round(self.average_potential_gain, 2),
        }


@dataclass(frozen=True)
class PerformanceMatrix:
    """Summed potential gain per (source, day); missing cells read as 0.0."""

    days: tuple[str, ...]
    sources: tuple[str, ...]
    cells: dict[tuple[str, str], float] = field(default_factory=dict)

    def value(self, source: str, day: str) -> float:
        return self.cells.get((source, day), 0.0)

    def rows(self) -> list[dict[str, Any]]:
        return [
            {"ai": source, "dates": [{"date": day, "value": self.value(source, day)} for day in self.days]}
            for source in self.sources
        ]


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@dataclass
class Prediction:
    """A trackable directional claim. ``confidence`` is on a 0.0-1.0 scale."""

    symbol: str
    prediction_type: PredictionType
    confidence: float
    target_price: float | None = None
    timeframe_days: int = 7
    reasoning: str = "Based on market analysis"
    predicted_at: datetime = field(default_factory=utc_now)
    actual_outcome: PredictionOutcome = PredictionOutcome.PENDING
    outcome_verified_at: datetime | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "prediction_type": self.prediction_type.value,
            "confidence": self.confidence,
            "target_price": self.target_price,
            "timeframe_days": self.timeframe_days,
            "reasoning": self.reasoning,
            "predicted_at": self.predicted_at.isoformat(),
            "actual_outcome": self.actual_outcome.value,
            "outcome_verified_at": self.outcome_verified_at.isoformat() if self.outcome_verified_at else None,
        }


@dataclass(frozen=True)
class TypeStats:
    total: int = 0
    success: int = 0
    accuracy: float = 0.0


@dataclass(frozen=True)
class PredictionStats:
    total: int = 0
    pending: int = 0
    success: int = 0
    failure: int = 0
    accuracy: float = 0.0
    average_confidence: float = 0.0
    by_type: dict[str, TypeStats] = field(
        default_factory=lambda: {t.value: TypeStats() for t in PredictionType}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "success": self.success,
            "failure": self.failure,
            "accuracy": self.accuracy,
            "average_confidence": self.average_confidence,
            "by_type": {
                name: {"total": s.total, "success": s.success, "accuracy": s.accuracy}
                for name, s in self.by_type.items()
            },
        }
