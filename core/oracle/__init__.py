"""Market oracle — multi-source stock picks, review and consensus.

Architecture:

    ┌──────────────────┐
    │ PickOrchestrator │  ← fans out to every source, settle-all
    └────────┬─────────┘
             │
    ┌────────┼────────────┬──────────────┐
    ▼        ▼            ▼              ▼
  GPT-4    Claude       Gemini       Perplexity
    │        │            │              │
    └────────┴─────┬──────┴──────────────┘
                   │  AggregateBatch
          ┌────────┴─────────┐
          ▼                  ▼
   ReviewAgentClient   ConsensusEngine  ← reviewer picks merge in here
          │                  │
          └───────► ranked symbols
                             │
                        PickStore  ← every cycle joins the stored universe

   PredictionTracker  ← independent sink for directional claims

Submodules:
- providers:    Opinion-source adapters (OpenAI, Anthropic, Gemini, Perplexity)
- extraction:   Free-text → validated Pick batch
- orchestrator: Concurrent fan-out with per-call deadlines
- reviewer:     Second-stage reviewer client and health probe
- consensus:    Cross-source ranking, performance matrix, per-source stats
- tracker:      Prediction ledger and accuracy statistics
- store:        Prediction and pick stores (in-memory, SQL)
- pipeline:     One full pick cycle
- config:       Environment settings
- types:        Shared dataclasses and enums
"""

from core.oracle.consensus import ConsensusEngine
from core.oracle.extraction import extract_picks
from core.oracle.orchestrator import PickOrchestrator
from core.oracle.pipeline import PickPipeline, PipelineReport
from core.oracle.reviewer import ReviewAgentClient, format_competitor_picks
from core.oracle.store import InMemoryPickStore, PickStore, SqlPickStore
from core.oracle.tracker import PredictionTracker, PredictionValidationError, compute_stats
from core.oracle.types import (
    AggregateBatch,
    ConsensusEntry,
    ErrorKind,
    Pick,
    Prediction,
    PredictionOutcome,
    PredictionStats,
    PredictionType,
    ProviderResult,
    ReviewerAnalysis,
    ReviewerPick,
    ReviewResult,
    ReviewSnapshot,
    SourceName,
    SourceStats,
)

__all__ = [
    "ConsensusEngine",
    "PickOrchestrator",
    "PickPipeline",
    "PipelineReport",
    "PredictionTracker",
    "PredictionValidationError",
    "ReviewAgentClient",
    "InMemoryPickStore",
    "PickStore",
    "SqlPickStore",
    "compute_stats",
    "extract_picks",
    "format_competitor_picks",
    "AggregateBatch",
    "ConsensusEntry",
    "ErrorKind",
    "Pick",
    "Prediction",
    "PredictionOutcome",
    "PredictionStats",
    "PredictionType",
    "ProviderResult",
    "ReviewerAnalysis",
    "ReviewerPick",
    "ReviewResult",
    "ReviewSnapshot",
    "SourceName",
    "SourceStats",
]
