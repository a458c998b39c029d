"""Pick pipeline — one full cycle from opinion sources to consensus.

    orchestrator.collect()      first-stage batch (settle-all)
      └─ reviewer.health_check()  advisory, logged only
      └─ reviewer.analyze()       non-fatal on failure
    consensus.rank()            base picks + reviewer picks
    pick_store.add_picks()      cycle picks join the stored universe
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from core.oracle.consensus import ConsensusEngine
from core.oracle.orchestrator import PickOrchestrator
from core.oracle.reviewer import ReviewAgentClient
from core.oracle.store import PickStore
from core.oracle.types import (
    REVIEWER_SOURCE,
    AggregateBatch,
    ConsensusEntry,
    Pick,
    ReviewResult,
    ReviewSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineReport:
    """Everything one cycle produced."""

    batch: AggregateBatch
    cycle_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    review: ReviewResult | None = None
    reviewer_healthy: bool | None = None
    consensus: list[ConsensusEntry] = field(default_factory=list)
    picks: list[Pick] = field(default_factory=list)
    stored_picks: int | None = None

    @property
    def success(self) -> bool:
        return self.batch.success

    @property
    def top_picks(self) -> int:
        return sum(1 for p in self.picks if p.is_top_pick)

    @property
    def portfolio_picks(self) -> int:
        return len(self.picks) - self.top_picks

    def summary(self) -> dict[str, Any]:
        reviewer_picks = self.review.analysis.picks if self.review and self.review.analysis else ()
        return {
            "success": self.success,
            "cycle_id": self.cycle_id,
            "total_ais": self.batch.successful_count + (1 if self.review and self.review.success else 0),
            "successful_ais": self.batch.successful_count,
            "total_picks": len(self.picks),
            "top_picks": self.top_picks,
            "portfolio_picks": self.portfolio_picks,
            "ai_results": [
                {
                    "ai_name": r.ai_name,
                    "success": r.success,
                    "picks": len(r.picks),
                    "top_picks": r.top_pick_count,
                    "error": r.error,
                    "error_kind": r.error_kind.value if r.error_kind else None,
                    "latency_ms": r.latency_ms,
                }
                for r in self.batch.results
            ],
            "reviewer": {
                "name": REVIEWER_SOURCE,
                "healthy": self.reviewer_healthy,
                "success": bool(self.review and self.review.success),
                "picks": len(reviewer_picks),
                "contrarian_picks": sum(1 for p in reviewer_picks if p.contrarian_bet),
                "error": self.review.error if self.review else None,
                "status_code": self.review.status_code if self.review else None,
            },
            "consensus": [e.to_dict() for e in self.consensus],
            "stored_picks": self.stored_picks,
        }


class PickPipeline:
    """Runs the orchestrator, the reviewer and consensus in sequence.

    Args:
        orchestrator: First-stage fan-out.
        reviewer: Second-stage client; ``None`` skips the review stage.
        consensus: Ranking engine (default ``ConsensusEngine()``).
        pick_store: Where cycle picks and the reviewer narrative are kept;
            ``None`` keeps nothing between cycles.
    """

    def __init__(
        self,
        orchestrator: PickOrchestrator,
        reviewer: ReviewAgentClient | None = None,
        consensus: ConsensusEngine | None = None,
        pick_store: PickStore | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.reviewer = reviewer
        self.consensus = consensus or ConsensusEngine()
        self.pick_store = pick_store

    async def run(self, today: date | None = None) -> PipelineReport:
        batch = await self.orchestrator.collect(today)
        report = PipelineReport(batch=batch)
        if not batch.success:
            logger.error("No opinion source produced picks; skipping review and consensus")
            return report

        picks: list[Pick] = batch.all_picks()

        if self.reviewer is not None:
            report.reviewer_healthy = await self.reviewer.health_check()
            if not report.reviewer_healthy:
                logger.warning("Reviewer health probe failed; attempting analysis anyway")
            report.review = await self.reviewer.analyze(batch)
            if report.review.success and report.review.analysis is not None:
                picks.extend(report.review.analysis.picks)
            else:
                logger.warning("Reviewer unavailable (%s); continuing with first-stage picks", report.review.error)

        report.picks = picks
        report.consensus = self.consensus.rank(picks)

        if self.pick_store is not None:
            report.stored_picks = await self._store(report)

        logger.info(
            "Cycle %s complete: %d picks (%d top), %d consensus symbols",
            report.cycle_id,
            len(picks),
            report.top_picks,
            len(report.consensus),
        )
        return report

    async def _store(self, report: PipelineReport) -> int:
        """Persist the cycle's picks and, when present, the reviewer narrative.

        Storage errors propagate: a cycle that cannot be kept is a failed cycle.
        """
        stored = await self.pick_store.add_picks(report.cycle_id, report.picks)
        analysis = report.review.analysis if report.review and report.review.success else None
        if analysis is not None:
            await self.pick_store.add_review(ReviewSnapshot.from_analysis(report.cycle_id, analysis))
        logger.info("Stored %d picks for cycle %s", stored, report.cycle_id)
        return stored
