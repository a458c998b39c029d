"""Consensus engine — cross-source agreement on symbols.

Groups every available pick by symbol and scores each group:

    consensus_score = agreement_count × 20
                    + average_confidence × 0.5
                    + average_potential_gain × 2

Only symbols picked by at least ``min_agreement`` distinct sources are ranked.
Equal scores are ordered by ascending symbol so the output never depends on
input order.

The engine is pure: no I/O, no state between calls.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import timezone
from typing import Iterable

from core.oracle.types import ConsensusEntry, PerformanceMatrix, Pick, SourceStats

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGREEMENT = 2
DEFAULT_LIMIT = 10
DEFAULT_MATRIX_DAYS = 7

AGREEMENT_WEIGHT = 20.0
CONFIDENCE_WEIGHT = 0.5
GAIN_WEIGHT = 2.0


def potential_gain(entry_price: float, target_price: float) -> float:
    """Percentage move from entry to target; 0.0 for a non-positive entry."""
    if entry_price <= 0:
        return 0.0
    return (target_price - entry_price) / entry_price * 100


def consensus_score(agreement_count: int, average_confidence: float, average_gain: float) -> float:
    return agreement_count * AGREEMENT_WEIGHT + average_confidence * CONFIDENCE_WEIGHT + average_gain * GAIN_WEIGHT


class ConsensusEngine:
    """Ranks symbols by how strongly the sources agree on them.

    Args:
        min_agreement: Distinct sources required for a symbol to be ranked.
        limit: Maximum number of entries returned by ``rank``.
    """

    def __init__(self, min_agreement: int = DEFAULT_MIN_AGREEMENT, limit: int = DEFAULT_LIMIT) -> None:
        self.min_agreement = min_agreement
        self.limit = limit

    def rank(self, picks: Iterable[Pick]) -> list[ConsensusEntry]:
        """Return the top consensus entries, strongest first."""
        groups: dict[str, list[Pick]] = defaultdict(list)
        for pick in picks:
            groups[pick.symbol.strip().upper()].append(pick)

        entries: list[ConsensusEntry] = []
        for symbol, group in groups.items():
            sources = frozenset(p.ai_name for p in group)
            if len(sources) < self.min_agreement:
                continue

            avg_conf = sum(p.confidence_score for p in group) / len(group)
            avg_gain = sum(potential_gain(p.entry_price, p.target_price) for p in group) / len(group)
            entries.append(
                ConsensusEntry(
                    symbol=symbol,
                    agreement_count=len(sources),
                    average_confidence=avg_conf,
                    average_potential_gain=avg_gain,
                    consensus_score=consensus_score(len(sources), avg_conf, avg_gain),
                    contributing_sources=sources,
                )
            )

        # Round before comparing so float noise cannot reorder equal scores
        entries.sort(key=lambda e: (-round(e.consensus_score, 9), e.symbol))
        ranked = entries[: self.limit]
        logger.debug("Consensus: %d symbols, %d with agreement, %d ranked", len(groups), len(entries), len(ranked))
        return ranked

    def performance_matrix(self, picks: Iterable[Pick], days: int = DEFAULT_MATRIX_DAYS) -> PerformanceMatrix:
        """Sum potential gain per (source, UTC day) over the most recent ``days`` days.

        Days are ISO dates in ascending order; sources are sorted by name.
        A source with no pick on a day reads 0.0 for that cell.
        """
        cells: dict[tuple[str, str], float] = defaultdict(float)
        all_days: set[str] = set()
        sources: set[str] = set()

        for pick in picks:
            picked_at = pick.picked_at
            if picked_at.tzinfo is not None:
                picked_at = picked_at.astimezone(timezone.utc)
            day = picked_at.date().isoformat()
            all_days.add(day)
            sources.add(pick.ai_name)
            cells[(pick.ai_name, day)] += potential_gain(pick.entry_price, pick.target_price)

        recent = tuple(sorted(all_days)[-days:]) if days > 0 else ()
        window = set(recent)
        return PerformanceMatrix(
            days=recent,
            sources=tuple(sorted(sources)),
            cells={key: value for key, value in cells.items() if key[1] in window},
        )

    def source_statistics(self, picks: Iterable[Pick]) -> list[SourceStats]:
        """Per-source pick counts and averages, sources sorted by name."""
        groups: dict[str, list[Pick]] = defaultdict(list)
        for pick in picks:
            groups[pick.ai_name].append(pick)

        return [
            SourceStats(
                ai_name=name,
                total_picks=len(group),
                top_picks=sum(1 for p in group if p.is_top_pick),
                average_confidence=sum(p.confidence_score for p in group) / len(group),
                average_potential_gain=sum(potential_gain(p.entry_price, p.target_price) for p in group) / len(group),
            )
            for name, group in sorted(groups.items())
        ]
