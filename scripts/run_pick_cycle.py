#!/usr/bin/env python3
"""Run one pick cycle from the command line.

Queries every opinion source, sends the surviving picks to the reviewer and
prints the consensus ranking.

Usage:
    python scripts/run_pick_cycle.py [--skip-review] [--no-store] [--json] [--timeout SECONDS]

Environment:
    OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, PERPLEXITY_API_KEY
    REVIEWER_API_URL, REVIEWER_API_KEY (or CRON_SECRET)
    PICK_CALL_TIMEOUT_SECONDS
    DATABASE_URL (optional; stores the cycle picks)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.oracle.config import load_settings  # noqa: E402
from core.oracle.orchestrator import PickOrchestrator  # noqa: E402
from core.oracle.pipeline import PickPipeline, PipelineReport  # noqa: E402
from core.oracle.providers import default_providers  # noqa: E402
from core.oracle.reviewer import ReviewAgentClient  # noqa: E402
from core.oracle.store import SqlPickStore  # noqa: E402
from db.session import create_session_factory  # noqa: E402

logger = logging.getLogger("run_pick_cycle")


def print_report(report: PipelineReport) -> None:
    summary = report.summary()
    print()
    print("Sources:")
    for r in summary["ai_results"]:
        if r["success"]:
            print(f"  {r['ai_name']:<12} {r['picks']:>3} picks ({r['top_picks']} top)  {r['latency_ms']:.0f}ms")
        else:
            print(f"  {r['ai_name']:<12} FAILED [{r['error_kind']}] {r['error']}")

    reviewer = summary["reviewer"]
    if report.review is not None:
        status = f"{reviewer['picks']} picks" if reviewer["success"] else f"FAILED {reviewer['error']}"
        print(f"  {reviewer['name']:<12} {status}")

    if summary["stored_picks"] is not None:
        print(f"  Stored {summary['stored_picks']} picks (cycle {summary['cycle_id']})")

    print()
    if not summary["consensus"]:
        print("No consensus picks found")
        return

    print(f"{'#':>3}  {'Symbol':<8} {'AIs':>3} {'Conf':>6} {'Gain%':>7} {'Score':>8}  Sources")
    for i, entry in enumerate(summary["consensus"], start=1):
        print(
            f"{i:>3}  {entry['symbol']:<8} {entry['agreement_count']:>3} "
            f"{entry['average_confidence']:>6.1f} {entry['average_potential_gain']:>7.1f} "
            f"{entry['consensus_score']:>8.1f}  {', '.join(entry['sources'])}"
        )


async def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    timeout = args.timeout if args.timeout is not None else settings.per_call_timeout

    reviewer = None
    if not args.skip_review:
        reviewer = ReviewAgentClient(base_url=settings.reviewer_api_url, api_key=settings.reviewer_api_key)

    session_factory = None
    if settings.database_url and not args.no_store:
        session_factory = create_session_factory(settings.database_url)

    pipeline = PickPipeline(
        orchestrator=PickOrchestrator(default_providers(), per_call_timeout=timeout),
        reviewer=reviewer,
        pick_store=SqlPickStore(session_factory) if session_factory else None,
    )
    try:
        report = await pipeline.run()
    finally:
        if session_factory is not None:
            await session_factory.kw["bind"].dispose()

    if args.json:
        print(json.dumps(report.summary(), indent=2))
    else:
        print_report(report)

    return 0 if report.success else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one multi-source pick cycle.")
    parser.add_argument("--skip-review", action="store_true", help="Do not call the reviewer")
    parser.add_argument("--json", action="store_true", help="Print the cycle summary as JSON")
    parser.add_argument("--no-store", action="store_true", help="Do not store picks even if DATABASE_URL is set")
    parser.add_argument("--timeout", type=float, default=None, help="Per-source deadline in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
