"""Reviewer client — second-stage analysis of the first-stage picks.

The reviewer is a remote agent that reads every competitor pick, cross
references them and answers with its own annotated picks.  Its failure is
never fatal: the first-stage batch stays usable on its own, so every error
path here returns a ``ReviewResult`` instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, fields
from datetime import date
from typing import Any

import httpx

from core.oracle.extraction import DEFAULT_STOP_LOSS_RATIO, parse_flag, validate_pick
from core.oracle.providers.base import classify_http_error
from core.oracle.types import (
    REVIEWER_SOURCE,
    AggregateBatch,
    CompetitorPick,
    ErrorKind,
    ReviewerAnalysis,
    ReviewerPick,
    ReviewRequest,
    ReviewResult,
)

logger = logging.getLogger(__name__)

DEFAULT_REVIEWER_URL = "https://crav-javari.vercel.app/api/javari"
ANALYSIS_PATH = "/stock-analysis"
HEALTH_TIMEOUT_SECONDS = 5.0


def default_market_data(today: date | None = None) -> dict[str, Any]:
    return {
        "date": (today or date.today()).isoformat(),
        "sentiment": "Analyzing",
        "key_trends": [],
    }


def format_competitor_picks(
    batch: AggregateBatch,
    market_context: dict[str, Any] | None = None,
    news_context: list[str] | None = None,
    manual_insights: str | None = None,
) -> ReviewRequest:
    """Flatten the successful results of ``batch`` into a reviewer request.

    Failed sources contribute nothing.  A pick without a usable stop loss is
    sent with one at 90% of its entry price.
    """
    competitor_picks: list[CompetitorPick] = []
    for result in batch.results:
        if not result.success:
            continue
        for pick in result.picks:
            stop_loss = pick.stop_loss if pick.stop_loss > 0 else pick.entry_price * DEFAULT_STOP_LOSS_RATIO
            competitor_picks.append(
                CompetitorPick(
                    ai_name=result.ai_name,
                    symbol=pick.symbol,
                    entry_price=pick.entry_price,
                    target_price=pick.target_price,
                    stop_loss=stop_loss,
                    confidence_score=pick.confidence_score,
                    reasoning=pick.reasoning,
                    sector=pick.sector,
                    catalyst=pick.catalyst,
                )
            )

    return ReviewRequest(
        competitor_picks=competitor_picks,
        market_data=market_context if market_context is not None else default_market_data(),
        news_context=news_context,
        manual_insights=manual_insights,
    )


def request_body(request: ReviewRequest) -> dict[str, Any]:
    """JSON body for ``POST /stock-analysis``; unset optional keys are omitted."""
    body = asdict(request)
    body["competitor_picks"] = [
        {k: v for k, v in pick.items() if v is not None} for pick in body["competitor_picks"]
    ]
    return {k: v for k, v in body.items() if v is not None}


class ReviewAgentClient:
    """HTTP client for the reviewer agent.

    Args:
        base_url: Reviewer API root; ``/stock-analysis`` is appended.
        api_key: Bearer token sent with analysis requests.
        timeout: Overall timeout for one analysis call, in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_REVIEWER_URL,
        api_key: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{ANALYSIS_PATH}"

    def _open_client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=self._transport)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self, batch_or_request: AggregateBatch | ReviewRequest) -> ReviewResult:
        """Send the competitor picks to the reviewer and normalize its answer."""
        if isinstance(batch_or_request, AggregateBatch):
            request = format_competitor_picks(batch_or_request)
        else:
            request = batch_or_request

        known_sources = {p.ai_name for p in request.competitor_picks}
        logger.info("Calling reviewer at %s with %d competitor picks", self.endpoint, len(request.competitor_picks))

        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        try:
            async with self._open_client(self.timeout) as client:
                resp = await client.post(self.endpoint, json=request_body(request), headers=headers)
        except httpx.TimeoutException as exc:
            logger.error("Reviewer timed out: %s", exc)
            return ReviewResult(success=False, error="Connection failed", message=f"timed out: {exc}",
                                error_kind=ErrorKind.NETWORK)
        except httpx.HTTPError as exc:
            logger.error("Failed to connect to reviewer: %s", exc)
            return ReviewResult(success=False, error="Connection failed", message=str(exc),
                                error_kind=ErrorKind.NETWORK)

        if not resp.is_success:
            body = resp.text
            logger.error("Reviewer HTTP %d: %s", resp.status_code, body[:200])
            return ReviewResult(
                success=False,
                error=f"Reviewer API returned {resp.status_code}",
                message=body,
                status_code=resp.status_code,
                error_kind=classify_http_error(resp.status_code, body).kind,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("Reviewer returned a non-JSON body: %s", exc)
            return ReviewResult(success=False, error="Malformed reviewer response", message=str(exc),
                                status_code=resp.status_code, error_kind=ErrorKind.MALFORMED_RESPONSE)

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            message = data.get("message") if isinstance(data, dict) else None
            logger.error("Reviewer analysis failed: %s", error or message)
            return ReviewResult(
                success=False,
                error=error or "Reviewer analysis failed",
                message=message,
                status_code=resp.status_code,
                error_kind=ErrorKind.MALFORMED_RESPONSE if not isinstance(data, dict) else None,
            )

        analysis = normalize_analysis(data, known_sources)
        if analysis is None:
            return ReviewResult(success=False, error="Malformed reviewer response",
                                message="missing 'javari_analysis' object", status_code=resp.status_code,
                                error_kind=ErrorKind.MALFORMED_RESPONSE)

        logger.info(
            "Reviewer responded: %d picks (%d top, %d contrarian)",
            len(analysis.picks),
            sum(1 for p in analysis.picks if p.is_top_pick),
            analysis.contrarian_count,
        )
        return ReviewResult(success=True, analysis=analysis, status_code=resp.status_code)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Probe ``GET /stock-analysis``; False on error or after 5 seconds."""
        try:
            async with self._open_client(HEALTH_TIMEOUT_SECONDS) as client:
                resp = await asyncio.wait_for(client.get(self.endpoint), timeout=HEALTH_TIMEOUT_SECONDS)
        except (asyncio.TimeoutError, httpx.HTTPError) as exc:
            logger.warning("Reviewer health probe failed: %s", str(exc) or type(exc).__name__)
            return False
        return resp.is_success


# ---------------------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------------------


def _canonical_sources(raw: Any, known_sources: set[str]) -> frozenset[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    lookup = {name.lower(): name for name in known_sources}
    kept: set[str] = set()
    for item in raw:
        name = lookup.get(str(item).strip().lower())
        if name is None:
            logger.warning("Reviewer cited unknown source %r; ignoring", item)
            continue
        kept.add(name)
    return frozenset(kept)


def normalize_reviewer_pick(item: Any, position: int, known_sources: set[str]) -> ReviewerPick | None:
    base = validate_pick(item, position, REVIEWER_SOURCE)
    if base is None:
        return None
    return ReviewerPick(
        **{f.name: getattr(base, f.name) for f in fields(base)},
        learned_from=_canonical_sources(item.get("learned_from"), known_sources),
        contrarian_bet=parse_flag(item.get("contrarian_bet")) is True,
    )


def normalize_analysis(data: dict[str, Any], known_sources: set[str]) -> ReviewerAnalysis | None:
    """Turn a successful reviewer body into a ``ReviewerAnalysis``.

    ``learned_from`` on every pick is restricted to ``known_sources``; picks
    failing the usual pick validation are dropped.
    """
    raw = data.get("javari_analysis")
    if not isinstance(raw, dict):
        return None

    raw_picks = raw.get("picks") if isinstance(raw.get("picks"), list) else []
    picks: list[ReviewerPick] = []
    for position, item in enumerate(raw_picks):
        pick = normalize_reviewer_pick(item, position, known_sources)
        if pick is None:
            continue
        picks.append(pick)
    if len(picks) < len(raw_picks):
        logger.warning("Reviewer: dropped %d of %d invalid picks", len(raw_picks) - len(picks), len(raw_picks))

    def _section(key: str) -> dict[str, Any]:
        value = raw.get(key)
        return value if isinstance(value, dict) else {}

    metadata = data.get("metadata")
    return ReviewerAnalysis(
        competitor_review=_section("competitor_review"),
        market_research=_section("market_research"),
        reviewer_reasoning=_section("javari_reasoning"),
        picks=tuple(picks),
        metadata=metadata if isinstance(metadata, dict) else {},
    )
