"""Shared test fixtures for pytest.

Provides sample picks, raw source responses and stub adapters used across
multiple test files.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from core.oracle.providers.base import PickProvider
from core.oracle.types import ErrorKind, Pick, ProviderResult

BASE_TIME = datetime(2025, 1, 6, 14, 30, tzinfo=timezone.utc)


def make_pick(
    symbol: str = "ABCD",
    ai_name: str = "GPT-4",
    entry: float = 2.0,
    target: float = 2.5,
    confidence: int = 80,
    rank: int = 1,
    is_top_pick: bool = False,
    picked_at: datetime | None = None,
) -> Pick:
    return Pick(
        symbol=symbol,
        entry_price=entry,
        target_price=target,
        stop_loss=entry * 0.9,
        confidence_score=confidence,
        reasoning=f"{symbol} has a catalyst this week",
        rank=rank,
        is_top_pick=is_top_pick,
        timeframe="7 days",
        ai_name=ai_name,
        picked_at=picked_at or BASE_TIME,
    )


@pytest.fixture
def sample_payload() -> dict:
    """A well-formed source answer with three picks."""
    return {
        "market_analysis": {"stocks_reviewed": 100, "market_sentiment": "Bullish"},
        "picks": [
            {
                "symbol": "abcd",
                "entry_price": 2.5,
                "target_price": 3.25,
                "stop_loss": 2.1,
                "confidence_score": 85,
                "reasoning": "Strong technical setup with upcoming catalyst",
                "timeframe": "7 days",
                "is_top_pick": True,
                "rank": 1,
                "sector": "Technology",
                "catalyst": "Earnings report",
            },
            {
                "symbol": "EFGH",
                "entry_price": 4.0,
                "target_price": 5.0,
                "stop_loss": 3.5,
                "confidence_score": 70,
                "reasoning": "Volume breakout above resistance",
                "timeframe": "7 days",
                "is_top_pick": False,
                "rank": 2,
            },
            {
                "symbol": "IJKL",
                "entry_price": 1.2,
                "target_price": 1.5,
                "confidence_score": 60,
                "reasoning": "FDA decision expected",
                "timeframe": "7 days",
            },
        ],
    }


@pytest.fixture
def sample_text(sample_payload: dict) -> str:
    return json.dumps(sample_payload)


@pytest.fixture
def recent_time() -> datetime:
    return BASE_TIME


class StubProvider(PickProvider):
    """Adapter stand-in that returns a canned result without any HTTP."""

    def __init__(self, name: str, result: ProviderResult | None = None, exc: Exception | None = None, delay: float = 0):
        self._stub_name = name
        self._result = result
        self._exc = exc
        self._delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self._stub_name

    def build_headers(self, api_key):
        return {}

    def build_request(self, system_prompt, user_prompt):
        return "/", {}

    def extract_text(self, data):
        return ""

    async def fetch_picks(self, today=None) -> ProviderResult:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._exc is not None:
            raise self._exc
        return self._result


def ok_result(name: str, count: int) -> ProviderResult:
    picks = tuple(make_pick(symbol=f"S{name[:1]}{i}", ai_name=name, rank=i + 1) for i in range(count))
    return ProviderResult(ai_name=name, success=True, picks=picks, latency_ms=10.0)


def failed_result(name: str, kind: ErrorKind = ErrorKind.NETWORK) -> ProviderResult:
    return ProviderResult.failure(name, f"{name} failed", kind)


def days_ago(n: int) -> datetime:
    return BASE_TIME - timedelta(days=n)


@pytest.fixture
def pick_factory():
    """Build Pick instances with sensible defaults."""
    return make_pick


@pytest.fixture
def stub_provider():
    """The StubProvider class, for tests that fan out without HTTP."""
    return StubProvider


@pytest.fixture
def ok_result_factory():
    return ok_result


@pytest.fixture
def failed_result_factory():
    return failed_result
