"""Tests for the /picks API endpoints."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from core.oracle.config import OracleSettings
from core.oracle.orchestrator import PickOrchestrator
from core.oracle.pipeline import PickPipeline
from core.oracle.store import InMemoryPickStore
from core.oracle.tracker import PredictionTracker
from core.oracle.types import ErrorKind, ProviderResult, ReviewSnapshot, utc_now

SECRET = "cron-s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


def _client(pipeline: PickPipeline | None = None, pick_store: InMemoryPickStore | None = None) -> TestClient:
    app = create_app(
        tracker=PredictionTracker(),
        pipeline=pipeline,
        settings=OracleSettings(cron_secret=SECRET),
        pick_store=pick_store,
    )
    return TestClient(app)


@pytest.fixture
def pick_store():
    return InMemoryPickStore()


@pytest.fixture
def working_pipeline(stub_provider, pick_factory, pick_store):
    def result(name, symbols):
        picks = tuple(
            pick_factory(s, name, rank=i + 1, is_top_pick=i == 0) for i, s in enumerate(symbols)
        )
        return ProviderResult(ai_name=name, success=True, picks=picks)

    providers = [
        stub_provider("GPT-4", result("GPT-4", ["ABCD", "EFGH"])),
        stub_provider("Claude", result("Claude", ["ABCD"])),
    ]
    return PickPipeline(PickOrchestrator(providers), pick_store=pick_store)


@pytest.fixture
def failing_pipeline(stub_provider, failed_result_factory):
    providers = [
        stub_provider("GPT-4", failed_result_factory("GPT-4", ErrorKind.AUTH)),
        stub_provider("Claude", exc=RuntimeError("down")),
    ]
    return PickPipeline(PickOrchestrator(providers))


def test_generate_requires_bearer_secret(working_pipeline):
    client = _client(working_pipeline)

    assert client.post("/picks/generate").status_code == 401
    response = client.post("/picks/generate", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_generate_rejects_all_when_secret_unset(working_pipeline):
    app = create_app(tracker=PredictionTracker(), pipeline=working_pipeline, settings=OracleSettings())
    response = TestClient(app).post("/picks/generate", headers={"Authorization": "Bearer "})

    assert response.status_code == 401


def test_generate_success(working_pipeline):
    response = _client(working_pipeline).post("/picks/generate", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["successful_ais"] == 2
    assert data["total_picks"] == 3
    assert data["top_picks"] == 2
    assert data["portfolio_picks"] == 1
    assert [r["ai_name"] for r in data["ai_results"]] == ["GPT-4", "Claude"]
    assert [c["symbol"] for c in data["consensus"]] == ["ABCD"]
    assert data["consensus"][0]["sources"] == ["Claude", "GPT-4"]


def test_generate_all_sources_failed(failing_pipeline):
    response = _client(failing_pipeline).post("/picks/generate", headers=AUTH)

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "All AIs failed to generate picks"
    kinds = {r["ai_name"]: r["error_kind"] for r in data["ai_results"]}
    assert kinds == {"GPT-4": "AuthError", "Claude": "NetworkError"}


def test_describe_service(working_pipeline):
    response = _client(working_pipeline).get("/picks/generate")

    assert response.status_code == 200
    data = response.json()
    assert data["sources"] == ["GPT-4", "Claude", "Gemini", "Perplexity"]
    assert data["reviewer"] == "Javari AI"


# ---------------------------------------------------------------------------
# Stored pick universe
# ---------------------------------------------------------------------------


def _seed(store: InMemoryPickStore, cycle_id: str, picks) -> None:
    asyncio.run(store.add_picks(cycle_id, list(picks)))


def test_generate_stores_cycle_and_consensus_reads_it(working_pipeline, pick_store):
    client = _client(working_pipeline, pick_store)

    data = client.post("/picks/generate", headers=AUTH).json()
    assert data["stored_picks"] == 3
    assert data["cycle_id"]

    response = client.get("/picks/consensus")
    assert response.status_code == 200
    consensus = response.json()
    assert consensus["total_picks"] == 3
    assert [c["symbol"] for c in consensus["consensus"]] == ["ABCD"]
    assert consensus["consensus"][0]["sources"] == ["Claude", "GPT-4"]


def test_consensus_across_cycles_with_window(pick_store, pick_factory):
    now = utc_now()
    month_ago = now - timedelta(days=30)
    for cycle, (fresh, stale) in {"c1": ("GPT-4", "GPT-4"), "c2": ("Gemini", "Claude")}.items():
        picks = [pick_factory("AAA", fresh, picked_at=now), pick_factory("OLD", stale, picked_at=month_ago)]
        _seed(pick_store, cycle, picks)
    client = _client(pick_store=pick_store)

    everything = client.get("/picks/consensus").json()
    recent = client.get("/picks/consensus", params={"days": 7}).json()
    strict = client.get("/picks/consensus", params={"min_agreement": 3}).json()

    assert sorted(c["symbol"] for c in everything["consensus"]) == ["AAA", "OLD"]
    assert recent["total_picks"] == 2
    assert [c["symbol"] for c in recent["consensus"]] == ["AAA"]
    assert strict["consensus"] == []


def test_performance_matrix_over_stored_picks(pick_store, pick_factory):
    now = utc_now()
    yesterday = now - timedelta(days=1)
    _seed(
        pick_store,
        "c1",
        [
            pick_factory("AAA", "GPT-4", entry=2.0, target=2.5, picked_at=yesterday),
            pick_factory("BBB", "GPT-4", entry=2.0, target=3.0, picked_at=now),
            pick_factory("CCC", "Claude", entry=4.0, target=5.0, picked_at=now),
        ],
    )

    data = _client(pick_store=pick_store).get("/picks/performance").json()

    day1, day2 = yesterday.date().isoformat(), now.date().isoformat()
    assert data["days"] == [day1, day2]
    assert data["sources"] == ["Claude", "GPT-4"]
    assert data["rows"] == [
        {"ai": "Claude", "dates": [{"date": day1, "value": 0.0}, {"date": day2, "value": 25.0}]},
        {"ai": "GPT-4", "dates": [{"date": day1, "value": 25.0}, {"date": day2, "value": 50.0}]},
    ]


def test_source_stats_over_stored_picks(pick_store, pick_factory):
    _seed(
        pick_store,
        "c1",
        [pick_factory("AAA", "GPT-4", is_top_pick=True), pick_factory("BBB", "GPT-4"), pick_factory("AAA", "Claude")],
    )

    data = _client(pick_store=pick_store).get("/picks/sources").json()

    assert [(s["ai_name"], s["total_picks"], s["top_picks"]) for s in data["sources"]] == [
        ("Claude", 1, 0),
        ("GPT-4", 2, 1),
    ]


def test_latest_review(pick_store):
    client = _client(pick_store=pick_store)
    assert client.get("/picks/review/latest").status_code == 404

    asyncio.run(
        pick_store.add_review(
            ReviewSnapshot(
                cycle_id="c1",
                competitor_review={"consensus_patterns": ["AAA"]},
                market_research={"market_sentiment": "Neutral"},
                reviewer_reasoning={"why_these_picks": "Overlap"},
            )
        )
    )

    data = client.get("/picks/review/latest").json()
    assert data["cycle_id"] == "c1"
    assert data["javari_reasoning"] == {"why_these_picks": "Overlap"}


def test_failed_cycle_is_not_stored(failing_pipeline, pick_store):
    failing_pipeline.pick_store = pick_store
    client = _client(failing_pipeline, pick_store)

    assert client.post("/picks/generate", headers=AUTH).status_code == 500
    assert client.get("/picks/consensus").json()["total_picks"] == 0
