"""Tests for the concurrent pick orchestrator."""

from __future__ import annotations

import asyncio
import time

import pytest

from core.oracle.orchestrator import PickOrchestrator
from core.oracle.types import AggregateBatch, ErrorKind, ProviderResult


@pytest.mark.asyncio
async def test_counts_for_k_of_n_succeeding(stub_provider, ok_result_factory, failed_result_factory):
    """successful_count and total_picks only reflect surviving sources."""
    providers = [
        stub_provider("GPT-4", ok_result_factory("GPT-4", 5)),
        stub_provider("Claude", failed_result_factory("Claude", ErrorKind.AUTH)),
        stub_provider("Gemini", ok_result_factory("Gemini", 7)),
        stub_provider("Perplexity", exc=RuntimeError("socket closed")),
    ]

    batch = await PickOrchestrator(providers).collect()

    assert batch.successful_count == 2
    assert batch.total_picks == 12
    assert batch.success


@pytest.mark.asyncio
async def test_counts_independent_of_failure_order(stub_provider, ok_result_factory, failed_result_factory):
    first = [
        stub_provider("A", failed_result_factory("A")),
        stub_provider("B", ok_result_factory("B", 3)),
        stub_provider("C", ok_result_factory("C", 4)),
    ]
    second = [
        stub_provider("B", ok_result_factory("B", 3)),
        stub_provider("C", ok_result_factory("C", 4)),
        stub_provider("A", failed_result_factory("A")),
    ]

    one = await PickOrchestrator(first).collect()
    two = await PickOrchestrator(second).collect()

    assert (one.successful_count, one.total_picks) == (two.successful_count, two.total_picks) == (2, 7)


@pytest.mark.asyncio
async def test_results_in_registration_order(stub_provider, ok_result_factory):
    providers = [
        stub_provider("Slow", ok_result_factory("Slow", 1), delay=0.05),
        stub_provider("Fast", ok_result_factory("Fast", 1)),
    ]

    batch = await PickOrchestrator(providers).collect()

    assert [r.ai_name for r in batch.results] == ["Slow", "Fast"]


@pytest.mark.asyncio
async def test_adapters_run_concurrently(stub_provider, ok_result_factory):
    providers = [stub_provider(f"S{i}", ok_result_factory(f"S{i}", 1), delay=0.2) for i in range(4)]

    start = time.monotonic()
    await PickOrchestrator(providers).collect()
    elapsed = time.monotonic() - start

    assert elapsed < 0.6


@pytest.mark.asyncio
async def test_slow_adapter_hits_deadline(stub_provider, ok_result_factory):
    providers = [
        stub_provider("Hung", ok_result_factory("Hung", 2), delay=5),
        stub_provider("Quick", ok_result_factory("Quick", 2)),
    ]

    batch = await PickOrchestrator(providers, per_call_timeout=0.05).collect()

    hung, quick = batch.results
    assert not hung.success
    assert hung.error_kind == ErrorKind.NETWORK
    assert "timed out" in hung.error
    assert hung.picks == ()
    assert quick.success
    assert batch.total_picks == 2


@pytest.mark.asyncio
async def test_escaping_exception_named_after_adapter(stub_provider):
    batch = await PickOrchestrator([stub_provider("Gemini", exc=ValueError("bad state"))]).collect()

    result = batch.results[0]
    assert result.ai_name == "Gemini"
    assert not result.success
    assert "bad state" in result.error


@pytest.mark.asyncio
async def test_unknown_name_when_adapter_has_none(stub_provider):
    class Nameless(stub_provider):
        @property
        def name(self):
            raise AttributeError("no name")

    batch = await PickOrchestrator([Nameless("ignored", exc=RuntimeError("x"))]).collect()

    assert batch.results[0].ai_name == "Unknown"


@pytest.mark.asyncio
async def test_no_providers_returns_empty_batch():
    batch = await PickOrchestrator([]).collect()

    assert batch == AggregateBatch()
    assert batch.successful_count == 0
    assert batch.total_picks == 0
    assert not batch.success


@pytest.mark.asyncio
async def test_concurrent_collects_do_not_share_state(stub_provider, ok_result_factory):
    orchestrator = PickOrchestrator(
        [stub_provider("A", ok_result_factory("A", 2), delay=0.01), stub_provider("B", ok_result_factory("B", 3))]
    )

    one, two = await asyncio.gather(orchestrator.collect(), orchestrator.collect())

    assert one.total_picks == two.total_picks == 5
    assert one.results is not two.results


def test_failed_result_cannot_carry_picks(pick_factory):
    with pytest.raises(ValueError):
        ProviderResult(ai_name="X", success=False, picks=(pick_factory(),))


def test_failure_without_name_uses_unknown():
    assert ProviderResult.failure(None, "err", ErrorKind.NETWORK).ai_name == "Unknown"
