"""Pick orchestrator — fans the pick instruction out to every opinion source.

All adapters run concurrently and the orchestrator waits until every one of
them has settled.  One slow or broken source never aborts the batch: it shows
up as a failed ``ProviderResult`` alongside the others.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Sequence

from core.oracle.providers.base import PickProvider
from core.oracle.types import UNKNOWN_SOURCE, AggregateBatch, ErrorKind, ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_PER_CALL_TIMEOUT = 120.0


class PickOrchestrator:
    """Concurrent, settle-all dispatcher over a fixed set of adapters.

    Usage::

        orchestrator = PickOrchestrator(default_providers())
        batch = await orchestrator.collect()
        if batch.success:
            picks = batch.all_picks()

    The orchestrator keeps no state between ``collect()`` calls, so a
    scheduled job and a manual trigger can share one instance.
    """

    def __init__(
        self,
        providers: Sequence[PickProvider],
        per_call_timeout: float | None = DEFAULT_PER_CALL_TIMEOUT,
    ) -> None:
        self.providers = tuple(providers)
        self.per_call_timeout = per_call_timeout

    async def collect(self, today: date | None = None) -> AggregateBatch:
        """Query every source and return their results in registration order."""
        if not self.providers:
            logger.warning("No opinion sources configured — returning empty batch")
            return AggregateBatch()

        logger.info("Collecting picks from %d sources...", len(self.providers))
        tasks = [self._call(provider, today) for provider in self.providers]
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[ProviderResult] = []
        for provider, outcome in zip(self.providers, settled):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                name = _provider_name(provider)
                logger.error("%s raised unexpectedly: %s", name, outcome)
                outcome = ProviderResult.failure(name, str(outcome) or type(outcome).__name__, ErrorKind.NETWORK)
            results.append(outcome)

        batch = AggregateBatch(results=tuple(results))
        logger.info(
            "Batch complete: %d/%d sources succeeded, %d picks",
            batch.successful_count,
            len(batch.results),
            batch.total_picks,
        )
        return batch

    async def _call(self, provider: PickProvider, today: date | None) -> ProviderResult:
        if self.per_call_timeout is None:
            return await provider.fetch_picks(today)
        try:
            return await asyncio.wait_for(provider.fetch_picks(today), timeout=self.per_call_timeout)
        except asyncio.TimeoutError:
            name = _provider_name(provider)
            logger.error("%s timed out after %.0fs", name, self.per_call_timeout)
            return ProviderResult.failure(
                name,
                f"timed out after {self.per_call_timeout:g}s",
                ErrorKind.NETWORK,
                latency_ms=self.per_call_timeout * 1000,
            )


def _provider_name(provider: object) -> str:
    try:
        name = provider.name  # type: ignore[attr-defined]
    except Exception:
        return UNKNOWN_SOURCE
    return str(name) if name else UNKNOWN_SOURCE
