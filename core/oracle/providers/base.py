"""Base opinion-source adapter, error classification and retry helpers."""

from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable

import httpx

from core.oracle.extraction import extract_picks
from core.oracle.prompts import SYSTEM_PROMPT, build_pick_prompt
from core.oracle.types import ErrorKind, ProviderResult, SourceConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error Classification
# ---------------------------------------------------------------------------


class SourceError(Exception):
    """Base exception for failures talking to an opinion source or the reviewer."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str, is_transient: bool = False, status_code: int | None = None):
        super().__init__(message)
        self.is_transient = is_transient
        self.status_code = status_code


class NetworkError(SourceError):
    """Transport failure, timeout or 5xx (retry-able)."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, is_transient=True, status_code=status_code)


class RateLimitedError(SourceError):
    """Source-side throttling (retry-able)."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, status_code: int | None = 429):
        super().__init__(message, is_transient=True, status_code=status_code)


class AuthError(SourceError):
    """Credential missing or rejected (not retry-able)."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, is_transient=False, status_code=status_code)


class RequestRejectedError(SourceError):
    """Any other 4xx (not retry-able)."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, is_transient=False, status_code=status_code)


class MalformedBodyError(SourceError):
    """2xx response whose body is not JSON (not retry-able)."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, is_transient=False, status_code=status_code)


def classify_http_error(status_code: int, message: str) -> SourceError:
    """Map an HTTP status code onto the source error taxonomy.

    Args:
        status_code: HTTP status code
        message: Error message

    Returns:
        Appropriate SourceError subclass
    """
    if status_code in {401, 403}:
        return AuthError(message, status_code)
    if status_code == 429:
        return RateLimitedError(message, status_code)
    if 500 <= status_code < 600:
        return NetworkError(message, status_code)
    if 400 <= status_code < 500:
        return RequestRejectedError(message, status_code)
    # Unknown - treat as transient
    return NetworkError(message, status_code)


# ---------------------------------------------------------------------------
# Retry Logic
# ---------------------------------------------------------------------------


def calculate_backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool = True) -> float:
    """Exponential backoff delay for ``attempt`` (zero-based), optionally jittered."""
    delay = min(base_delay * (2**attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def with_retry(
    max_retries: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter: bool = True,
) -> Callable:
    """Decorator for exponential backoff with jitter on transient SourceErrors.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Whether to add random jitter to delays

    Returns:
        Decorated async function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        async def wrapper(*args, **kwargs) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except SourceError as e:
                    if not e.is_transient:
                        logger.error("Permanent error in %s: %s. Not retrying.", func.__name__, e)
                        raise
                    if attempt >= max_retries:
                        logger.error("Max retries (%d) exceeded for %s: %s", max_retries, func.__name__, e)
                        raise

                    delay = calculate_backoff_delay(attempt, base_delay, max_delay, jitter)
                    logger.warning(
                        "Transient error in %s (attempt %d/%d): %s. Retrying in %.2fs",
                        func.__name__,
                        attempt + 1,
                        max_retries + 1,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("Retry logic error")

        wrapper.__name__ = func.__name__
        return wrapper

    return decorator


async def send_request(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> Any:
    """Issue one HTTP request and return the decoded JSON body.

    Raises:
        SourceError: classified by status code or transport failure.
    """
    try:
        resp = await client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as e:
        raise classify_http_error(
            e.response.status_code,
            f"{method} {url} returned {e.response.status_code}: {e.response.text[:200]}",
        ) from e
    except httpx.TimeoutException as e:
        raise NetworkError(f"{method} {url} timed out: {e}") from e
    except httpx.TransportError as e:
        raise NetworkError(f"{method} {url} network error: {e}") from e
    except ValueError as e:
        raise MalformedBodyError(f"{method} {url} returned a non-JSON body: {e}") from e


# ---------------------------------------------------------------------------
# Adapter interface
# ---------------------------------------------------------------------------


class PickProvider(ABC):
    """Abstract base class for all opinion-source adapters.

    Each source (OpenAI, Anthropic, Gemini, Perplexity) implements the
    vendor-specific request body and response envelope.  ``fetch_picks()``
    handles auth, transport, retries and extraction, and turns every failure
    into a ``ProviderResult`` instead of raising.
    """

    def __init__(
        self,
        config: SourceConfig,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._api_key = api_key
        self._transport = transport

    @property
    def name(self) -> str:
        return self.config.name.value

    @property
    def api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key
        return os.environ.get(self.config.api_key_env, "")

    # ------------------------------------------------------------------
    # Vendor-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_headers(self, api_key: str) -> dict[str, str]:
        """Auth and content headers for the vendor API."""

    @abstractmethod
    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[str, dict[str, Any]]:
        """Return ``(path, json_body)`` for one completion call."""

    @abstractmethod
    def extract_text(self, data: dict[str, Any]) -> str:
        """Pull the generated text out of the vendor's response envelope."""

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _open_client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.build_headers(api_key),
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )

    @with_retry(max_retries=2, base_delay=1.0, max_delay=10.0, jitter=True)
    async def _make_request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
        """Make HTTP request with retry on transient errors."""
        return await send_request(client, method, url, **kwargs)

    # ------------------------------------------------------------------
    # Uniform capability
    # ------------------------------------------------------------------

    async def fetch_picks(self, today: date | None = None) -> ProviderResult:
        """Ask this source for picks and normalize the answer.

        Never raises; failures come back as ``success=False`` results.
        """
        start = self._start_timer()
        api_key = self.api_key
        if not api_key:
            logger.error("%s skipped: %s not configured", self.name, self.config.api_key_env)
            return ProviderResult.failure(self.name, f"{self.config.api_key_env} not configured", ErrorKind.AUTH)

        logger.info("Calling %s (%s)...", self.name, self.config.model)
        path, body = self.build_request(SYSTEM_PROMPT, build_pick_prompt(today))

        try:
            async with self._open_client(api_key) as client:
                data = await self._make_request(client, "POST", path, json=body)
        except SourceError as exc:
            latency = self._elapsed_ms(start)
            logger.error("%s request failed (%s): %s", self.name, exc.kind.value, exc)
            return ProviderResult.failure(self.name, str(exc), exc.kind, latency)
        except Exception as exc:
            latency = self._elapsed_ms(start)
            logger.error("%s request failed unexpectedly: %s", self.name, exc)
            return ProviderResult.failure(self.name, str(exc), ErrorKind.NETWORK, latency)

        latency = self._elapsed_ms(start)
        try:
            raw_text = self.extract_text(data)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            logger.error("%s returned an unexpected envelope: %r", self.name, exc)
            return ProviderResult.failure(
                self.name, f"Unexpected response envelope: {exc!r}", ErrorKind.MALFORMED_RESPONSE, latency
            )

        extraction = extract_picks(raw_text, ai_name=self.name)
        if not extraction.ok:
            logger.error("%s response unusable: %s", self.name, extraction.message)
            return ProviderResult(
                ai_name=self.name,
                success=False,
                error=extraction.message,
                error_kind=extraction.error_kind,
                latency_ms=latency,
                dropped_picks=extraction.dropped,
            )

        result = ProviderResult(
            ai_name=self.name,
            success=True,
            picks=extraction.picks,
            latency_ms=latency,
            dropped_picks=extraction.dropped,
        )
        logger.info("%s: %d picks (%d top) in %.0fms", self.name, len(result.picks), result.top_pick_count, latency)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_timer(self) -> float:
        return time.monotonic()

    def _elapsed_ms(self, start: float) -> float:
        return round((time.monotonic() - start) * 1000, 2)
