"""Unit tests for opinion-source adapters.

Tests error classification, retry logic, vendor envelopes and the
never-raise contract of ``fetch_picks`` with mocked HTTP.
"""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from core.oracle.providers import default_providers
from core.oracle.providers.anthropic import AnthropicPickProvider
from core.oracle.providers.base import (
    AuthError,
    NetworkError,
    RateLimitedError,
    RequestRejectedError,
    calculate_backoff_delay,
    classify_http_error,
)
from core.oracle.providers.gemini import GeminiPickProvider
from core.oracle.providers.openai import OpenAIPickProvider
from core.oracle.providers.perplexity import PerplexityPickProvider
from core.oracle.types import ErrorKind


def _openai_envelope(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _mock_transport(handler):
    return httpx.MockTransport(handler)


@pytest.fixture
def no_sleep():
    """Skip real backoff delays."""
    with patch("core.oracle.providers.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


# ---------------------------------------------------------------------------
# Error Classification Tests
# ---------------------------------------------------------------------------


def test_classify_http_error_auth():
    for status in (401, 403):
        error = classify_http_error(status, "Bad API key")
        assert isinstance(error, AuthError)
        assert error.kind == ErrorKind.AUTH
        assert not error.is_transient


def test_classify_http_error_rate_limited():
    error = classify_http_error(429, "Slow down")
    assert isinstance(error, RateLimitedError)
    assert error.kind == ErrorKind.RATE_LIMITED
    assert error.is_transient


def test_classify_http_error_server_errors_are_transient():
    error = classify_http_error(503, "Service down")
    assert isinstance(error, NetworkError)
    assert error.is_transient
    assert error.status_code == 503


def test_classify_http_error_other_4xx_permanent():
    error = classify_http_error(400, "Invalid request")
    assert isinstance(error, RequestRejectedError)
    assert not error.is_transient


def test_backoff_delay_is_capped():
    assert calculate_backoff_delay(0, 1.0, 10.0, jitter=False) == 1.0
    assert calculate_backoff_delay(2, 1.0, 10.0, jitter=False) == 4.0
    assert calculate_backoff_delay(10, 1.0, 10.0, jitter=False) == 10.0


# ---------------------------------------------------------------------------
# fetch_picks contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_openai_fetch_picks_success(sample_text):
    """Test a successful OpenAI call through the mocked request layer."""
    provider = OpenAIPickProvider(api_key="sk-test")

    with patch.object(provider, "_make_request", new_callable=AsyncMock) as mock_req:
        mock_req.return_value = _openai_envelope(sample_text)
        result = await provider.fetch_picks()

    assert result.success
    assert result.ai_name == "GPT-4"
    assert len(result.picks) == 3
    assert result.top_pick_count == 1
    assert all(p.ai_name == "GPT-4" for p in result.picks)
    assert result.error is None

    method, path = mock_req.call_args.args[1:3]
    assert (method, path) == ("POST", "/v1/chat/completions")
    body = mock_req.call_args.kwargs["json"]
    assert body["model"] == "gpt-4-turbo-preview"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 2000


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_network(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = OpenAIPickProvider()

    with patch.object(provider, "_make_request", new_callable=AsyncMock) as mock_req:
        result = await provider.fetch_picks()

    assert not result.success
    assert result.error_kind == ErrorKind.AUTH
    assert "OPENAI_API_KEY" in result.error
    mock_req.assert_not_called()


def test_api_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    assert GeminiPickProvider().api_key == "from-env"


@pytest.mark.asyncio
async def test_malformed_text_becomes_failure():
    provider = OpenAIPickProvider(api_key="sk-test")

    with patch.object(provider, "_make_request", new_callable=AsyncMock) as mock_req:
        mock_req.return_value = _openai_envelope("Sorry, I can't pick stocks today.")
        result = await provider.fetch_picks()

    assert not result.success
    assert result.picks == ()
    assert result.error_kind == ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_unexpected_envelope_becomes_failure():
    provider = OpenAIPickProvider(api_key="sk-test")

    with patch.object(provider, "_make_request", new_callable=AsyncMock) as mock_req:
        mock_req.return_value = {"choices": []}
        result = await provider.fetch_picks()

    assert not result.success
    assert result.error_kind == ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_unexpected_exception_never_propagates():
    provider = OpenAIPickProvider(api_key="sk-test")

    with patch.object(provider, "_make_request", side_effect=RuntimeError("boom")):
        result = await provider.fetch_picks()

    assert not result.success
    assert result.error_kind == ErrorKind.NETWORK
    assert "boom" in result.error


@pytest.mark.asyncio
async def test_permanent_error_no_retry(no_sleep):
    """401 is reported as AuthError after a single attempt."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    provider = OpenAIPickProvider(api_key="sk-bad", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert calls == 1
    assert not result.success
    assert result.error_kind == ErrorKind.AUTH
    assert "401" in result.error
    no_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_transient_error_retry(no_sleep, sample_text):
    """Two 503s then success: three attempts, picks returned."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(503, text="Service Unavailable")
        return httpx.Response(200, json=_openai_envelope(sample_text))

    provider = OpenAIPickProvider(api_key="sk-test", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert calls == 3
    assert result.success
    assert len(result.picks) == 3
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries(no_sleep):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429, text="Too Many Requests")

    provider = OpenAIPickProvider(api_key="sk-test", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert calls == 3
    assert result.error_kind == ErrorKind.RATE_LIMITED


@pytest.mark.asyncio
async def test_transport_error_is_network_failure(no_sleep):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = AnthropicPickProvider(api_key="sk-ant", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert not result.success
    assert result.ai_name == "Claude"
    assert result.error_kind == ErrorKind.NETWORK


@pytest.mark.asyncio
async def test_non_json_body_is_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    provider = OpenAIPickProvider(api_key="sk-test", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert result.error_kind == ErrorKind.MALFORMED_RESPONSE


# ---------------------------------------------------------------------------
# Vendor envelopes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_anthropic_request_and_envelope(sample_text):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": sample_text}]})

    provider = AnthropicPickProvider(api_key="sk-ant", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert result.success
    assert len(result.picks) == 3
    assert seen["path"] == "/v1/messages"
    assert seen["headers"]["x-api-key"] == "sk-ant"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["model"] == "claude-3-5-sonnet-20241022"
    assert seen["body"]["messages"][0]["role"] == "user"


@pytest.mark.asyncio
async def test_gemini_request_and_envelope(sample_text):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": f"```json\n{sample_text}\n```"}]}}]},
        )

    provider = GeminiPickProvider(api_key="g-key", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert result.success
    assert result.ai_name == "Gemini"
    assert seen["path"] == "/v1beta/models/gemini-pro:generateContent"
    assert seen["headers"]["x-goog-api-key"] == "g-key"


@pytest.mark.asyncio
async def test_perplexity_request_and_envelope(sample_text):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_openai_envelope(sample_text))

    provider = PerplexityPickProvider(api_key="pplx", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert result.success
    assert result.ai_name == "Perplexity"
    assert seen["url"] == "https://api.perplexity.ai/chat/completions"
    assert seen["auth"] == "Bearer pplx"
    assert seen["body"]["model"] == "llama-3.1-sonar-large-128k-online"


def test_default_providers_registration_order():
    names = [p.name for p in default_providers(api_key="k")]
    assert names == ["GPT-4", "Claude", "Gemini", "Perplexity"]


# ---------------------------------------------------------------------------
# Malformed envelopes and log lines
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider_cls, body",
    [
        (GeminiPickProvider, {"candidates": [{"content": {"parts": ["just text"]}}]}),
        (GeminiPickProvider, {"candidates": [{"content": {"parts": [{"text": ["a", "b"]}]}}]}),
        (AnthropicPickProvider, {"content": ["just text"]}),
        (AnthropicPickProvider, {"content": [{"type": "text", "text": {"picks": []}}]}),
        (OpenAIPickProvider, {"choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]}),
        (PerplexityPickProvider, {"choices": ["just text"]}),
    ],
)
async def test_malformed_envelope_never_raises(provider_cls, body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    provider = provider_cls(api_key="k", transport=_mock_transport(handler))
    result = await provider.fetch_picks()

    assert not result.success
    assert result.picks == ()
    assert result.error_kind == ErrorKind.MALFORMED_RESPONSE
    assert "Unexpected response envelope" in result.error


@pytest.mark.asyncio
async def test_success_is_logged(sample_text, caplog):
    provider = OpenAIPickProvider(api_key="sk-test")

    with patch.object(provider, "_make_request", new_callable=AsyncMock) as mock_req:
        mock_req.return_value = _openai_envelope(sample_text)
        with caplog.at_level(logging.INFO, logger="core.oracle.providers.base"):
            await provider.fetch_picks()

    messages = [r.getMessage() for r in caplog.records]
    assert "Calling GPT-4 (gpt-4-turbo-preview)..." in messages
    assert any(m.startswith("GPT-4: 3 picks (1 top) in ") for m in messages)


@pytest.mark.asyncio
async def test_failure_is_logged(no_sleep, caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Invalid API key")

    provider = GeminiPickProvider(api_key="bad", transport=_mock_transport(handler))
    with caplog.at_level(logging.INFO, logger="core.oracle.providers.base"):
        await provider.fetch_picks()

    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any(m.startswith("Gemini request failed (AuthError): ") for m in errors)
    assert not any("picks (" in r.getMessage() for r in caplog.records)
