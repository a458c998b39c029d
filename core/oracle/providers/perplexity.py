"""Perplexity provider adapter (Sonar online models).

Perplexity exposes an OpenAI-compatible chat completions endpoint, so only
the configuration differs from the OpenAI adapter.
"""

from __future__ import annotations

from core.oracle.providers.openai import OpenAIPickProvider
from core.oracle.types import SourceConfig, SourceName

PERPLEXITY_CONFIG = SourceConfig(
    name=SourceName.PERPLEXITY,
    api_key_env="PERPLEXITY_API_KEY",
    base_url="https://api.perplexity.ai",
    model="llama-3.1-sonar-large-128k-online",
    max_tokens=2000,
    temperature=0.7,
    timeout_seconds=120,  # online models search before answering
)


class PerplexityPickProvider(OpenAIPickProvider):
    """Perplexity adapter; same wire format as OpenAI, different path prefix."""

    def __init__(self, config: SourceConfig | None = None, **kwargs) -> None:
        super().__init__(config or PERPLEXITY_CONFIG, **kwargs)

    def build_request(self, system_prompt: str, user_prompt: str):
        _, body = super().build_request(system_prompt, user_prompt)
        return "/chat/completions", body
