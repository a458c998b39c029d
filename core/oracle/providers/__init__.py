"""Opinion-source adapters — abstract base and concrete sources."""

from __future__ import annotations

from .anthropic import AnthropicPickProvider
from .base import PickProvider, SourceError
from .gemini import GeminiPickProvider
from .openai import OpenAIPickProvider
from .perplexity import PerplexityPickProvider


def default_providers(**kwargs) -> list[PickProvider]:
    """The four first-stage sources, in registration order."""
    return [
        OpenAIPickProvider(**kwargs),
        AnthropicPickProvider(**kwargs),
        GeminiPickProvider(**kwargs),
        PerplexityPickProvider(**kwargs),
    ]


__all__ = [
    "AnthropicPickProvider",
    "GeminiPickProvider",
    "OpenAIPickProvider",
    "PerplexityPickProvider",
    "PickProvider",
    "SourceError",
    "default_providers",
]
