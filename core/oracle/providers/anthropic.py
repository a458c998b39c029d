"""Anthropic provider adapter (Claude messages API)."""

from __future__ import annotations

from typing import Any

from core.oracle.providers.base import PickProvider
from core.oracle.types import SourceConfig, SourceName

ANTHROPIC_CONFIG = SourceConfig(
    name=SourceName.CLAUDE,
    api_key_env="ANTHROPIC_API_KEY",
    base_url="https://api.anthropic.com",
    model="claude-3-5-sonnet-20241022",
    max_tokens=2000,
    temperature=0.7,
    timeout_seconds=90,
)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicPickProvider(PickProvider):
    """Anthropic messages adapter.

    The system prompt is not sent: the pick instruction already demands JSON,
    and Claude answers it as a single user turn.
    """

    def __init__(self, config: SourceConfig | None = None, **kwargs) -> None:
        super().__init__(config or ANTHROPIC_CONFIG, **kwargs)

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[str, dict[str, Any]]:
        return "/v1/messages", {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }

    def extract_text(self, data: dict[str, Any]) -> str:
        block = data["content"][0]
        if block.get("type") != "text":
            raise TypeError(f"Invalid content block type: {block.get('type')}")
        text = block["text"]
        if not isinstance(text, str):
            raise TypeError("Content block text is not a string")
        return text
