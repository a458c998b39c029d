"""OpenAI provider adapter (GPT-4 Turbo)."""

from __future__ import annotations

from typing import Any

from core.oracle.providers.base import PickProvider
from core.oracle.types import SourceConfig, SourceName

OPENAI_CONFIG = SourceConfig(
    name=SourceName.GPT4,
    api_key_env="OPENAI_API_KEY",
    base_url="https://api.openai.com",
    model="gpt-4-turbo-preview",
    max_tokens=2000,
    temperature=0.7,
    timeout_seconds=90,
)


class OpenAIPickProvider(PickProvider):
    """OpenAI chat completions adapter."""

    def __init__(self, config: SourceConfig | None = None, **kwargs) -> None:
        super().__init__(config or OPENAI_CONFIG, **kwargs)

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[str, dict[str, Any]]:
        return "/v1/chat/completions", {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    def extract_text(self, data: dict[str, Any]) -> str:
        content = data["choices"][0]["message"]["content"]
        if content is None:
            return ""
        if not isinstance(content, str):
            raise TypeError(f"Message content is {type(content).__name__}, not text")
        return content
