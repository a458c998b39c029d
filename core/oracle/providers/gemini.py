"""Google Gemini provider adapter (generateContent REST API)."""

from __future__ import annotations

from typing import Any

from core.oracle.providers.base import PickProvider
from core.oracle.types import SourceConfig, SourceName

GEMINI_CONFIG = SourceConfig(
    name=SourceName.GEMINI,
    api_key_env="GEMINI_API_KEY",
    base_url="https://generativelanguage.googleapis.com",
    model="gemini-pro",
    max_tokens=2000,
    temperature=0.7,
    timeout_seconds=90,
)


class GeminiPickProvider(PickProvider):
    """Gemini adapter. Auth travels in the ``x-goog-api-key`` header."""

    def __init__(self, config: SourceConfig | None = None, **kwargs) -> None:
        super().__init__(config or GEMINI_CONFIG, **kwargs)

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[str, dict[str, Any]]:
        return f"/v1beta/models/{self.config.model}:generateContent", {
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }

    def extract_text(self, data: dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        texts = [part.get("text", "") for part in parts]
        if not all(isinstance(text, str) for text in texts):
            raise TypeError("Candidate part text is not a string")
        return "".join(texts)
