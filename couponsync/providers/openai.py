"""OpenAI chat completions, used for generated brand and coupon copy."""

from __future__ import annotations

from typing import Any

from couponsync.errors import GenerationFailure
from couponsync.providers.base import ProviderClient

OPENAI_BASE_URL = "https://api.openai.com/v1/"


class OpenAIClient(ProviderClient):
    name = "openai"
    base_url = OPENAI_BASE_URL

    def is_configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    def authenticate(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.openai_api_key}"}

    def parse_response(self, payload: Any) -> Any:
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        return content

    async def generate_text(self, prompt: str, max_tokens: int = 150, temperature: float = 0.7) -> str:
        if not self.is_configured():
            raise self.credentials_missing("generate_text")
        body = {
            "model": self.settings.openai_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        content = await self.call("chat/completions", "POST", body)
        if not isinstance(content, str) or not content.strip():
            raise GenerationFailure("Completion returned no content", provider=self.name, endpoint="chat/completions")
        return content.strip()

    async def test_connection(self) -> bool:
        if not self.is_configured():
            self.credentials_missing("test_connection")
            return False
        return await self.ping("models")
