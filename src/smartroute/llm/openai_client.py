from __future__ import annotations

from typing import Any, Dict, List

from .base import LLMClient


class OpenAIClient(LLMClient):
    """Chat Completions over plain `requests`.

    Any OpenAI-compatible endpoint works by changing `base_url`;
    `DeepSeekClient` is this class pointed elsewhere.
    """

    REASONING_PREFIXES = ("o1", "o3", "o4")

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.7,
        timeout: float = 60,
    ):
        super().__init__(model=model, temperature=temperature, timeout=timeout)
        if not api_key:
            raise RuntimeError("Missing API key for OpenAI-compatible endpoint")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def is_reasoning_model(self) -> bool:
        return self.model.startswith(self.REASONING_PREFIXES)

    def chat(self, messages: List[Dict[str, Any]], temperature: float | None = None) -> str:
        if self.is_reasoning_model:
            # o-series accept neither a system role nor a non-default temperature
            messages = [m for m in messages if m.get("role") != "system"]
            temperature = 1.0

        data = self._post(
            f"{self.base_url}/chat/completions",
            {"model": self.model, "messages": messages, "temperature": self._temperature(temperature)},
            {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )
        choices = data.get("choices") or []
        if not choices:
            raise RuntimeError(f"{self.model} returned no choices")
        return ((choices[0].get("message") or {}).get("content") or "").strip()
