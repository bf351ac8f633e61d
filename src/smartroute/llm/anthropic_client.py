from __future__ import annotations

"""Claude over the Anthropic Messages REST API, without the SDK."""

from typing import Any, Dict, List, Tuple

from .base import LLMClient

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


def _split_system(messages: List[Dict[str, Any]]) -> Tuple[str, List[Dict[str, Any]]]:
    system = "\n".join(m["content"] for m in messages if m.get("role") == "system")
    return system, [m for m in messages if m.get("role") != "system"]


class AnthropicClient(LLMClient):
    def __init__(
        self,
        api_key: str | None,
        model: str,
        temperature: float = 0.7,
        timeout: float = 60,
        max_tokens: int = 1024,
    ):
        super().__init__(model=model, temperature=temperature, timeout=timeout)
        if not api_key:
            raise RuntimeError("Anthropic API key required")
        self.api_key = api_key
        self.max_tokens = max_tokens

    def chat(self, messages: List[Dict[str, Any]], temperature: float | None = None) -> str:
        system, turns = _split_system(messages)
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": turns,
            "max_tokens": self.max_tokens,
            "temperature": self._temperature(temperature),
        }
        if system:
            payload["system"] = system  # top-level field, not a message role

        data = self._post(
            ANTHROPIC_MESSAGES_URL,
            payload,
            {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION, "content-type": "application/json"},
        )
        blocks = data.get("content") or []
        if isinstance(blocks, list):
            return "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text").strip()
        return str(blocks).strip()
