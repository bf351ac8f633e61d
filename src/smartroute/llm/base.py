from __future__ import annotations

"""Common interface for all LLM provider adapters.

Each concrete client implements a synchronous `chat` method that accepts a
list of messages (OpenAI-style: {"role": "user"|"assistant"|"system", "content": str})
and returns a string response. The router only needs `invoke`, which sends
one already-assembled prompt.

Providers signal an exhausted allowance with HTTP 429 or an
`insufficient_quota` error body; both surface as `QuotaExceededError` so the
dispatcher can tell them apart from ordinary failures.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any

import requests

QUOTA_MARKERS = ("429", "quota", "insufficient_quota")


class QuotaExceededError(RuntimeError):
    """The provider refused the call because the caller's quota is used up."""


def raise_for_quota(resp: requests.Response) -> None:
    """Raise QuotaExceededError for quota failures, HTTPError for the rest."""
    if resp.status_code == 429 or (
        resp.status_code >= 400 and "insufficient_quota" in (resp.text or "")
    ):
        raise QuotaExceededError(f"{resp.status_code} quota exceeded: {(resp.text or '')[:200]}")
    resp.raise_for_status()


class LLMClient(ABC):
    """Abstract base class for language model clients."""

    def __init__(self, model: str, temperature: float = 0.7, timeout: float = 60):
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @abstractmethod
    def chat(self, messages: List[Dict[str, Any]], temperature: float | None = None) -> str:  # noqa: D401, E501
        """Send a chat completion request and return the model reply as text."""
        ...

    def _temperature(self, override: float | None) -> float:
        return override if override is not None else self.temperature

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        resp = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        raise_for_quota(resp)
        return resp.json()

    def invoke(self, prompt: str) -> str:
        """Send a single prompt (system prompt and context already included)."""
        return self.chat([{"role": "user", "content": prompt}])
