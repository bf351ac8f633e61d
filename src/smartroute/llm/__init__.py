from __future__ import annotations

"""Factory helpers for LLM clients."""

import os

from ..settings import Settings
from .base import LLMClient, QuotaExceededError, QUOTA_MARKERS
from .openai_client import OpenAIClient
from .anthropic_client import AnthropicClient
from .deepseek_client import DeepSeekClient

__all__ = [
    "get_llm_client",
    "LLMClient",
    "QuotaExceededError",
    "QUOTA_MARKERS",
    "OpenAIClient",
    "AnthropicClient",
    "DeepSeekClient",
]

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "deepseek": "deepseek-chat",
}


def get_llm_client(settings: Settings, timeout: float = 60) -> LLMClient:
    """Return the direct-model client for the provider selected in settings."""

    provider = settings.provider.lower()
    model = settings.resolved_model()
    temperature = settings.temperature

    if provider == "openai":
        return OpenAIClient(
            api_key=settings.api_key_for("openai") or os.getenv("OPENAI_API_KEY"),
            model=model or os.getenv("OPENAI_MODEL") or DEFAULT_MODELS["openai"],
            temperature=temperature,
            timeout=timeout,
        )
    if provider in {"anthropic", "claude"}:
        return AnthropicClient(
            api_key=settings.api_key_for("anthropic") or os.getenv("ANTHROPIC_API_KEY"),
            model=model or os.getenv("ANTHROPIC_MODEL") or DEFAULT_MODELS["anthropic"],
            temperature=temperature,
            timeout=timeout,
        )
    if provider == "deepseek":
        return DeepSeekClient(
            api_key=settings.api_key_for("deepseek"),
            model=model or DEFAULT_MODELS["deepseek"],
            temperature=temperature,
            timeout=timeout,
        )

    raise ValueError(f"Unknown LLM provider: {provider}")
