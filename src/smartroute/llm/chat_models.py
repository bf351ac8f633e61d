from __future__ import annotations

"""LangChain chat models for the tool agents.

The direct path talks REST through the clients in this package; tool agents
need a model that supports `bind_tools`, so they go through langchain-openai
(OpenAI, DeepSeek) or langchain-anthropic (Claude). Unknown providers raise,
which the dispatcher treats as "no tool backend".
"""

import os

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from ..settings import Settings
from .deepseek_client import DEEPSEEK_BASE_URL

DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"


def build_chat_model(
    settings: Settings,
    default_model: str = "gpt-4o-mini",
    temperature: float = 0.5,
    timeout: float = 60,
) -> BaseChatModel:
    provider = settings.provider.lower()
    model = settings.resolved_model() or ""

    if provider == "openai":
        api_key = settings.api_key_for("openai") or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OpenAI API key required")
        return ChatOpenAI(
            model=model if model.startswith("gpt-") else default_model,
            temperature=temperature,
            api_key=api_key,
            max_retries=3,
            timeout=timeout,
        )
    if provider == "deepseek":
        api_key = settings.api_key_for("deepseek") or os.getenv("DEEPSEEK_API_KEY")
        if not api_key:
            raise RuntimeError("DeepSeek API key required")
        return ChatOpenAI(
            model=model or "deepseek-chat",
            temperature=temperature,
            api_key=api_key,
            base_url=os.getenv("DEEPSEEK_BASE_URL", DEEPSEEK_BASE_URL),
            max_retries=3,
            timeout=timeout,
        )

    if provider in {"anthropic", "claude"}:
        api_key = settings.api_key_for("anthropic") or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise RuntimeError("Anthropic API key required")
        return ChatAnthropic(
            model=model if model.startswith("claude-") else DEFAULT_CLAUDE_MODEL,
            temperature=temperature,
            api_key=api_key,
            max_retries=3,
            timeout=timeout,
        )

    raise ValueError(f"Tool agents are not available for provider: {provider}")
