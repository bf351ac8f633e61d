from __future__ import annotations

"""DeepSeek speaks the OpenAI chat format; only the endpoint and defaults differ."""

import os

from .openai_client import OpenAIClient

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"


class DeepSeekClient(OpenAIClient):
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float = 0.7,
        timeout: float = 60,
    ):
        api_key = api_key or os.getenv("DEEPSEEK_API_KEY")
        if model is None:
            model = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")
        base_url = os.getenv("DEEPSEEK_BASE_URL", DEEPSEEK_BASE_URL)
        super().__init__(api_key=api_key, model=model, base_url=base_url, temperature=temperature, timeout=timeout)
