from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..llm import LLMClient, get_llm_client
from ..settings import Settings
from ..utils.rate_limiter import RateLimiter
from .base_agent import BackendStrategy, Outcome

logger = logging.getLogger(__name__)

DIRECT_RATE_OPERATION = "direct_llm"


class DirectModelStrategy(BackendStrategy):
    """Last-resort backend: the selected model, no tools.

    The prompt goes out untouched; it already holds the system prompt and any
    document context assembled upstream.
    """

    name = "direct"

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        llm_factory: Callable[..., LLMClient] = get_llm_client,
        timeout: float = 60,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.llm_factory = llm_factory
        self.timeout = timeout

    async def attempt(self, prompt: str) -> Outcome:
        provider = self.settings.provider.lower()
        try:
            client = self.llm_factory(self.settings, timeout=self.timeout)
            await self.rate_limiter.check_and_wait(provider, DIRECT_RATE_OPERATION)
            logger.info("[dispatch] direct model provider=%s model=%s", provider, client.model)
            # requests is blocking; keep the event loop free for other dispatches
            text = await asyncio.to_thread(client.invoke, prompt)
            self.rate_limiter.record_request(provider, DIRECT_RATE_OPERATION)
            return Outcome.success(text)
        except Exception as exc:
            logger.error("[dispatch] direct model failed: %s", exc)
            return Outcome.failure(exc)
