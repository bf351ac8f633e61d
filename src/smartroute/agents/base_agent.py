from __future__ import annotations

"""Uniform contract for the response backends the dispatcher can try.

Every backend is wrapped in a `BackendStrategy` whose `attempt` never
raises: it returns an `Outcome` carrying either the response text or the
exception that stopped it. The dispatcher walks an ordered list of
strategies and decides what an error means.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from ..llm import QUOTA_MARKERS, QuotaExceededError
from ..utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = (
    "I'm sorry, but the API quota has been exceeded. Please check your API key billing "
    "and try again later, or use a different API key in the settings."
)

TOOL_RATE_KEY = "mcp"
TOOL_RATE_OPERATION = "agent_run"


def is_quota_error(exc: BaseException | None) -> bool:
    if exc is None:
        return False
    if isinstance(exc, QuotaExceededError):
        return True
    message = str(exc)
    return any(marker in message for marker in QUOTA_MARKERS)


@dataclass(frozen=True)
class Outcome:
    text: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, text: str) -> "Outcome":
        return cls(text=text)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def quota_exceeded(self) -> bool:
        return is_quota_error(self.error)


class BackendStrategy(ABC):
    name: str = "backend"

    @abstractmethod
    async def attempt(self, prompt: str) -> Outcome:
        ...


class ToolBackend(Protocol):
    """A live tool-augmented agent (workspace or generic)."""

    name: str

    async def run(self, prompt: str) -> str:
        ...


class ToolAgentStrategy(BackendStrategy):
    """Runs a tool backend behind the MCP rate limit and a smoothing delay."""

    def __init__(
        self,
        backend: ToolBackend,
        rate_limiter: RateLimiter,
        delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.name = backend.name
        self.rate_limiter = rate_limiter
        self.delay = delay
        self._sleep = sleep

    async def attempt(self, prompt: str) -> Outcome:
        try:
            await self.rate_limiter.check_and_wait(TOOL_RATE_KEY, TOOL_RATE_OPERATION)
            if self.delay:
                await self._sleep(self.delay)
            logger.info("[dispatch] running %s backend: %.100s", self.name, prompt)
            text = await self.backend.run(prompt)
            self.rate_limiter.record_request(TOOL_RATE_KEY, TOOL_RATE_OPERATION)
            return Outcome.success(text)
        except Exception as exc:
            logger.exception("[dispatch] %s backend failed", self.name)
            return Outcome.failure(exc)
