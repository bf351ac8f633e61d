from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from ..config import RateLimitConfig, default_rate_limits

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    requests: int
    window_start: float
    max_requests: int
    window_seconds: float


class RateLimiter:
    """Fixed-window admission control keyed by ``<dependency>_<operation>``.

    Exhaustion never raises: callers either get ``False`` from
    :meth:`check_limit` or are parked by :meth:`check_and_wait` for the
    dependency's retry-after period.
    """

    def __init__(
        self,
        configs: Dict[str, RateLimitConfig] | None = None,
        default_key: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.configs = dict(configs) if configs is not None else default_rate_limits()
        self.default_key = default_key
        self._clock = clock
        self._sleep = sleep
        self._limits: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def config_for(self, key: str) -> RateLimitConfig:
        config = self.configs.get(key) or self.configs.get(self.default_key)
        if config is None:
            # conservative even when the configured default key is missing
            config = RateLimitConfig(max_requests=1, window_seconds=10, retry_after_seconds=5)
        return config

    def check_limit(self, key: str, operation: str = "default") -> bool:
        full_key = f"{key}_{operation}"
        config = self.config_for(key)
        with self._lock:
            now = self._clock()
            limit = self._limits.get(full_key)
            if limit is None:
                limit = _Window(0, now, config.max_requests, config.window_seconds)
                self._limits[full_key] = limit

            if now - limit.window_start > limit.window_seconds:
                limit.requests = 0
                limit.window_start = now

            if limit.requests < limit.max_requests:
                limit.requests += 1
                logger.debug(
                    "[ratelimit] %s: %d/%d requests in window", full_key, limit.requests, limit.max_requests
                )
                return True

        logger.info("[ratelimit] %s: limit exceeded (%d/%d)", full_key, limit.requests, limit.max_requests)
        return False

    def record_request(self, key: str, operation: str = "default") -> None:
        # Admission already counted the request in check_limit
        full_key = f"{key}_{operation}"
        if full_key in self._limits:
            logger.debug("[ratelimit] %s: request recorded", full_key)

    def get_retry_after(self, key: str) -> float:
        return self.config_for(key).retry_after_seconds

    def get_request_count(self, key: str, operation: str = "default") -> int:
        limit = self._limits.get(f"{key}_{operation}")
        return limit.requests if limit else 0

    def reset_limit(self, key: str, operation: str = "default") -> None:
        full_key = f"{key}_{operation}"
        with self._lock:
            self._limits.pop(full_key, None)
        logger.info("[ratelimit] %s: reset", full_key)

    async def wait_for_reset(self, key: str, operation: str = "default") -> None:
        retry_after = self.get_retry_after(key)
        logger.info("[ratelimit] %s_%s: waiting %.1fs for reset", key, operation, retry_after)
        await self._sleep(retry_after)

    async def check_and_wait(self, key: str, operation: str = "default") -> None:
        if not self.check_limit(key, operation):
            await self.wait_for_reset(key, operation)
