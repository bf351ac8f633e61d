"""Top-level dispatcher: picks the backend that answers each message.

Per call: strip the date/time preamble, classify the utterance, then walk an
ordered list of backend strategies (tool agent first when tools are needed
and available, the direct model always last). Quota errors stop the walk
with an advisory message; any other tool failure falls through to the
direct model once; a direct-model failure propagates to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import contextmanager
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from ..config import RouterConfig
from ..llm import get_llm_client
from ..settings import Settings
from ..utils.rate_limiter import RateLimiter
from .base_agent import QUOTA_MESSAGE, BackendStrategy, ToolAgentStrategy, ToolBackend
from .direct_agent import DirectModelStrategy
from .generic_agent import GenericToolAgent
from .intent_classifier import needs_tool_routing
from .message_extraction import extract_user_message, has_document_context
from .workspace_agent import WorkspaceAgent, start_oauth

logger = logging.getLogger(__name__)


class BackendState(str, Enum):
    UNINITIALIZED = "uninitialized"
    DIRECT_ONLY = "direct_only"
    TOOL_READY = "tool_ready"


class Dispatcher:
    """Routes messages between the tool backends and the direct model.

    Holds at most one tool backend at a time. Rebuilds are serialized by a
    lock; dispatches take a lease on the backend they started with, so a
    replaced backend is only closed once its last dispatch has finished.
    """

    def __init__(
        self,
        config: RouterConfig,
        rate_limiter: RateLimiter,
        llm_factory: Callable[..., Any] = get_llm_client,
        workspace_factory: Callable[[Settings, RouterConfig], ToolBackend] = WorkspaceAgent.create,
        generic_factory: Callable[[Settings, RouterConfig], Optional[ToolBackend]] = GenericToolAgent.from_config,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        oauth_starter: Callable[[Settings, RouterConfig], str] = start_oauth,
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self.llm_factory = llm_factory
        self.workspace_factory = workspace_factory
        self.generic_factory = generic_factory
        self.oauth_starter = oauth_starter
        self._sleep = sleep

        self._backend: Optional[ToolBackend] = None
        self._state = BackendState.UNINITIALIZED
        self._last_settings: Optional[Settings] = None
        self._init_lock = asyncio.Lock()
        self._leases: Dict[int, int] = {}
        self._retired: Dict[int, ToolBackend] = {}

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def backend(self) -> Optional[ToolBackend]:
        return self._backend

    @property
    def last_settings(self) -> Optional[Settings]:
        return self._last_settings

    # ------------------------------------------------------------------
    # Backend lifecycle
    # ------------------------------------------------------------------

    def needs_reinitialization(self, settings: Settings) -> bool:
        if self._last_settings is None:
            return True
        return self._last_settings.fingerprint() != settings.fingerprint()

    async def _initialize(self, settings: Settings) -> None:
        logger.info(
            "[dispatch] initializing provider=%s workspace_connected=%s",
            settings.provider,
            settings.workspace_connected,
        )
        self._retire(self._backend)
        self._backend = None
        self._last_settings = None
        self._state = BackendState.UNINITIALIZED

        factory = self.workspace_factory if settings.workspace_connected else self.generic_factory
        build = asyncio.ensure_future(asyncio.to_thread(factory, settings, self.config))
        try:
            # shielded: the worker thread runs on after a cancel and its result must still be closed
            backend = await asyncio.shield(build)
        except asyncio.CancelledError:
            logger.warning("[dispatch] initialization cancelled, closing the backend once built")
            build.add_done_callback(self._close_abandoned)
            raise
        except Exception:
            # Never surfaces: the user still gets the direct model
            logger.exception("[dispatch] tool backend initialization failed, direct model only")
            self._state = BackendState.DIRECT_ONLY
            return

        self._backend = backend
        self._state = BackendState.TOOL_READY if backend is not None else BackendState.DIRECT_ONLY
        self._last_settings = settings
        logger.info("[dispatch] initialized: state=%s backend=%s", self._state.value, getattr(backend, "name", None))

    async def _ensure_initialized(self, settings: Settings) -> Optional[ToolBackend]:
        async with self._init_lock:
            if self.needs_reinitialization(settings):
                await self._initialize(settings)
            else:
                # same backend; keep non-fingerprint fields (OAuth client, temperature) current
                self._last_settings = settings
            return self._backend

    def _retire(self, backend: Optional[ToolBackend]) -> None:
        if backend is None:
            return
        if self._leases.get(id(backend)):
            self._retired[id(backend)] = backend
        else:
            self._close(backend)

    @classmethod
    def _close_abandoned(cls, build: "asyncio.Future[Optional[ToolBackend]]") -> None:
        if build.cancelled() or build.exception() is not None:
            return
        backend = build.result()
        if backend is not None:
            cls._close(backend)

    @staticmethod
    def _close(backend: ToolBackend) -> None:
        close = getattr(backend, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception:
            logger.exception("[dispatch] closing %s backend failed", getattr(backend, "name", "tool"))

    @contextmanager
    def _lease(self, backend: Optional[ToolBackend]) -> Iterator[None]:
        if backend is None:
            yield
            return
        key = id(backend)
        self._leases[key] = self._leases.get(key, 0) + 1
        try:
            yield
        finally:
            self._leases[key] -= 1
            if not self._leases[key]:
                del self._leases[key]
                retired = self._retired.pop(key, None)
                if retired is not None:
                    self._close(retired)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def plan(
        self, message: str, settings: Settings, backend: Optional[ToolBackend]
    ) -> List[Tuple[BackendStrategy, str]]:
        """Ordered (strategy, prompt) pairs to try for this message."""
        user_message = extract_user_message(message)
        needs_tools = needs_tool_routing(user_message, settings.workspace_connected)
        logger.info(
            "[dispatch] user_message=%.100r needs_tools=%s backend=%s",
            user_message,
            needs_tools,
            getattr(backend, "name", None),
        )

        direct = DirectModelStrategy(
            settings, self.rate_limiter, llm_factory=self.llm_factory, timeout=self.config.model_timeout
        )
        if not needs_tools or backend is None:
            return [(direct, message)]

        # Tool agents get the bare utterance unless uploaded documents must travel with it
        tool_prompt = message if has_document_context(message) else user_message
        tool = ToolAgentStrategy(backend, self.rate_limiter, delay=self.config.tool_call_delay, sleep=self._sleep)
        return [(tool, tool_prompt), (direct, message)]

    async def run(self, message: str, settings: Settings, timeout: float | None = None) -> str:
        """Answer one message; `timeout` bounds the whole dispatch."""
        if timeout is None:
            return await self._run(message, settings)
        return await asyncio.wait_for(self._run(message, settings), timeout)

    async def _run(self, message: str, settings: Settings) -> str:
        backend = await self._ensure_initialized(settings)
        with self._lease(backend):
            steps = self.plan(message, settings, backend)
            for index, (strategy, prompt) in enumerate(steps):
                outcome = await strategy.attempt(prompt)
                if outcome.ok:
                    return outcome.text or ""
                if outcome.quota_exceeded:
                    logger.warning("[dispatch] quota exceeded on %s backend", strategy.name)
                    return QUOTA_MESSAGE
                if index == len(steps) - 1:
                    raise outcome.error
                logger.info("[dispatch] %s backend failed, falling back", strategy.name)
        raise RuntimeError("no backend available")  # pragma: no cover - plan is never empty

    # ------------------------------------------------------------------
    # Workspace helpers
    # ------------------------------------------------------------------

    def available_tools(self) -> List[str]:
        if self._last_settings is None:
            return []
        tools: List[str] = []
        for server in self.config.enabled_tool_servers():
            tools.extend(t for t in server.tools if t not in tools)
        return tools

    def is_workspace_available(self) -> bool:
        settings = self._last_settings
        if settings is None:
            return False
        return settings.workspace_connected and bool(
            settings.oauth_client_id or os.getenv("GOOGLE_OAUTH_CLIENT_ID")
        )

    async def check_workspace_access(self) -> Dict[str, str]:
        backend = self._backend
        if not isinstance(backend, WorkspaceAgent):
            return {
                "gmail": "Google Workspace MCP not initialized",
                "calendar": "Google Workspace MCP not initialized",
            }
        with self._lease(backend):
            gmail, calendar = await asyncio.gather(
                asyncio.to_thread(backend.check_mail_access),
                asyncio.to_thread(backend.check_calendar_access),
            )
        return {"gmail": gmail, "calendar": calendar}

    async def start_oauth(self, settings: Settings) -> str:
        # No chat model involved: OAuth must work before any API key is set
        return await asyncio.to_thread(self.oauth_starter, settings, self.config)

    async def aclose(self) -> None:
        async with self._init_lock:
            self._retire(self._backend)
            self._backend = None
            self._last_settings = None
            self._state = BackendState.UNINITIALIZED
