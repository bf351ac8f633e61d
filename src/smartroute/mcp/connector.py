"""MCP tool servers over streamable HTTP, via the official `mcp` SDK.

Every operation opens its own `ClientSession`: backends are built in worker
threads and tools run on whichever loop LangGraph uses, so a session is
never shared across event loops. Failures of any kind surface as
`MCPError`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

import httpx
from mcp import ClientSession, types
from mcp.client.streamable_http import streamable_http_client

from ..config import ToolServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MCPError(RuntimeError):
    """An MCP server could not be reached or reported a failure."""


def result_text(result: types.CallToolResult) -> str:
    return "\n".join(block.text for block in result.content if isinstance(block, types.TextContent) and block.text)


def result_payload(result: types.CallToolResult) -> Any:
    """Structured content when the server sends it, joined text otherwise."""
    if result.structuredContent is not None:
        return result.structuredContent
    return result_text(result)


class MCPHttpConnector:
    """One MCP server, reachable from both sync and async code.

    The `a`-prefixed methods are the async API; the plain ones wrap them with
    `asyncio.run` and must be called from a thread without a running loop.
    """

    def __init__(self, url: str, headers: Dict[str, str] | None = None, timeout: float = 30):
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.closed = False

    async def _transport_kwargs(self, stack: AsyncExitStack) -> Dict[str, Any]:
        # SDK releases differ in which knobs streamable_http_client accepts
        try:
            params = inspect.signature(streamable_http_client).parameters
        except (TypeError, ValueError):
            params = {}
        kwargs: Dict[str, Any] = {}
        if "timeout" in params:
            kwargs["timeout"] = self.timeout
        if self.headers:
            if "headers" in params:
                kwargs["headers"] = self.headers
            elif "http_client" in params:
                kwargs["http_client"] = await stack.enter_async_context(
                    httpx.AsyncClient(headers=self.headers, timeout=self.timeout)
                )
        return kwargs

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[ClientSession]:
        async with AsyncExitStack() as stack:
            kwargs = await self._transport_kwargs(stack)
            read, write, _ = await stack.enter_async_context(streamable_http_client(self.url, **kwargs))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
            yield session

    async def _with_session(self, operation: str, fn: Callable[[ClientSession], Awaitable[T]]) -> T:
        if self.closed:
            raise MCPError(f"{self.url}: connector is closed")

        async def _run() -> T:
            async with self._session() as session:
                return await fn(session)

        try:
            return await asyncio.wait_for(_run(), self.timeout)
        except MCPError:
            raise
        except Exception as exc:  # transport, protocol and timeout errors alike
            raise MCPError(f"{self.url} {operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    async def alist_tools(self) -> List[types.Tool]:
        result = await self._with_session("tools/list", lambda session: session.list_tools())
        logger.debug("[mcp] %s exposes %d tools", self.url, len(result.tools))
        return list(result.tools)

    async def acall_tool_raw(self, name: str, arguments: Dict[str, Any] | None = None) -> types.CallToolResult:
        return await self._with_session(
            f"tools/call {name}", lambda session: session.call_tool(name, arguments=arguments or {})
        )

    async def acall_tool(self, name: str, arguments: Dict[str, Any] | None = None) -> Any:
        logger.debug("[mcp] call %s args=%s", name, arguments)
        result = await self.acall_tool_raw(name, arguments)
        if result.isError:
            raise MCPError(f"Tool {name} failed: {result_text(result) or 'unknown error'}")
        return result_payload(result)

    def list_tools(self) -> List[types.Tool]:
        return asyncio.run(self.alist_tools())

    def call_tool_raw(self, name: str, arguments: Dict[str, Any] | None = None) -> types.CallToolResult:
        return asyncio.run(self.acall_tool_raw(name, arguments))

    def call_tool(self, name: str, arguments: Dict[str, Any] | None = None) -> Any:
        return asyncio.run(self.acall_tool(name, arguments))

    def close(self) -> None:
        # sessions are per call; closing only refuses further use
        self.closed = True


class MCPClient:
    """Connectors for every reachable declared tool server."""

    def __init__(self, tools: Dict[str, Tuple[MCPHttpConnector, List[types.Tool]]]):
        self.servers = tools

    @property
    def connectors(self) -> Dict[str, MCPHttpConnector]:
        return {sid: connector for sid, (connector, _) in self.servers.items()}

    @classmethod
    def from_config(cls, servers: Iterable[ToolServerConfig], timeout: float = 30) -> Optional["MCPClient"]:
        """Probe each enabled server with `tools/list`; None when none answers."""
        reachable: Dict[str, Tuple[MCPHttpConnector, List[types.Tool]]] = {}
        for server in servers:
            if not server.enabled:
                continue
            connector = MCPHttpConnector(server.url, headers=server.headers, timeout=timeout)
            try:
                tools = connector.list_tools()
            except MCPError as exc:
                logger.warning("[mcp] server %s unavailable: %s", server.id, exc)
                continue
            reachable[server.id] = (connector, tools)
        if not reachable:
            return None
        return cls(reachable)

    def list_tools(self) -> List[Tuple[MCPHttpConnector, types.Tool]]:
        return [(connector, tool) for connector, tools in self.servers.values() for tool in tools]

    def close(self) -> None:
        for connector, _ in self.servers.values():
            connector.close()
