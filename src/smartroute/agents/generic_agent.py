from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ..config import RouterConfig
from ..llm.chat_models import build_chat_model
from ..mcp.connector import MCPClient
from ..mcp.tool_adapter import to_langchain_tool
from ..settings import Settings
from ..utils.formatter import extract_text_content
from .langgraph_agent import ToolGraphAgent, build_tool_graph

logger = logging.getLogger(__name__)


class GenericToolAgent:
    """Tool agent over every MCP server declared in the router config."""

    name = "generic"

    def __init__(self, client: MCPClient, agent: ToolGraphAgent):
        self.client = client
        self.agent = agent

    @classmethod
    def from_config(
        cls,
        settings: Settings,
        config: RouterConfig,
        chat_model_factory: Callable[..., Any] = build_chat_model,
    ) -> Optional["GenericToolAgent"]:
        """Build the agent, or return None when no server yields usable tools."""
        client = MCPClient.from_config(config.enabled_tool_servers(), timeout=config.tool_timeout)
        if client is None:
            logger.info("[generic] no MCP server reachable, direct model only")
            return None

        tools = [to_langchain_tool(connector, d) for connector, d in client.list_tools()]
        if not tools:
            logger.info("[generic] MCP servers expose no tools, direct model only")
            client.close()
            return None

        try:
            llm = chat_model_factory(
                settings,
                default_model="gpt-4o-mini",
                temperature=config.agent_temperature,
                timeout=config.model_timeout,
            )
            graph = build_tool_graph(llm, tools)
        except Exception:
            client.close()
            raise
        logger.info("[generic] agent ready with %d tools from %s", len(tools), sorted(client.connectors))
        return cls(client, ToolGraphAgent(graph, max_steps=config.generic_max_steps))

    async def run(self, prompt: str) -> str:
        result = await self.agent.run(prompt)
        return extract_text_content(result)

    def close(self) -> None:
        self.client.close()
