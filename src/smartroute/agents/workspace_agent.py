"""Dedicated Google Workspace backend.

Talks to a `workspace-mcp` server over streamable HTTP, wraps its tools for
a LangGraph agent and verifies every run through the lifecycle event
stream. The synchronous `call_tool_directly` path is used for access probes
and for starting the OAuth flow, neither of which needs a chat model.
"""

from __future__ import annotations

import logging
import re
import webbrowser
from typing import Any, Callable, Dict

from ..config import RouterConfig
from ..llm.chat_models import build_chat_model
from ..mcp.connector import MCPError, MCPHttpConnector
from ..mcp.tool_adapter import to_langchain_tools
from ..settings import Settings
from ..utils.formatter import parse_if_json
from .langgraph_agent import ToolGraphAgent, build_tool_graph
from .verifier import run_with_tool_verification

logger = logging.getLogger(__name__)

WORKSPACE_SYSTEM_PROMPT = """You are a helpful AI assistant with access to Google Workspace tools including Gmail, Calendar, Drive, Docs, and Sheets.

When users ask about their emails, calendar events, documents, or other Google Workspace data, use the available tools to retrieve and provide real information.

For Gmail requests, use search_gmail_messages to find emails and get_gmail_message_content to read specific messages.
For Calendar requests, use get_events to retrieve calendar events and list_calendars to see available calendars.
For Drive requests, use search_drive_files to find files and get_drive_file_content to read file contents.

Identity rules:
1) Never ask the user for their Gmail address and never include a 'user_google_email' field in tool arguments.
2) Identity comes from the OAuth token held by the MCP server.
3) If Google Workspace is disconnected, answer normally and suggest connecting it.

When the user needs to authenticate, use the start_google_auth tool; it returns an authorization URL to open in the browser.

Always use the tools when appropriate to provide accurate, up-to-date information from the user's Google Workspace."""

_AUTH_URL = re.compile(r"https://accounts\.google\.com/[^\s\"'\\<>]+")


def _decoded(result: Any) -> Any:
    # text-only servers send their JSON as a string
    if isinstance(result, str):
        try:
            return parse_if_json(result)
        except (ValueError, SyntaxError):
            return result
    return result


class WorkspaceAgent:
    name = "workspace"

    def __init__(self, connector: MCPHttpConnector, agent: ToolGraphAgent):
        self.connector = connector
        self.agent = agent

    @classmethod
    def create(
        cls,
        settings: Settings,
        config: RouterConfig,
        chat_model_factory: Callable[..., Any] = build_chat_model,
    ) -> "WorkspaceAgent":
        logger.info(
            "[workspace] creating agent provider=%s oauth_client_id=%s oauth_client_secret=%s",
            settings.provider,
            "SET" if settings.oauth_client_id else "NOT SET",
            "SET" if settings.oauth_client_secret else "NOT SET",
        )
        connector = MCPHttpConnector(config.workspace_url, timeout=config.tool_timeout)
        try:
            tools = to_langchain_tools(connector, connector.list_tools())
            llm = chat_model_factory(
                settings,
                default_model="gpt-4o",
                temperature=config.agent_temperature,
                timeout=config.model_timeout,
            )
            graph = build_tool_graph(llm, tools, system_prompt=WORKSPACE_SYSTEM_PROMPT)
        except Exception:
            connector.close()
            raise
        logger.info("[workspace] agent ready with %d tools", len(tools))
        return cls(connector, ToolGraphAgent(graph, max_steps=config.workspace_max_steps))

    async def run(self, prompt: str) -> str:
        return await self.run_with_tool_verification(prompt)

    async def run_with_tool_verification(self, query: str) -> str:
        logger.info("[workspace] running with tool verification: %.100s", query)
        return await run_with_tool_verification(self.agent.stream_events(query))

    # ------------------------------------------------------------------
    # Synchronous tool access
    # ------------------------------------------------------------------

    def call_tool_directly(self, tool_name: str, args: Dict[str, Any]) -> Any:
        logger.info("[workspace] direct tool call %s", tool_name)
        return _decoded(self.connector.call_tool(tool_name, args))

    def check_mail_access(self) -> str:
        try:
            result = self.call_tool_directly("search_gmail_messages", {"query": "newer_than:7d", "max_results": 1})
        except MCPError as exc:
            logger.error("[workspace] Gmail probe failed: %s", exc)
            return f"Gmail access failed: {exc}"
        messages = result.get("messages") if isinstance(result, dict) else None
        if messages:
            first = messages[0]
            return (
                f'Gmail access working. Latest email: "{first.get("subject") or "No subject"}" '
                f'from {first.get("sender") or "Unknown sender"}'
            )
        return "Gmail access working, but no recent messages found."

    def check_calendar_access(self) -> str:
        try:
            result = self.call_tool_directly("get_events", {"calendar_id": "primary", "max_results": 1})
        except MCPError as exc:
            logger.error("[workspace] Calendar probe failed: %s", exc)
            return f"Calendar access failed: {exc}"
        events = result.get("events") if isinstance(result, dict) else None
        if events:
            first = events[0]
            start = first.get("start") or {}
            when = start.get("dateTime") or start.get("date") or "Unknown time"
            return f'Calendar access working. Next event: "{first.get("summary") or "No title"}" at {when}'
        return "Calendar access working, but no upcoming events found."

    def close(self) -> None:
        self.connector.close()


def start_oauth(
    settings: Settings,
    config: RouterConfig,
    connector_factory: Callable[..., MCPHttpConnector] = MCPHttpConnector,
    open_browser: Callable[[str], Any] = webbrowser.open,
) -> str:
    """Kick off the server-side Google OAuth flow and open the consent page.

    Falls back to harmless calendar tools on servers without
    `start_google_auth`; those answer with the authorization URL too when the
    user is not yet authenticated.
    """
    client_id = settings.oauth_client_id
    client_secret = settings.oauth_client_secret
    if not client_id or not client_secret:
        return "Failed to start OAuth: Google OAuth Client ID and Secret are required"

    connector = connector_factory(config.workspace_url, timeout=config.tool_timeout)
    attempts = [
        ("start_google_auth", {"service_name": "Google Workspace", "user_google_email": ""}),
        ("list_calendars", {}),
        ("get_events", {"calendar_id": "primary", "max_results": 1}),
    ]
    result: Any = None
    try:
        for tool_name, args in attempts:
            try:
                result = connector.call_tool_raw(tool_name, args).model_dump(by_alias=True)
                break
            except MCPError as exc:
                logger.warning("[workspace] %s unavailable for OAuth: %s", tool_name, exc)
        else:
            return "Failed to start OAuth: the workspace server did not answer"
    finally:
        connector.close()

    serialized = result if isinstance(result, str) else str(result)
    match = _AUTH_URL.search(serialized)
    if not match:
        logger.warning("[workspace] no authorization URL in OAuth result")
        return f"OAuth flow initiated! Could not extract authorization URL. Raw result preview: {serialized[:500]}"

    auth_url = match.group(0)
    logger.info("[workspace] opening browser for OAuth")
    try:
        opened = open_browser(auth_url)
    except webbrowser.Error as exc:
        logger.error("[workspace] failed to open browser: %s", exc)
        opened = False
    if not opened:
        return f"OAuth flow initiated but failed to open browser. Please manually visit: {auth_url}"
    return (
        "OAuth flow initiated successfully! Please complete authentication in your browser.\n\n"
        f"Authorization URL: {auth_url}"
    )
