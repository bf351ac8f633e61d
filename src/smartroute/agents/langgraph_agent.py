"""LangGraph tool-calling loop shared by the workspace and generic backends."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Sequence, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langgraph.graph import StateGraph, END

logger = logging.getLogger(__name__)


class AgentState(TypedDict):
    """Shared state for each LangGraph run."""

    messages: List[BaseMessage]


def _tool_content(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)


def build_tool_graph(llm: BaseChatModel, tools: Sequence[BaseTool], system_prompt: str | None = None):
    """Compile an agent ⇄ tools loop for the given chat model and tools."""

    llm_with_tools = llm.bind_tools(list(tools))
    by_name = {t.name: t for t in tools}

    async def agent_node(state: Dict[str, Any]) -> Dict[str, Any]:
        messages = state["messages"]
        prompt = [SystemMessage(content=system_prompt), *messages] if system_prompt else messages
        resp = await llm_with_tools.ainvoke(prompt)
        return {"messages": messages + [resp]}

    async def tool_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
        last = state["messages"][-1]
        new_msgs: List[BaseMessage] = []
        for call in getattr(last, "tool_calls", None) or []:
            name = call.get("name", "unknown")
            call_id = call.get("id") or name
            tool = by_name.get(name)
            try:
                if tool is None:
                    raise ValueError(f"Unknown tool: {name}")
                # Passing config keeps on_tool_start/on_tool_end in the run's event stream
                result = await tool.ainvoke(call.get("args") or {}, config=config)
                content = _tool_content(result)
            except Exception as exc:
                logger.exception("Tool execution failed: %s", name)
                content = f"ERROR: {exc}"
            new_msgs.append(ToolMessage(content=content, tool_call_id=call_id, name=name))
        return {"messages": state["messages"] + new_msgs}

    def _route(state: Dict[str, Any]) -> str:
        last = state["messages"][-1]
        return "tools" if getattr(last, "tool_calls", None) else "end"

    graph = StateGraph(AgentState)
    graph.add_node("agent", agent_node)
    graph.add_node("tools", tool_node)
    graph.set_entry_point("agent")
    graph.add_conditional_edges("agent", _route, {"tools": "tools", "end": END})
    graph.add_edge("tools", "agent")
    return graph.compile()


class ToolGraphAgent:
    """Runs a compiled tool graph with a step budget.

    `stream_events` exposes the lifecycle event stream for verification;
    `run` is the plain request/response form and returns the content of the
    last message.
    """

    def __init__(self, graph, max_steps: int = 10):
        self.graph = graph
        self.max_steps = max_steps

    def _inputs(self, prompt: str) -> Dict[str, Any]:
        return {"messages": [HumanMessage(content=prompt)]}

    def _config(self) -> Dict[str, Any]:
        # one agent step = model node + tools node
        return {"recursion_limit": self.max_steps * 2 + 1}

    def stream_events(self, prompt: str) -> AsyncIterator[Dict[str, Any]]:
        return self.graph.astream_events(self._inputs(prompt), config=self._config(), version="v2")

    async def run(self, prompt: str) -> Any:
        result = await self.graph.ainvoke(self._inputs(prompt), config=self._config())
        messages = result.get("messages") if isinstance(result, dict) else None
        if not messages:
            return result
        return messages[-1].content
