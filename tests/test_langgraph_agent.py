import asyncio
from typing import Any, List

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from mcp import types

from smartroute.agents.langgraph_agent import ToolGraphAgent, build_tool_graph
from smartroute.agents.verifier import consume_events, run_with_tool_verification
from smartroute.mcp.tool_adapter import to_langchain_tools


class ScriptedChatModel(BaseChatModel):
    """Replays canned replies in order; repeats the last one when exhausted."""

    responses: List[AIMessage]
    calls: int = 0

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        message = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        return ChatResult(generations=[ChatGeneration(message=message)])

    def bind_tools(self, tools, **kwargs: Any):
        return self


EVENTS_DEF = types.Tool(
    name="get_events",
    description="List calendar events",
    inputSchema={
        "type": "object",
        "properties": {"calendar_id": {"type": "string"}, "max_results": {"type": "integer"}},
        "required": ["calendar_id"],
    },
)
TOOL_CALL = AIMessage(
    content="",
    tool_calls=[{"name": "get_events", "args": {"calendar_id": "primary"}, "id": "call_1"}],
)


class FakeCaller:
    def __init__(self, calls):
        self.calls = calls

    def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        return {"events": [{"summary": "Standup", "start": {"dateTime": "2025-10-06T09:00:00Z"}}]}

    async def acall_tool(self, name, arguments=None):
        return self.call_tool(name, arguments)


def _agent(responses, calls):
    tools = to_langchain_tools(FakeCaller(calls), [EVENTS_DEF])
    graph = build_tool_graph(ScriptedChatModel(responses=responses), tools, system_prompt="be brief")
    return ToolGraphAgent(graph, max_steps=5)


def test_tool_run_is_verified_and_answered():
    calls = []
    agent = _agent([TOOL_CALL, AIMessage(content="You have a standup at 9.")], calls)

    trace = asyncio.run(consume_events(agent.stream_events("what's on my calendar?")))

    assert calls == [("get_events", {"calendar_id": "primary"})]
    assert trace.tools_started == ("get_events",)
    assert len(trace.observations) == 1
    assert trace.final_text == "You have a standup at 9."


def test_empty_final_answer_falls_back_to_observations():
    agent = _agent([TOOL_CALL, AIMessage(content="")], [])
    text = asyncio.run(run_with_tool_verification(agent.stream_events("calendar")))
    assert text == "Event: Standup\nTime: 2025-10-06T09:00:00Z"


def test_run_returns_last_message_content():
    agent = _agent([AIMessage(content="no tools needed")], [])
    assert asyncio.run(agent.run("hello")) == "no tools needed"
