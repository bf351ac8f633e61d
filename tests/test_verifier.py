import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from smartroute.agents.verifier import (
    APOLOGY_MESSAGE,
    ToolRunTrace,
    consume_events,
    fold_event,
    resolve_response,
    run_with_tool_verification,
)


async def _stream(events):
    for event in events:
        yield event


def _verify(events):
    return asyncio.run(run_with_tool_verification(_stream(events)))


EVENTS_PAYLOAD = {"events": [{"summary": "Standup", "start": {"dateTime": "2025-10-06T09:00:00Z"}}]}


def test_final_answer_wins():
    events = [
        {"event": "on_tool_start", "name": "get_events", "data": {}},
        {"event": "on_tool_end", "name": "get_events", "data": {"output": EVENTS_PAYLOAD}},
        {"event": "on_chat_model_end", "name": "model", "data": {"output": AIMessage(content="Standup at 9.")}},
    ]
    assert _verify(events) == "Standup at 9."


def test_observations_used_when_no_final_answer():
    events = [
        {"event": "on_tool_start", "name": "get_events", "data": {}},
        {"event": "on_tool_end", "name": "get_events", "data": {"output": EVENTS_PAYLOAD}},
    ]
    assert _verify(events) == "Event: Standup\nTime: 2025-10-06T09:00:00Z"


def test_apology_when_nothing_usable():
    assert _verify([]) == APOLOGY_MESSAGE
    assert _verify([{"event": "on_tool_end", "name": "t", "data": {"output": ""}}]) == APOLOGY_MESSAGE


def test_tool_call_requests_are_not_answers():
    pending = AIMessage(content="", tool_calls=[{"name": "get_events", "args": {}, "id": "c1"}])
    trace = fold_event(ToolRunTrace(), {"event": "on_chat_model_end", "data": {"output": pending}})
    assert trace.final_text is None


def test_top_level_chain_end_reads_last_message():
    state = {"messages": [HumanMessage(content="hi"), AIMessage(content="hello back")]}
    trace = fold_event(ToolRunTrace(), {"event": "on_chain_end", "name": "LangGraph", "parent_ids": [], "data": {"output": state}})
    assert trace.final_text == "hello back"


def test_nested_chain_labels_ignored():
    trace = fold_event(ToolRunTrace(), {"event": "on_chain_end", "name": "_route", "parent_ids": ["root"], "data": {"output": "tools"}})
    assert trace.final_text is None


def test_tool_message_is_not_an_answer():
    state = {"messages": [ToolMessage(content="raw", tool_call_id="c1")]}
    trace = fold_event(ToolRunTrace(), {"event": "on_chain_end", "parent_ids": ["root"], "data": {"output": state}})
    assert trace.final_text is None


def test_fold_does_not_mutate_previous_trace():
    start = ToolRunTrace()
    after = fold_event(start, {"event": "on_tool_start", "name": "search_gmail_messages", "data": {}})
    assert start.tools_started == ()
    assert after.tools_started == ("search_gmail_messages",)
    assert after.tools_executed


def test_resolve_prefers_final_text():
    trace = ToolRunTrace(final_text="answer", tools_started=("t",))
    assert resolve_response(trace) == "answer"


def test_stream_is_closed_when_consumer_is_cancelled():
    closed = asyncio.Event()

    async def endless():
        try:
            while True:
                await asyncio.sleep(0.01)
                yield {"event": "on_chain_stream", "data": {}}
        finally:
            closed.set()

    async def scenario():
        task = asyncio.create_task(consume_events(endless()))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return closed.is_set()

    assert asyncio.run(scenario())


def test_echoed_user_message_is_not_an_answer():
    state = {"messages": [HumanMessage(content="what's on my calendar?")]}
    trace = fold_event(ToolRunTrace(), {"event": "on_chain_end", "name": "__start__", "parent_ids": ["root"], "data": {"output": state}})
    assert trace.final_text is None
