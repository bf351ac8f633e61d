"""Confirm that a tool agent run actually called tools, and recover its answer.

Agent runs can finish without a clean final answer, typically when the last
step was a tool call that never got summarised. The verifier folds the
LangChain lifecycle events (`astream_events(version="v2")`) into a
`ToolRunTrace` and resolves the user-facing text from it: the final answer
when there is one, otherwise the raw tool observations, otherwise a fixed
apology.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, AsyncIterable, Mapping, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage

from ..utils.formatter import (
    ToolObservation,
    extract_content_from_tool_observations,
    extract_text_content,
)

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I apologize, but I was unable to process your request. Please try again."

_MODEL_END_EVENTS = {"on_chat_model_end", "on_llm_end"}


@dataclass(frozen=True)
class ToolRunTrace:
    final_text: Optional[str] = None
    observations: Tuple[ToolObservation, ...] = ()
    tools_started: Tuple[str, ...] = ()

    @property
    def tools_executed(self) -> bool:
        return bool(self.tools_started)


def _answer_text(output: Any) -> Optional[str]:
    """Text of a finished answer, or None when output is not one."""
    if output is None:
        return None
    if isinstance(output, str):
        return output or None
    if isinstance(output, BaseMessage):
        # echoed user/tool messages are not answers; tool_calls means the model is not done
        if not isinstance(output, AIMessage) or output.tool_calls:
            return None
        return extract_text_content(output.content) or None
    if isinstance(output, Mapping):
        messages = output.get("messages")
        if isinstance(messages, list):
            return _answer_text(messages[-1]) if messages else None
        # legacy LLMResult-style {"generations": [[{"text": ...}]]}
        generations = output.get("generations")
        if isinstance(generations, list) and generations and isinstance(generations[-1], list):
            last = generations[-1][-1] if generations[-1] else None
            return _answer_text(last.get("message") or last.get("text")) if isinstance(last, Mapping) else None
    text = extract_text_content(output)
    return text or None


def fold_event(trace: ToolRunTrace, event: Mapping[str, Any]) -> ToolRunTrace:
    kind = event.get("event")
    name = event.get("name") or "unknown"
    data = event.get("data") or {}

    if kind == "on_tool_start":
        logger.info("[verifier] tool start: %s", name)
        return replace(trace, tools_started=trace.tools_started + (name,))

    if kind == "on_tool_end":
        output = data.get("output")
        logger.info("[verifier] tool end: %s", name)
        logger.debug("[verifier] %s output preview: %.200s", name, output)
        if output is None or (isinstance(output, str) and not output):
            return trace
        return replace(trace, observations=trace.observations + (ToolObservation(tool=name, output=output),))

    if kind == "on_chain_end":
        output = data.get("output")
        # Nested chains (edges, routers) end with labels; only message-bearing output counts there
        nested = bool(event.get("parent_ids"))
        if nested and not (
            isinstance(output, BaseMessage) or (isinstance(output, Mapping) and "messages" in output)
        ):
            return trace
        text = _answer_text(output)
        return replace(trace, final_text=text) if text else trace

    if kind in _MODEL_END_EVENTS:
        text = _answer_text(data.get("output"))
        return replace(trace, final_text=text) if text else trace

    return trace


async def consume_events(events: AsyncIterable[Mapping[str, Any]]) -> ToolRunTrace:
    trace = ToolRunTrace()
    try:
        async for event in events:
            trace = fold_event(trace, event)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
    return trace


def resolve_response(trace: ToolRunTrace) -> str:
    if trace.tools_executed:
        logger.info(
            "[verifier] tools executed (last tool: %s), observations captured: %d",
            trace.tools_started[-1],
            len(trace.observations),
        )
    else:
        logger.warning("[verifier] no tools were executed during the agent run")

    if trace.final_text:
        return extract_text_content(trace.final_text)
    if trace.observations:
        logger.info("[verifier] no final answer, rebuilding from tool observations")
        text = extract_content_from_tool_observations(trace.observations)
        if text:
            return text
    return APOLOGY_MESSAGE


async def run_with_tool_verification(events: AsyncIterable[Mapping[str, Any]]) -> str:
    return resolve_response(await consume_events(events))
