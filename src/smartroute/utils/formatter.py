from __future__ import annotations

"""Collapse whatever a backend hands back into one displayable string.

Backend adapters call `classify_result` / `classify_observation` at their
boundary, which sorts a raw value into one of a closed set of result
variants; `render_result` then turns a variant into text. Nothing in here is
allowed to raise: the worst case is a JSON dump of the input.
"""

import ast
import json
import re
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Literal, Union

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field

_PRIMARY_FIELDS = ("content", "text", "message", "output", "response")
_ITEM_FIELDS = ("text", "content", "message")
_OBSERVATION_FIELDS = ("content", "text")

_NESTED_TEXT = re.compile(r'"text":\s*"((?:[^"\\]|\\.)+)"')
_NESTED_CONTENT = re.compile(r'"content":\s*"((?:[^"\\]|\\.)+)"')


class TextResult(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class SequenceResult(BaseModel):
    kind: Literal["sequence"] = "sequence"
    items: List[Any]


class MappingResult(BaseModel):
    kind: Literal["mapping"] = "mapping"
    data: Dict[Any, Any]


class MailResult(BaseModel):
    """Mail search output: a `messages` collection."""

    kind: Literal["mail"] = "mail"
    messages: List[Any]


class EventsResult(BaseModel):
    """Calendar output: an `events` collection."""

    kind: Literal["events"] = "events"
    events: List[Any]


class OpaqueResult(BaseModel):
    kind: Literal["opaque"] = "opaque"
    value: Any = None


BackendResult = Union[TextResult, SequenceResult, MappingResult, MailResult, EventsResult, OpaqueResult]


class ToolObservation(BaseModel):
    """Output of one completed tool call, captured during a single dispatch."""

    tool: str = ""
    output: Any = Field(default=None)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_if_json(text: str):
    """Attempt to parse a string that might be JSON or python-repr dict/list."""
    text = text.strip()
    if not text or text[0] not in "[{":
        raise ValueError("not JSON-like")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # fall back to python literal eval (handles single quotes)
        return ast.literal_eval(text)


def _serialize(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return str(value)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else extract_text_content(value)


def _unescape(fragment: str) -> str:
    try:
        return json.loads(f'"{fragment}"')
    except ValueError:
        return fragment


# ---------------------------------------------------------------------------
# Classification (adapter boundary)
# ---------------------------------------------------------------------------


def classify_result(raw: Any) -> BackendResult:
    """Sort a final backend response into a result variant."""
    if isinstance(raw, BaseMessage):
        raw = raw.content
    if isinstance(raw, str):
        return TextResult(text=raw)
    if isinstance(raw, (list, tuple)):
        return SequenceResult(items=list(raw))
    if isinstance(raw, Mapping):
        return MappingResult(data=dict(raw))
    return OpaqueResult(value=raw)


def classify_observation(output: Any) -> BackendResult:
    """Sort a raw tool output, recognising mail and calendar shapes."""
    if isinstance(output, BaseMessage):
        output = output.content
    if isinstance(output, str):
        try:
            parsed = parse_if_json(output)
        except (ValueError, SyntaxError, TypeError, RecursionError, MemoryError):
            return TextResult(text=output)
        if isinstance(parsed, Mapping) and (
            isinstance(parsed.get("messages"), list) or isinstance(parsed.get("events"), list)
        ):
            return classify_observation(parsed)
        return TextResult(text=output)

    if isinstance(output, Mapping):
        messages = output.get("messages")
        if isinstance(messages, list):
            return MailResult(messages=messages)
        events = output.get("events")
        if isinstance(events, list):
            return EventsResult(events=events)
        for name in _OBSERVATION_FIELDS:
            value = output.get(name)
            if value:
                return TextResult(text=_as_text(value))
        return OpaqueResult(value=output)

    if isinstance(output, (list, tuple)):
        return SequenceResult(items=list(output))
    return OpaqueResult(value=output)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render_item(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, BaseMessage):
        return _as_text(item.content)
    for name in _ITEM_FIELDS:
        value = _field(item, name)
        if value:
            return _as_text(value)
    return ""


def _render_mapping(data: Mapping) -> str:
    for name in _PRIMARY_FIELDS:
        value = data.get(name)
        if value:
            return _as_text(value)

    serialized = _serialize(data)
    # One level of un-lifted nesting, e.g. {"result": {"text": "..."}}
    match = _NESTED_TEXT.search(serialized) or _NESTED_CONTENT.search(serialized)
    if match:
        return _unescape(match.group(1))
    return serialized


def _render_mail(messages: List[Any]) -> str:
    if not messages:
        return ""
    message = messages[0]
    lines = [
        f"Subject: {_field(message, 'subject') or 'No subject'}",
        f"From: {_field(message, 'sender') or 'Unknown sender'}",
        f"Date: {_field(message, 'date') or 'Unknown date'}",
    ]
    snippet = _field(message, "snippet")
    if snippet:
        lines.append(f"Preview: {snippet}")
    return "\n".join(lines)


def _render_events(events: List[Any]) -> str:
    if not events:
        return ""
    event = events[0]
    start = _field(event, "start")
    if isinstance(start, Mapping):
        when = start.get("dateTime") or start.get("date")
    else:
        when = start
    lines = [
        f"Event: {_field(event, 'summary') or 'No title'}",
        f"Time: {when or 'Unknown time'}",
    ]
    description = _field(event, "description")
    if description:
        lines.append(f"Description: {description}")
    return "\n".join(lines)


def render_result(result: BackendResult) -> str:
    if isinstance(result, TextResult):
        return result.text
    if isinstance(result, SequenceResult):
        return "\n".join(text for text in (_render_item(i) for i in result.items) if text)
    if isinstance(result, MappingResult):
        return _render_mapping(result.data)
    if isinstance(result, MailResult):
        return _render_mail(result.messages)
    if isinstance(result, EventsResult):
        return _render_events(result.events)
    if isinstance(result.value, (Mapping, list, tuple)):
        return _serialize(result.value)
    return str(result.value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_text_content(result: Any) -> str:
    """Return a human-readable string for any backend response shape."""
    if isinstance(result, str):
        return result
    try:
        return render_result(classify_result(result))
    except Exception:  # noqa: BLE001 - last-resort guarantee, callers always get text
        return _serialize(result)


def extract_content_from_tool_observations(observations: Iterable[Union[ToolObservation, Mapping]]) -> str:
    """Rebuild a response from raw tool outputs when no final answer was produced."""
    summaries: List[str] = []
    for obs in observations:
        output = _field(obs, "output")
        if output is None or (isinstance(output, str) and not output):
            continue
        try:
            summary = render_result(classify_observation(output))
        except Exception:  # noqa: BLE001
            summary = _serialize(output)
        if summary:
            summaries.append(summary)
    return "\n\n".join(summaries)
