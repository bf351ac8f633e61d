"""Expose MCP tool definitions as LangChain tools.

Argument validation goes through a Pydantic model built from each tool's
JSON schema, so the chat model sees proper function-calling parameters and
bad arguments fail before they reach the server.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Type

from langchain_core.tools import StructuredTool
from mcp import types
from pydantic import BaseModel, Field, create_model

logger = logging.getLogger(__name__)

_JSON_TO_PY = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict,
    "array": list,
}


class ToolCaller(Protocol):
    def call_tool(self, name: str, arguments: Dict[str, Any] | None = None) -> Any: ...

    async def acall_tool(self, name: str, arguments: Dict[str, Any] | None = None) -> Any: ...


def _py_type(prop: Dict[str, Any]) -> Any:
    json_type = prop.get("type")
    if isinstance(json_type, list):
        json_type = next((t for t in json_type if t != "null"), None)
    return _JSON_TO_PY.get(json_type, Any)


def args_model(definition: types.Tool) -> Type[BaseModel]:
    schema = definition.inputSchema or {}
    required = set(schema.get("required") or [])
    fields: Dict[str, Any] = {}
    for name, prop in (schema.get("properties") or {}).items():
        if name.startswith("_"):
            logger.debug("[tools] %s: skipping private argument %s", definition.name, name)
            continue
        prop = prop if isinstance(prop, dict) else {}
        typ = _py_type(prop)
        description = prop.get("description")
        if name in required:
            fields[name] = (typ, Field(..., description=description))
        else:
            fields[name] = (Optional[typ], Field(None, description=description))
    model_name = "".join(part.title() for part in definition.name.split("_")) + "Args"
    return create_model(model_name, **fields)  # type: ignore[call-overload]


def _present(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


def to_langchain_tool(caller: ToolCaller, definition: types.Tool) -> StructuredTool:
    def _run(**kwargs: Any) -> Any:
        return caller.call_tool(definition.name, _present(kwargs))

    async def _arun(**kwargs: Any) -> Any:
        return await caller.acall_tool(definition.name, _present(kwargs))

    return StructuredTool.from_function(
        func=_run,
        coroutine=_arun,
        name=definition.name,
        description=definition.description or definition.name,
        args_schema=args_model(definition),
    )


def to_langchain_tools(caller: ToolCaller, definitions: List[types.Tool]) -> List[StructuredTool]:
    return [to_langchain_tool(caller, d) for d in definitions]
