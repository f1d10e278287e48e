"""LLM tool-call adapter.

Tool calls arrive as ``{"name": ..., "parameters": {...}}`` (``arguments``
is accepted too, as an object or a JSON-encoded string). Mutating tools
become ``DotCommand`` values; query tools read the chunk list.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from graph_delta.chunks import Chunk
from graph_delta.commands import DotCommand
from graph_delta.config import EditorConfig
from graph_delta.errors import ParseError
from graph_delta.tools.mutations import mutation_tools
from graph_delta.tools.prompt import get_system_prompt
from graph_delta.tools.queries import query_tools
from graph_delta.tools.registry import RegisteredTool, ToolDefinition, ToolRegistry


class ToolCall(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("parameters", "arguments"),
    )

    @field_validator("arguments", mode="before")
    @classmethod
    def _decode_arguments(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value


def default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for tool in [*query_tools(), *mutation_tools()]:
        registry.register(tool)
    return registry


_REGISTRY = default_registry()


def get_tool_definitions() -> list[ToolDefinition]:
    return _REGISTRY.definitions()


def tool_call_to_command(name: str, params: dict[str, Any]) -> DotCommand:
    return _REGISTRY.to_command(name, params)


def execute_query_tool(name: str, params: dict[str, Any], chunks: list[Chunk]) -> dict[str, Any]:
    return _REGISTRY.query(name, params, chunks)


def parse_tool_call(payload: str | bytes | Mapping[str, Any]) -> ToolCall:
    try:
        if isinstance(payload, (str, bytes)):
            return ToolCall.model_validate_json(payload)
        return ToolCall.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(f"Invalid tool call: {exc}", cause=exc) from exc


def execute_tool_call(
    chunks: list[Chunk],
    call: ToolCall | str | bytes | Mapping[str, Any],
    config: EditorConfig | None = None,
) -> dict[str, Any]:
    """Run a query or apply a mutation; mutations change ``chunks`` in place."""
    if not isinstance(call, ToolCall):
        call = parse_tool_call(call)
    return _REGISTRY.execute(call.name, call.arguments, chunks, config)


__all__ = [
    "RegisteredTool",
    "ToolCall",
    "ToolDefinition",
    "ToolRegistry",
    "default_registry",
    "execute_query_tool",
    "execute_tool_call",
    "get_system_prompt",
    "get_tool_definitions",
    "parse_tool_call",
    "tool_call_to_command",
]
