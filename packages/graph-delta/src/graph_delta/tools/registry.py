"""Tool registry and dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from graph_delta.chunks import Chunk
from graph_delta.commands import DotCommand, apply_command, command_to_dict
from graph_delta.config import EditorConfig
from graph_delta.errors import UnknownToolError

logger = logging.getLogger(__name__)

CommandBuilder = Callable[[dict[str, Any]], DotCommand]
QueryExecutor = Callable[[dict[str, Any], list[Chunk]], dict[str, Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool a model can call."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class RegisteredTool:
    """A tool either builds a command (mutation) or answers a query."""

    definition: ToolDefinition
    build_command: CommandBuilder | None = None
    query: QueryExecutor | None = None

    @property
    def mutating(self) -> bool:
        return self.build_command is not None


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, tool: RegisteredTool) -> None:
        self._tools[tool.definition.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        return [self._tools[name].definition for name in self.names()]

    def to_command(self, name: str, arguments: dict[str, Any]) -> DotCommand:
        tool = self.get(name)
        if tool is None or tool.build_command is None:
            raise UnknownToolError(name)
        return tool.build_command(arguments)

    def query(self, name: str, arguments: dict[str, Any], chunks: list[Chunk]) -> dict[str, Any]:
        tool = self.get(name)
        if tool is None or tool.query is None:
            raise UnknownToolError(name)
        return tool.query(arguments, chunks)

    def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        chunks: list[Chunk],
        config: EditorConfig | None = None,
    ) -> dict[str, Any]:
        tool = self.get(name)
        if tool is None:
            raise UnknownToolError(name)
        if not tool.mutating:
            return self.query(name, arguments, chunks)

        command = self.to_command(name, arguments)
        apply_command(chunks, command, config)
        logger.debug("Tool %s applied %s", name, command.action)
        return {"status": "ok", "command": command_to_dict(command)}
