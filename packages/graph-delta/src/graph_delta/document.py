from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from graph_delta import commands as dot
from graph_delta import dsl
from graph_delta.chunks import Chunk, parse_dot_document
from graph_delta.config import EditorConfig
from graph_delta.serializer import chunks_to_complete_dot
from graph_delta.tools import ToolCall, execute_tool_call


@dataclass(slots=True)
class DotDocument:
    """A parsed DOT graph plus the header details needed to write it back."""

    name: str | None
    chunks: list[Chunk] = field(default_factory=list)
    directed: bool = True
    strict: bool = False
    config: EditorConfig = field(default_factory=EditorConfig)

    @classmethod
    def parse(cls, source: str, config: EditorConfig | None = None) -> DotDocument:
        parsed = parse_dot_document(source)
        return cls(
            name=parsed.name,
            chunks=parsed.chunks,
            directed=parsed.directed,
            strict=parsed.strict,
            config=config or EditorConfig(),
        )

    def apply(self, command: dot.DotCommand) -> None:
        dot.apply_command(self.chunks, command, self.config)

    def apply_all(
        self, commands: Iterable[dot.DotCommand], *, atomic: bool = False
    ) -> dot.BatchResult:
        if atomic:
            commands = list(commands)
            dot.apply_commands_atomic(self.chunks, commands, self.config)
            return dot.BatchResult(applied=len(commands))
        return dot.apply_commands(self.chunks, commands, self.config)

    def apply_dsl(self, source: str) -> dot.BatchResult:
        return dsl.apply_dsl(self.chunks, source, self.config)

    def call_tool(self, call: ToolCall | str | Mapping[str, Any]) -> dict[str, Any]:
        return execute_tool_call(self.chunks, call, self.config)

    def to_dot(self) -> str:
        return chunks_to_complete_dot(
            self.chunks,
            self.name,
            directed=self.directed,
            strict=self.strict,
            config=self.config,
        )


def edit_dot(
    source: str,
    commands: Iterable[dot.DotCommand | Mapping[str, Any]] = (),
    dsl_source: str | None = None,
    config: EditorConfig | None = None,
) -> str:
    """Parse, apply JSON commands then DSL text, and serialize.

    Raises the first failure, so no partially edited text is returned.
    """
    document = DotDocument.parse(source, config)
    parsed = [
        dot.parse_command(command) if isinstance(command, Mapping) else command
        for command in commands
    ]
    document.apply_all(parsed, atomic=True)

    if dsl_source:
        result = document.apply_dsl(dsl_source)
        if not result.ok:
            raise result.errors[0].error
    return document.to_dot()
