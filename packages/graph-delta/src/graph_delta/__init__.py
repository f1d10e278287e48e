from graph_delta.chunks import (
    Chunk,
    ChunkKind,
    ParsedDot,
    parse_attribute_string,
    parse_dot_document,
    parse_dot_to_chunks,
)
from graph_delta.commands import (
    BatchResult,
    CommandFailure,
    DotCommand,
    apply_command,
    apply_commands,
    apply_commands_atomic,
    command_json_schema,
    command_to_json,
    parse_command,
    parse_commands,
)
from graph_delta.config import EditorConfig
from graph_delta.document import DotDocument, edit_dot
from graph_delta.errors import GraphDeltaError, ParseError
from graph_delta.serializer import chunks_to_complete_dot

__all__ = [
    "BatchResult",
    "Chunk",
    "ChunkKind",
    "CommandFailure",
    "DotCommand",
    "DotDocument",
    "EditorConfig",
    "GraphDeltaError",
    "ParseError",
    "ParsedDot",
    "apply_command",
    "apply_commands",
    "apply_commands_atomic",
    "chunks_to_complete_dot",
    "command_json_schema",
    "command_to_json",
    "edit_dot",
    "parse_attribute_string",
    "parse_command",
    "parse_commands",
    "parse_dot_document",
    "parse_dot_to_chunks",
]
