"""Rebuild nested DOT text from a flat chunk list.

Chunks are sorted by start line and replayed through a stack of open
subgraph blocks: a block is closed as soon as a chunk starts after its end
line, so nesting is recovered from ranges alone.
"""

from __future__ import annotations

import re

from graph_delta.chunks import Chunk, ChunkKind
from graph_delta.config import EditorConfig

_BARE_ID = re.compile(r"[A-Za-z_\u0080-\U0010ffff][A-Za-z0-9_\u0080-\U0010ffff]*")
_NUMERAL = re.compile(r"-?(\.[0-9]+|[0-9]+(\.[0-9]*)?)")
_KEYWORDS = {"node", "edge", "graph", "digraph", "subgraph", "strict"}


def quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def is_html(value: str) -> bool:
    return value.startswith("<") and value.endswith(">")


def format_attr_value(value: str) -> str:
    if is_html(value):
        return value
    if not value or any(not char.isalnum() for char in value):
        return quote(value)
    return value


def format_id(identifier: str) -> str:
    if is_html(identifier):
        return identifier
    if identifier.lower() in _KEYWORDS:
        return quote(identifier)
    if _BARE_ID.fullmatch(identifier) or _NUMERAL.fullmatch(identifier):
        return identifier
    return quote(identifier)


def format_endpoint(endpoint: str) -> str:
    """Format an edge endpoint, keeping a ``:port[:compass]`` suffix unquoted."""
    formatted = format_id(endpoint)
    if formatted == endpoint or ":" not in endpoint:
        return formatted
    parts = endpoint.split(":")
    if len(parts) > 3 or not all(parts):
        return formatted
    return ":".join(format_id(part) for part in parts)


def format_attributes(attrs: dict[str, str]) -> str:
    return ", ".join(
        f"{format_id(key)}={format_attr_value(value)}" for key, value in attrs.items()
    )


def chunk_to_dot(chunk: Chunk, directed: bool = True) -> str:
    """Render one non-subgraph chunk as a single DOT statement."""
    attrs = format_attributes(chunk.attrs)
    attr_list = f" [{attrs}]" if attrs else ""

    if chunk.kind == ChunkKind.NODE:
        return f"{format_id(chunk.id or 'unknown')}{attr_list};"

    if chunk.kind == ChunkKind.EDGE:
        op = "->" if directed else "--"
        source = format_endpoint(chunk.id or "unknown")
        target = format_endpoint(chunk.extra or "unknown")
        return f"{source} {op} {target}{attr_list};"

    if chunk.kind == ChunkKind.ATTR_STMT:
        return f"{chunk.id or 'graph'} [{attrs}];"

    if chunk.kind == ChunkKind.ID_EQ:
        key = format_id(chunk.id or "unknown")
        return f"{key} = {format_attr_value(chunk.extra or '')};"

    if chunk.kind == ChunkKind.RANK:
        nodes = [node for node in (chunk.extra or "").split(",") if node]
        members = "; ".join(quote(node) for node in nodes)
        return f"{{ rank={format_attr_value(chunk.id or 'same')}; {members} }}"

    if chunk.kind == ChunkKind.SUBGRAPH:
        if chunk.id is None:
            return "subgraph {"
        return f"subgraph {format_id(chunk.id)} {{"

    raise ValueError(f"Unknown chunk kind: {chunk.kind!r}")


def chunks_to_complete_dot(
    chunks: list[Chunk],
    graph_name: str | None = None,
    *,
    directed: bool = True,
    strict: bool = False,
    config: EditorConfig | None = None,
) -> str:
    config = config or EditorConfig()
    indent = config.indent
    keyword = "digraph" if directed else "graph"
    header = f"{keyword} {format_id(graph_name or config.graph_name)} {{"
    lines = [f"strict {header}" if strict else header]

    ordered = sorted(chunks, key=lambda chunk: chunk.start)
    stack: list[tuple[str | None, int, int]] = []

    for chunk in ordered:
        while stack and chunk.start > stack[-1][2]:
            stack.pop()
            lines.append(f"{indent * (len(stack) + 1)}}}")

        prefix = indent * (len(stack) + 1)
        lines.append(prefix + chunk_to_dot(chunk, directed))

        if chunk.kind == ChunkKind.SUBGRAPH:
            if chunk.attrs:
                lines.append(f"{prefix}{indent}graph [{format_attributes(chunk.attrs)}];")
            if chunk.placed:
                stack.append((chunk.id, chunk.start, chunk.end))
            else:
                lines.append(f"{prefix}}}")

    while stack:
        stack.pop()
        lines.append(f"{indent * (len(stack) + 1)}}}")

    lines.append("}")
    return "\n".join(lines) + "\n"
