"""Read-only tools answering questions about a chunk list."""

from __future__ import annotations

from typing import Any

from graph_delta.chunks import Chunk, ChunkKind, find_node, find_subgraph, names_node
from graph_delta.errors import NodeNotFoundError
from graph_delta.tools.mutations import require
from graph_delta.tools.registry import RegisteredTool, ToolDefinition


def get_node(params: dict[str, Any], chunks: list[Chunk]) -> dict[str, Any]:
    node_id = require("get_node", params, "id")
    index = find_node(chunks, node_id)
    if index is None:
        raise NodeNotFoundError(node_id)
    return {"id": node_id, "attrs": dict(chunks[index].attrs), "type": "node"}


def list_nodes(params: dict[str, Any], chunks: list[Chunk]) -> dict[str, Any]:
    nodes = [chunk for chunk in chunks if chunk.kind == ChunkKind.NODE]
    parent = params.get("parent")
    if parent:
        index = find_subgraph(chunks, parent)
        if index is None:
            nodes = []
        else:
            container = chunks[index]
            nodes = [node for node in nodes if node.placed and container.contains(node)]
    return {"nodes": [{"id": node.id, "attrs": dict(node.attrs)} for node in nodes]}


def get_edges(params: dict[str, Any], chunks: list[Chunk]) -> dict[str, Any]:
    """All edges, or only those touching ``node`` when given."""
    node = params.get("node")
    edges = []
    for chunk in chunks:
        if chunk.kind != ChunkKind.EDGE:
            continue
        if node and not (names_node(chunk.id, node) or names_node(chunk.extra, node)):
            continue
        edges.append({"from": chunk.id, "to": chunk.extra, "attrs": dict(chunk.attrs)})
    return {"edges": edges}


def query_tools() -> list[RegisteredTool]:
    return [
        RegisteredTool(
            definition=ToolDefinition(
                name="get_node",
                description="Return the attributes of one node.",
                parameters={
                    "type": "object",
                    "properties": {"id": {"type": "string"}},
                    "required": ["id"],
                },
            ),
            query=get_node,
        ),
        RegisteredTool(
            definition=ToolDefinition(
                name="list_nodes",
                description="List nodes, optionally only those inside one subgraph.",
                parameters={
                    "type": "object",
                    "properties": {"parent": {"type": "string"}},
                    "required": [],
                },
            ),
            query=list_nodes,
        ),
        RegisteredTool(
            definition=ToolDefinition(
                name="get_edges",
                description="List edges, optionally only those touching one node.",
                parameters={
                    "type": "object",
                    "properties": {"node": {"type": "string"}},
                    "required": [],
                },
            ),
            query=get_edges,
        ),
    ]
