"""Tools that translate a call into a ``DotCommand``."""

from __future__ import annotations

from typing import Any

from graph_delta.chunks import parse_attribute_string
from graph_delta.commands import (
    CreateEdge,
    CreateNode,
    CreateSubgraph,
    DeleteEdge,
    DeleteNode,
    DeleteSubgraph,
    DotCommand,
    SetGraphAttr,
    UpdateEdge,
    UpdateNode,
)
from graph_delta.dsl import normalize_cluster_id
from graph_delta.errors import MissingParameterError
from graph_delta.tools.registry import RegisteredTool, ToolDefinition

NAMED_ATTRIBUTES = ("label", "shape", "color")

_STRING = {"type": "string"}
_ATTRS = {
    "type": "string",
    "description": 'Extra DOT attributes, e.g. style=filled fillcolor="#eeeeee"',
}
_PARENT = {"type": "string", "description": "Subgraph to place the element in"}


def require(tool: str, params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if value is None or value == "":
        raise MissingParameterError(tool, key)
    return str(value)


def collect_attributes(
    params: dict[str, Any], names: tuple[str, ...] = NAMED_ATTRIBUTES
) -> dict[str, str]:
    """Free-form ``attrs`` first, then the named parameters on top."""
    attrs: dict[str, str] = {}
    extra = params.get("attrs")
    if isinstance(extra, str) and extra.strip():
        attrs.update(parse_attribute_string(extra))
    elif isinstance(extra, dict):
        attrs.update({str(key): str(value) for key, value in extra.items()})
    for name in names:
        value = params.get(name)
        if value is not None:
            attrs[name] = str(value)
    return attrs


def _create_node(params: dict[str, Any]) -> DotCommand:
    return CreateNode(
        id=require("create_node", params, "id"),
        attrs=collect_attributes(params),
        parent=params.get("parent") or None,
    )


def _update_node(params: dict[str, Any]) -> DotCommand:
    node_id = require("update_node", params, "id")
    attrs = collect_attributes(params)
    if not attrs:
        raise MissingParameterError("update_node", "label")
    return UpdateNode(id=node_id, attrs=attrs)


def _delete_node(params: dict[str, Any]) -> DotCommand:
    return DeleteNode(
        id=require("delete_node", params, "id"),
        cascade=params.get("cascade"),
    )


def _create_edge(params: dict[str, Any]) -> DotCommand:
    return CreateEdge(
        source=require("create_edge", params, "from"),
        target=require("create_edge", params, "to"),
        attrs=collect_attributes(params, ("label", "color")),
        parent=params.get("parent") or None,
    )


def _update_edge(params: dict[str, Any]) -> DotCommand:
    return UpdateEdge(
        source=require("update_edge", params, "from"),
        target=require("update_edge", params, "to"),
        attrs=collect_attributes(params, ("label", "color")),
    )


def _delete_edge(params: dict[str, Any]) -> DotCommand:
    return DeleteEdge(
        source=require("delete_edge", params, "from"),
        target=require("delete_edge", params, "to"),
    )


def _create_cluster(params: dict[str, Any]) -> DotCommand:
    parent = params.get("parent") or None
    return CreateSubgraph(
        id=normalize_cluster_id(require("create_cluster", params, "id")),
        parent=normalize_cluster_id(parent) if parent else None,
        attrs=collect_attributes(params, ("label", "color")),
    )


def _delete_cluster(params: dict[str, Any]) -> DotCommand:
    return DeleteSubgraph(id=normalize_cluster_id(require("delete_cluster", params, "id")))


def _set_graph_attr(params: dict[str, Any]) -> DotCommand:
    return SetGraphAttr(
        key=require("set_graph_attr", params, "key"),
        value=require("set_graph_attr", params, "value"),
    )


def _definition(
    name: str, description: str, properties: dict[str, Any], required: list[str]
) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        parameters={"type": "object", "properties": properties, "required": required},
    )


def mutation_tools() -> list[RegisteredTool]:
    return [
        RegisteredTool(
            definition=_definition(
                "create_node",
                "Add a new node to the graph.",
                {
                    "id": {"type": "string", "description": "Unique node id"},
                    "label": _STRING,
                    "shape": {"type": "string", "description": "box, ellipse, diamond, ..."},
                    "color": _STRING,
                    "parent": _PARENT,
                    "attrs": _ATTRS,
                },
                ["id"],
            ),
            build_command=_create_node,
        ),
        RegisteredTool(
            definition=_definition(
                "update_node",
                "Change attributes of an existing node. Only the given attributes change.",
                {
                    "id": _STRING,
                    "label": _STRING,
                    "shape": _STRING,
                    "color": _STRING,
                    "attrs": _ATTRS,
                },
                ["id"],
            ),
            build_command=_update_node,
        ),
        RegisteredTool(
            definition=_definition(
                "delete_node",
                "Remove a node. Set cascade to also remove its edges.",
                {"id": _STRING, "cascade": {"type": "boolean"}},
                ["id"],
            ),
            build_command=_delete_node,
        ),
        RegisteredTool(
            definition=_definition(
                "create_edge",
                "Connect two nodes with a new edge.",
                {
                    "from": {"type": "string", "description": "Source node id"},
                    "to": {"type": "string", "description": "Target node id"},
                    "label": _STRING,
                    "color": _STRING,
                    "parent": _PARENT,
                    "attrs": _ATTRS,
                },
                ["from", "to"],
            ),
            build_command=_create_edge,
        ),
        RegisteredTool(
            definition=_definition(
                "update_edge",
                "Change attributes of an edge, creating it if it does not exist.",
                {
                    "from": _STRING,
                    "to": _STRING,
                    "label": _STRING,
                    "color": _STRING,
                    "attrs": _ATTRS,
                },
                ["from", "to"],
            ),
            build_command=_update_edge,
        ),
        RegisteredTool(
            definition=_definition(
                "delete_edge",
                "Remove the edge between two nodes.",
                {"from": _STRING, "to": _STRING},
                ["from", "to"],
            ),
            build_command=_delete_edge,
        ),
        RegisteredTool(
            definition=_definition(
                "create_cluster",
                "Create a boxed group (cluster subgraph). The id gets a cluster_ prefix.",
                {
                    "id": _STRING,
                    "label": _STRING,
                    "color": _STRING,
                    "parent": {"type": "string", "description": "Cluster to nest it in"},
                    "attrs": _ATTRS,
                },
                ["id"],
            ),
            build_command=_create_cluster,
        ),
        RegisteredTool(
            definition=_definition(
                "delete_cluster",
                "Remove a cluster together with everything inside it.",
                {"id": _STRING},
                ["id"],
            ),
            build_command=_delete_cluster,
        ),
        RegisteredTool(
            definition=_definition(
                "set_graph_attr",
                "Set a graph-level attribute such as rankdir or label.",
                {"key": _STRING, "value": _STRING},
                ["key", "value"],
            ),
            build_command=_set_graph_attr,
        ),
    ]
