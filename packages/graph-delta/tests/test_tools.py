import json

import pytest

from graph_delta.chunks import find_edge, find_node, find_subgraph, parse_dot_to_chunks
from graph_delta.commands import CreateEdge, CreateNode, CreateSubgraph, DeleteNode, UpdateNode
from graph_delta.errors import (
    MissingParameterError,
    NodeNotFoundError,
    ParseError,
    UnknownToolError,
)
from graph_delta.tools import (
    RegisteredTool,
    ToolCall,
    ToolDefinition,
    ToolRegistry,
    default_registry,
    execute_query_tool,
    execute_tool_call,
    get_system_prompt,
    get_tool_definitions,
    parse_tool_call,
    tool_call_to_command,
)

GRAPH = """digraph G {
    A [label="Alpha"];
    subgraph cluster_db {
        B [shape=cylinder];
        subgraph cluster_replica {
            C;
        }
    }
    A -> B [label="reads"];
    B -> C;
}
"""


def test_tool_definitions_cover_queries_and_mutations():
    names = [definition.name for definition in get_tool_definitions()]

    assert names == sorted(names)
    assert set(names) == {
        "create_cluster",
        "create_edge",
        "create_node",
        "delete_cluster",
        "delete_edge",
        "delete_node",
        "get_edges",
        "get_node",
        "list_nodes",
        "set_graph_attr",
        "update_edge",
        "update_node",
    }
    create_edge = next(d for d in get_tool_definitions() if d.name == "create_edge")
    assert create_edge.parameters["required"] == ["from", "to"]
    assert create_edge.to_dict()["name"] == "create_edge"


def test_create_node_tool_builds_attributes_from_named_and_free_parameters():
    command = tool_call_to_command(
        "create_node",
        {"id": "X", "label": "Hello", "attrs": 'style=filled label="ignored"', "parent": ""},
    )

    assert isinstance(command, CreateNode)
    assert command.id == "X"
    assert command.attrs == {"style": "filled", "label": "Hello"}
    assert command.parent is None


def test_mutation_tools_map_to_commands():
    edge = tool_call_to_command("create_edge", {"from": "A", "to": "B", "color": "red"})
    assert isinstance(edge, CreateEdge)
    assert (edge.source, edge.target, edge.attrs) == ("A", "B", {"color": "red"})

    update = tool_call_to_command("update_node", {"id": "A", "shape": "box"})
    assert isinstance(update, UpdateNode)
    assert update.attrs == {"shape": "box"}

    delete = tool_call_to_command("delete_node", {"id": "A", "cascade": True})
    assert isinstance(delete, DeleteNode)
    assert delete.cascade is True

    cluster = tool_call_to_command("create_cluster", {"id": "cache", "label": "Cache"})
    assert isinstance(cluster, CreateSubgraph)
    assert cluster.id == "cluster_cache"
    assert cluster.attrs == {"label": "Cache"}


def test_missing_parameters_and_unknown_tools():
    with pytest.raises(MissingParameterError) as excinfo:
        tool_call_to_command("create_edge", {"from": "A"})
    assert excinfo.value.parameter == "to"

    with pytest.raises(MissingParameterError):
        tool_call_to_command("update_node", {"id": "A"})

    with pytest.raises(UnknownToolError, match="Unknown tool: explode"):
        tool_call_to_command("explode", {})
    with pytest.raises(UnknownToolError):
        tool_call_to_command("get_node", {"id": "A"})
    with pytest.raises(UnknownToolError):
        execute_query_tool("create_node", {"id": "A"}, [])


def test_get_node_query():
    chunks = parse_dot_to_chunks(GRAPH)

    assert execute_query_tool("get_node", {"id": "A"}, chunks) == {
        "id": "A",
        "attrs": {"label": "Alpha"},
        "type": "node",
    }
    with pytest.raises(NodeNotFoundError):
        execute_query_tool("get_node", {"id": "missing"}, chunks)


def test_list_nodes_filters_by_parent_range():
    chunks = parse_dot_to_chunks(GRAPH)

    everything = execute_query_tool("list_nodes", {}, chunks)
    in_db = execute_query_tool("list_nodes", {"parent": "cluster_db"}, chunks)
    in_replica = execute_query_tool("list_nodes", {"parent": "cluster_replica"}, chunks)

    assert [node["id"] for node in everything["nodes"]] == ["A", "B", "C"]
    assert [node["id"] for node in in_db["nodes"]] == ["B", "C"]
    assert in_replica == {"nodes": [{"id": "C", "attrs": {}}]}
    assert execute_query_tool("list_nodes", {"parent": "cluster_nope"}, chunks) == {"nodes": []}


def test_get_edges_query_optionally_filters_by_node():
    chunks = parse_dot_to_chunks(GRAPH)

    assert execute_query_tool("get_edges", {}, chunks) == {
        "edges": [
            {"from": "A", "to": "B", "attrs": {"label": "reads"}},
            {"from": "B", "to": "C", "attrs": {}},
        ]
    }
    only_c = execute_query_tool("get_edges", {"node": "C"}, chunks)
    assert only_c == {"edges": [{"from": "B", "to": "C", "attrs": {}}]}


def test_get_edges_node_filter_matches_ported_endpoints():
    chunks = parse_dot_to_chunks("digraph { a:p1 -> b; b -> c:s; ab -> c }")

    touching_a = execute_query_tool("get_edges", {"node": "a"}, chunks)
    touching_c = execute_query_tool("get_edges", {"node": "c"}, chunks)

    assert touching_a == {"edges": [{"from": "a:p1", "to": "b", "attrs": {}}]}
    assert [edge["from"] for edge in touching_c["edges"]] == ["b", "ab"]


def test_queries_do_not_mutate_chunks():
    chunks = parse_dot_to_chunks(GRAPH)
    before = [chunk.copy() for chunk in chunks]

    execute_query_tool("list_nodes", {"parent": "cluster_db"}, chunks)
    execute_query_tool("get_edges", {}, chunks)
    execute_query_tool("get_node", {"id": "B"}, chunks)["attrs"]["shape"] = "changed"

    assert chunks == before


def test_parse_tool_call_accepts_parameters_or_arguments():
    call = parse_tool_call('{"name": "get_node", "parameters": {"id": "A"}}')
    assert call == ToolCall(name="get_node", arguments={"id": "A"})

    encoded = parse_tool_call(
        {"name": "create_node", "arguments": json.dumps({"id": "B", "label": "Bee"})}
    )
    assert encoded.arguments == {"id": "B", "label": "Bee"}

    assert parse_tool_call({"name": "list_nodes"}).arguments == {}

    with pytest.raises(ParseError):
        parse_tool_call('{"parameters": {}}')
    with pytest.raises(ParseError):
        parse_tool_call({"name": "x", "arguments": "{not json"})


def test_execute_tool_call_dispatches_queries_and_mutations():
    chunks = parse_dot_to_chunks(GRAPH)

    result = execute_tool_call(
        chunks, {"name": "create_node", "parameters": {"id": "D", "parent": "cluster_db"}}
    )
    assert result == {
        "status": "ok",
        "command": {"action": "create_node", "id": "D", "attrs": "", "parent": "cluster_db"},
    }
    assert find_node(chunks, "D") is not None

    execute_tool_call(chunks, '{"name": "create_edge", "arguments": {"from": "D", "to": "A"}}')
    assert find_edge(chunks, "D", "A") is not None

    execute_tool_call(chunks, {"name": "delete_cluster", "parameters": {"id": "replica"}})
    assert find_subgraph(chunks, "cluster_replica") is None
    assert find_node(chunks, "C") is None

    listed = execute_tool_call(
        chunks, {"name": "list_nodes", "parameters": {"parent": "cluster_db"}}
    )
    assert [node["id"] for node in listed["nodes"]] == ["B", "D"]


def test_registry_can_be_extended():
    registry = default_registry()
    registry.register(
        RegisteredTool(
            definition=ToolDefinition(
                name="count_chunks", description="Count chunks.", parameters={}
            ),
            query=lambda params, chunks: {"count": len(chunks)},
        )
    )

    assert registry.execute("count_chunks", {}, parse_dot_to_chunks(GRAPH)) == {"count": 7}

    registry.unregister("count_chunks")
    assert registry.get("count_chunks") is None
    assert ToolRegistry().names() == []


def test_system_prompt_lists_tools():
    prompt = get_system_prompt()

    assert "- get_edges:" in prompt
    assert "- create_cluster:" in prompt
    assert prompt.index("Read-only tools") < prompt.index("- get_node:")
    assert prompt.index("Editing tools") < prompt.index("- update_edge:")
