import json

import pytest

from graph_delta.chunks import ChunkKind, find_edge, find_node, parse_dot_to_chunks
from graph_delta.commands import (
    CreateEdge,
    CreateNode,
    CreateSubgraph,
    DeleteAttr,
    DeleteEdge,
    DeleteNode,
    DeleteSubgraph,
    SetEdgeDefault,
    SetGraphAttr,
    SetNodeDefault,
    UpdateEdge,
    UpdateNode,
    apply_command,
    apply_commands,
    apply_commands_atomic,
    command_json_schema,
    command_to_json,
    parse_command,
    parse_commands,
)
from graph_delta.config import EditorConfig
from graph_delta.errors import (
    AttributeNotFoundError,
    EdgeAlreadyExistsError,
    EdgeNotFoundError,
    NodeAlreadyExistsError,
    NodeNotFoundError,
    ParentSubgraphNotFoundError,
    ParseError,
    SubgraphAlreadyExistsError,
    SubgraphNotFoundError,
)
from graph_delta.serializer import chunks_to_complete_dot

SIMPLE = """digraph G {
    A;
    subgraph cluster_x {
        B;
    }
    C;
}
"""

EXAMPLE = 'digraph Example { A [label="Node A"]; B [label="Node B"]; A -> B [label="edge"]; }'


def test_create_node_in_parent_lands_after_last_child():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateNode(id="N", parent="cluster_x"))

    assert [chunk.id for chunk in chunks] == ["A", "cluster_x", "B", "N", "C"]
    assert chunks_to_complete_dot(chunks) == (
        "digraph G {\n"
        "    A;\n"
        "    subgraph cluster_x {\n"
        "        B;\n"
        "        N;\n"
        "    }\n"
        "    C;\n"
        "}\n"
    )


def test_create_node_top_level_follows_last_top_level_node():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateNode(id="D", attrs={"shape": "box"}))

    assert [chunk.id for chunk in chunks] == ["A", "cluster_x", "B", "C", "D"]
    assert chunks_to_complete_dot(chunks).endswith("    C;\n    D [shape=box];\n}\n")


def test_create_node_without_existing_nodes_appends():
    chunks = parse_dot_to_chunks("digraph {\n  a -> b;\n}")

    apply_command(chunks, CreateNode(id="c"))

    assert chunks[-1].id == "c"
    assert chunks[-1].range == (3, 3)


def test_create_node_errors_leave_chunks_untouched():
    chunks = parse_dot_to_chunks(SIMPLE)
    before = [chunk.copy() for chunk in chunks]

    with pytest.raises(NodeAlreadyExistsError):
        apply_command(chunks, CreateNode(id="A"))
    with pytest.raises(ParentSubgraphNotFoundError):
        apply_command(chunks, CreateNode(id="Z", parent="cluster_missing"))

    assert chunks == before


def test_create_then_delete_node_restores_chunks():
    chunks = parse_dot_to_chunks(SIMPLE)
    count = len(chunks)

    apply_command(chunks, CreateNode(id="C2", parent="cluster_x"))
    apply_command(chunks, DeleteNode(id="C2"))

    assert len(chunks) == count
    assert all(chunk.id != "C2" for chunk in chunks)


def test_update_node_merge_is_right_biased():
    chunks = parse_dot_to_chunks('digraph { n [a=1, b=2] }')

    apply_command(chunks, UpdateNode(id="n", attrs={"b": "3", "c": "4"}))

    assert chunks[0].attrs == {"a": "1", "b": "3", "c": "4"}


def test_update_node_fails_when_missing_unless_upsert():
    chunks = parse_dot_to_chunks(SIMPLE)

    with pytest.raises(NodeNotFoundError):
        apply_command(chunks, UpdateNode(id="Z", attrs={"color": "red"}))

    apply_command(chunks, UpdateNode(id="Z", attrs={"color": "red"}, upsert=True))
    assert chunks[find_node(chunks, "Z")].attrs == {"color": "red"}


def test_delete_node_keeps_edges_unless_cascade():
    source = "digraph {\n a; b; c;\n a -> b; b -> c; { rank=same; a; b }\n}"
    chunks = parse_dot_to_chunks(source)

    apply_command(chunks, DeleteNode(id="a"))
    assert find_edge(chunks, "a", "b") is not None

    chunks = parse_dot_to_chunks(source)
    apply_command(chunks, DeleteNode(id="b", cascade=True))
    assert [chunk.kind for chunk in chunks].count(ChunkKind.EDGE) == 0
    rank = next(chunk for chunk in chunks if chunk.kind == ChunkKind.RANK)
    assert rank.extra == "a"

    with pytest.raises(NodeNotFoundError):
        apply_command(chunks, DeleteNode(id="b"))


def test_cascade_matches_edge_endpoints_with_ports():
    chunks = parse_dot_to_chunks("digraph { a; b; a:p1 -> b; ab -> b }")

    apply_command(chunks, DeleteNode(id="a", cascade=True))

    assert [(chunk.id, chunk.extra) for chunk in chunks if chunk.kind == ChunkKind.EDGE] == [
        ("ab", "b")
    ]


def test_create_edge_twice_fails_and_update_edge_upserts():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateEdge(source="A", target="B"))
    with pytest.raises(EdgeAlreadyExistsError):
        apply_command(chunks, CreateEdge(source="A", target="B"))

    apply_command(chunks, UpdateEdge(source="B", target="C", attrs={"color": "red"}))
    assert chunks[find_edge(chunks, "B", "C")].attrs == {"color": "red"}

    apply_command(chunks, UpdateEdge(source="A", target="B", attrs={"style": "bold"}))
    assert chunks[find_edge(chunks, "A", "B")].attrs == {"style": "bold"}


def test_update_edge_can_refuse_to_create():
    chunks = parse_dot_to_chunks(SIMPLE)

    with pytest.raises(EdgeNotFoundError):
        apply_command(chunks, UpdateEdge(source="A", target="C", upsert=False))


def test_new_top_level_edges_follow_existing_edges():
    chunks = parse_dot_to_chunks("digraph {\n  a;\n  a -> b;\n  c;\n}")

    apply_command(chunks, CreateEdge(source="b", target="c"))

    assert [(chunk.id, chunk.extra) for chunk in chunks if chunk.kind == ChunkKind.EDGE] == [
        ("a", "b"),
        ("b", "c"),
    ]
    assert find_edge(chunks, "b", "c") == 2


def test_delete_edge_removes_only_that_edge():
    chunks = parse_dot_to_chunks("digraph { a -> b -> c }")

    apply_command(chunks, DeleteEdge(source="a", target="b"))

    assert [(chunk.id, chunk.extra) for chunk in chunks] == [("b", "c")]
    with pytest.raises(EdgeNotFoundError):
        apply_command(chunks, DeleteEdge(source="a", target="b"))


def test_create_subgraph_top_level_uses_placeholder_window():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateSubgraph(id="cluster_new", attrs={"label": "New"}))

    assert chunks[-1].range == (7, 17)
    with pytest.raises(SubgraphAlreadyExistsError):
        apply_command(chunks, CreateSubgraph(id="cluster_new"))

    apply_command(chunks, CreateNode(id="N", parent="cluster_new"))
    assert chunks_to_complete_dot(chunks).endswith(
        "    C;\n"
        "    subgraph cluster_new {\n"
        "        graph [label=New];\n"
        "        N;\n"
        "    }\n"
        "}\n"
    )


def test_window_size_comes_from_config():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateSubgraph(id="s"), EditorConfig(subgraph_window=3))

    assert chunks[-1].range == (7, 10)


def test_anonymous_subgraphs_skip_duplicate_check():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, CreateSubgraph())
    apply_command(chunks, CreateSubgraph())

    assert [chunk.id for chunk in chunks[-2:]] == [None, None]


def test_nested_subgraph_borrows_parent_interior():
    chunks = parse_dot_to_chunks("digraph G {\n    A;\n}\n")

    apply_command(chunks, CreateSubgraph(id="cluster_outer"))
    apply_command(chunks, CreateSubgraph(id="cluster_inner", parent="cluster_outer"))
    assert [chunk.range for chunk in chunks] == [(2, 2), (3, 13), (4, 12)]

    apply_command(chunks, CreateNode(id="X", parent="cluster_inner"))
    apply_command(chunks, CreateNode(id="Y", parent="cluster_outer"))

    assert chunks_to_complete_dot(chunks) == (
        "digraph G {\n"
        "    A;\n"
        "    subgraph cluster_outer {\n"
        "        subgraph cluster_inner {\n"
        "            X;\n"
        "        }\n"
        "        Y;\n"
        "    }\n"
        "}\n"
    )


def test_delete_subgraph_cascades_by_range_containment():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, DeleteSubgraph(id="cluster_x"))

    assert [chunk.id for chunk in chunks] == ["A", "C"]
    with pytest.raises(SubgraphNotFoundError):
        apply_command(chunks, DeleteSubgraph(id="cluster_x"))


def test_graph_attributes_are_set_updated_and_deleted():
    chunks = parse_dot_to_chunks(SIMPLE)

    apply_command(chunks, SetGraphAttr(key="rankdir", value="LR"))
    apply_command(chunks, SetGraphAttr(key="rankdir", value="TB"))

    assert chunks[0].kind == ChunkKind.ID_EQ
    assert chunks[0].extra == "TB"
    assert chunks_to_complete_dot(chunks).startswith("digraph G {\n    rankdir = TB;\n")

    apply_command(chunks, DeleteAttr(key="rankdir"))
    assert all(chunk.kind != ChunkKind.ID_EQ for chunk in chunks)
    with pytest.raises(AttributeNotFoundError):
        apply_command(chunks, DeleteAttr(key="rankdir"))


def test_graph_attributes_inside_graph_statement_and_subgraphs():
    chunks = parse_dot_to_chunks(
        "digraph {\n graph [bgcolor=white, label=Top];\n subgraph s {\n  color = red;\n }\n}"
    )

    apply_command(chunks, SetGraphAttr(key="bgcolor", value="black"))
    assert chunks[0].attrs == {"bgcolor": "black", "label": "Top"}

    # Only top-level statements count as graph attributes.
    with pytest.raises(AttributeNotFoundError):
        apply_command(chunks, DeleteAttr(key="color"))

    apply_command(chunks, DeleteAttr(key="label"))
    apply_command(chunks, DeleteAttr(key="bgcolor"))
    assert all(chunk.kind != ChunkKind.ATTR_STMT for chunk in chunks)


def test_defaults_merge_into_existing_statement_or_are_inserted():
    chunks = parse_dot_to_chunks("digraph {\n node [shape=box];\n a;\n}")

    apply_command(chunks, SetNodeDefault(attrs={"color": "red"}))
    apply_command(chunks, SetEdgeDefault(attrs="arrowhead=none"))

    assert chunks[0].attrs == {"shape": "box", "color": "red"}
    assert (chunks[1].kind, chunks[1].id, chunks[1].attrs) == (
        ChunkKind.ATTR_STMT,
        "edge",
        {"arrowhead": "none"},
    )
    assert chunks_to_complete_dot(chunks) == (
        "digraph G {\n"
        "    edge [arrowhead=none];\n"
        "    node [shape=box, color=red];\n"
        "    a;\n"
        "}\n"
    )


def test_html_label_scenario_keeps_label_unquoted():
    chunks = parse_dot_to_chunks(EXAMPLE)

    apply_command(
        chunks,
        CreateNode(
            id="HTMLNode",
            attrs="shape=plaintext label=<<table><tr><td>HTML</td></tr></table>>",
        ),
    )
    output = chunks_to_complete_dot(chunks, "Example")

    (node_line,) = [line.strip() for line in output.splitlines() if "HTMLNode" in line]
    assert node_line.startswith("HTMLNode [")
    assert "label=<<table><tr><td>HTML</td></tr></table>>" in node_line
    assert "shape=plaintext" in node_line
    assert '"<<table>' not in output


def test_html_label_alone_renders_bare():
    chunks = parse_dot_to_chunks(EXAMPLE)

    apply_command(chunks, CreateNode(id="HTMLNode", attrs="label=<<b>HTML</b>>"))

    assert "HTMLNode [label=<<b>HTML</b>>];" in chunks_to_complete_dot(chunks)


def test_batch_application_is_not_rolled_back():
    chunks = parse_dot_to_chunks(SIMPLE)

    result = apply_commands(
        chunks,
        [CreateNode(id="X"), CreateNode(id="A"), CreateEdge(source="X", target="A")],
    )

    assert not result.ok
    assert result.applied == 2
    assert [failure.index for failure in result.errors] == [1]
    assert isinstance(result.errors[0].error, NodeAlreadyExistsError)
    assert find_node(chunks, "X") is not None
    assert find_edge(chunks, "X", "A") is not None


def test_atomic_batch_commits_nothing_on_failure():
    chunks = parse_dot_to_chunks(SIMPLE)
    before = [chunk.copy() for chunk in chunks]

    with pytest.raises(NodeAlreadyExistsError):
        apply_commands_atomic(chunks, [CreateNode(id="X"), CreateNode(id="A")])
    assert chunks == before

    apply_commands_atomic(chunks, [CreateNode(id="X"), CreateEdge(source="X", target="A")])
    assert find_edge(chunks, "X", "A") is not None


def test_commands_parse_from_json_with_string_or_object_attrs():
    command = parse_command(
        '{"action":"create_node","id":"A","attrs":"label=\\"x\\" shape=box","parent":null}'
    )
    assert isinstance(command, CreateNode)
    assert command.attrs == {"label": "x", "shape": "box"}
    assert command.parent is None

    edge = parse_command(
        {"action": "update_edge", "from": "A", "to": "B", "attrs": {"penwidth": 2}}
    )
    assert isinstance(edge, UpdateEdge)
    assert (edge.source, edge.target, edge.attrs) == ("A", "B", {"penwidth": "2"})


def test_command_json_omits_absent_fields_and_uses_dot_attribute_strings():
    command = CreateEdge(source="A", target="B", attrs={"label": "go on"})
    payload = json.loads(command_to_json(command))

    assert payload == {"action": "create_edge", "from": "A", "to": "B", "attrs": 'label="go on"'}
    assert json.loads(command_to_json(DeleteNode(id="A"))) == {"action": "delete_node", "id": "A"}


def test_command_json_round_trips_through_parse():
    commands = [
        CreateNode(id="A", attrs={"label": "Hello world"}, parent="cluster_x"),
        SetGraphAttr(key="rankdir", value="LR"),
        SetNodeDefault(attrs={"shape": "box"}),
    ]
    payload = "[" + ",".join(command_to_json(command) for command in commands) + "]"

    parsed = parse_commands(payload)

    assert [type(command) for command in parsed] == [CreateNode, SetGraphAttr, SetNodeDefault]
    assert parsed[0].attrs == {"label": "Hello world"}
    assert parsed[0].parent == "cluster_x"


def test_invalid_commands_raise_parse_error():
    with pytest.raises(ParseError):
        parse_command('{"action": "explode", "id": "A"}')
    with pytest.raises(ParseError):
        parse_command('{"action": "create_edge", "from": "A"}')
    with pytest.raises(ParseError):
        parse_command({"action": "create_node", "id": "A", "attrs": "label="})
    with pytest.raises(ParseError):
        parse_commands("not json")


def test_command_json_schema_is_discriminated_on_action():
    schema = command_json_schema()

    assert schema["discriminator"]["propertyName"] == "action"
    assert set(schema["discriminator"]["mapping"]) >= {"create_node", "delete_attr"}
    edge_properties = schema["$defs"]["CreateEdge"]["properties"]
    assert {"from", "to", "attrs"} <= set(edge_properties)
