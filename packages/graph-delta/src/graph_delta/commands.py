"""Edit commands for DOT chunk lists.

``DotCommand`` is a tagged union keyed by ``action``. ``apply_command``
validates a command against the chunk list before touching it, so a
failing command leaves the list unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
    WithJsonSchema,
)

from graph_delta.chunks import (
    Chunk,
    ChunkKind,
    enclosing_subgraph,
    find_edge,
    find_node,
    find_subgraph,
    is_top_level,
    last_line,
    names_node,
    parse_attribute_string,
)
from graph_delta.config import EditorConfig
from graph_delta.errors import (
    AttributeNotFoundError,
    EdgeAlreadyExistsError,
    EdgeNotFoundError,
    GraphDeltaError,
    NodeAlreadyExistsError,
    NodeNotFoundError,
    ParentSubgraphNotFoundError,
    ParseError,
    SubgraphAlreadyExistsError,
    SubgraphNotFoundError,
)
from graph_delta.serializer import format_attributes

logger = logging.getLogger(__name__)


def _coerce_attrs(value: Any) -> Any:
    if isinstance(value, str):
        return parse_attribute_string(value)
    if isinstance(value, Mapping):
        return {str(key): str(item) for key, item in value.items()}
    return value


# Accepts `label="A" shape=box` or {"label": "A"}; always dumps the string form.
AttributeMap = Annotated[
    dict[str, str],
    BeforeValidator(_coerce_attrs),
    PlainSerializer(format_attributes, return_type=str),
    WithJsonSchema(
        {
            "anyOf": [
                {"type": "string", "description": 'DOT attributes, e.g. label="A" shape=box'},
                {"type": "object", "additionalProperties": {"type": "string"}},
            ]
        }
    ),
]


class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateNode(_Command):
    action: Literal["create_node"] = "create_node"
    id: str
    attrs: AttributeMap | None = None
    parent: str | None = Field(default=None, description="Parent subgraph, None = top level")


class UpdateNode(_Command):
    action: Literal["update_node"] = "update_node"
    id: str
    attrs: AttributeMap | None = None
    upsert: bool | None = Field(default=None, description="Create the node when missing")


class DeleteNode(_Command):
    action: Literal["delete_node"] = "delete_node"
    id: str
    cascade: bool | None = Field(default=None, description="Also remove incident edges")


class CreateEdge(_Command):
    action: Literal["create_edge"] = "create_edge"
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    attrs: AttributeMap | None = None
    parent: str | None = Field(default=None, description="Parent subgraph, None = top level")


class UpdateEdge(_Command):
    action: Literal["update_edge"] = "update_edge"
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    attrs: AttributeMap | None = None
    upsert: bool | None = Field(default=None, description="Create the edge when missing")


class DeleteEdge(_Command):
    action: Literal["delete_edge"] = "delete_edge"
    source: str = Field(alias="from")
    target: str = Field(alias="to")


class CreateSubgraph(_Command):
    action: Literal["create_subgraph"] = "create_subgraph"
    id: str | None = None
    parent: str | None = Field(default=None, description="Parent subgraph, None = top level")
    attrs: AttributeMap | None = None


class DeleteSubgraph(_Command):
    action: Literal["delete_subgraph"] = "delete_subgraph"
    id: str


class SetGraphAttr(_Command):
    action: Literal["set_graph_attr"] = "set_graph_attr"
    key: str
    value: str


class SetNodeDefault(_Command):
    action: Literal["set_node_default"] = "set_node_default"
    attrs: AttributeMap


class SetEdgeDefault(_Command):
    action: Literal["set_edge_default"] = "set_edge_default"
    attrs: AttributeMap


class DeleteAttr(_Command):
    action: Literal["delete_attr"] = "delete_attr"
    key: str


DotCommand = Annotated[
    Union[
        CreateNode,
        UpdateNode,
        DeleteNode,
        CreateEdge,
        UpdateEdge,
        DeleteEdge,
        CreateSubgraph,
        DeleteSubgraph,
        SetGraphAttr,
        SetNodeDefault,
        SetEdgeDefault,
        DeleteAttr,
    ],
    Field(discriminator="action"),
]

_COMMAND_ADAPTER: TypeAdapter[DotCommand] = TypeAdapter(DotCommand)
_COMMAND_LIST_ADAPTER: TypeAdapter[list[DotCommand]] = TypeAdapter(list[DotCommand])


def parse_command(payload: str | bytes | Mapping[str, Any]) -> DotCommand:
    """Read one command from JSON text or an already-decoded object."""
    try:
        if isinstance(payload, (str, bytes)):
            return _COMMAND_ADAPTER.validate_json(payload)
        return _COMMAND_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Invalid command: {exc}", cause=exc) from exc


def parse_commands(payload: str | bytes | list[Any]) -> list[DotCommand]:
    """Read a JSON array of commands."""
    try:
        if isinstance(payload, (str, bytes)):
            return _COMMAND_LIST_ADAPTER.validate_json(payload)
        return _COMMAND_LIST_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Invalid command list: {exc}", cause=exc) from exc


def command_to_dict(command: DotCommand) -> dict[str, Any]:
    return command.model_dump(mode="json", by_alias=True, exclude_none=True)


def command_to_json(command: DotCommand, indent: int | None = None) -> str:
    return command.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def command_json_schema() -> dict[str, Any]:
    return _COMMAND_ADAPTER.json_schema(by_alias=True)


# --- Application ---


@dataclass(slots=True)
class CommandFailure:
    index: int
    command: Any
    error: GraphDeltaError


@dataclass(slots=True)
class BatchResult:
    applied: int = 0
    errors: list[CommandFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def apply_command(
    chunks: list[Chunk], command: DotCommand, config: EditorConfig | None = None
) -> None:
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported command type: {type(command).__name__}")
    handler(chunks, command, config or EditorConfig())
    logger.debug("Applied %s", command.action)


def apply_commands(
    chunks: list[Chunk],
    commands: Iterable[DotCommand],
    config: EditorConfig | None = None,
) -> BatchResult:
    """Apply commands in order. Failures are collected; earlier effects stay."""
    result = BatchResult()
    for index, command in enumerate(commands):
        try:
            apply_command(chunks, command, config)
        except GraphDeltaError as exc:
            logger.warning("Command %d (%s) failed: %s", index, command.action, exc)
            result.errors.append(CommandFailure(index=index, command=command, error=exc))
        else:
            result.applied += 1
    return result


def apply_commands_atomic(
    chunks: list[Chunk],
    commands: Iterable[DotCommand],
    config: EditorConfig | None = None,
) -> None:
    """Apply all commands to a copy and commit only if every one succeeds."""
    working = [chunk.copy() for chunk in chunks]
    for command in commands:
        apply_command(working, command, config)
    chunks[:] = working


def _create_node(chunks: list[Chunk], command: CreateNode, config: EditorConfig) -> None:
    if find_node(chunks, command.id) is not None:
        raise NodeAlreadyExistsError(command.id)
    index, line = _placement(chunks, command.parent, ChunkKind.NODE)
    _insert(
        chunks,
        index,
        Chunk(kind=ChunkKind.NODE, id=command.id, attrs=dict(command.attrs or {})),
        line,
    )


def _update_node(chunks: list[Chunk], command: UpdateNode, config: EditorConfig) -> None:
    index = find_node(chunks, command.id)
    if index is None:
        if command.upsert:
            _create_node(chunks, CreateNode(id=command.id, attrs=command.attrs), config)
            return
        raise NodeNotFoundError(command.id)
    chunks[index].attrs.update(command.attrs or {})


def _delete_node(chunks: list[Chunk], command: DeleteNode, config: EditorConfig) -> None:
    index = find_node(chunks, command.id)
    if index is None:
        raise NodeNotFoundError(command.id)
    del chunks[index]
    if command.cascade:
        _drop_node_references(chunks, command.id)


def _create_edge(chunks: list[Chunk], command: CreateEdge, config: EditorConfig) -> None:
    if find_edge(chunks, command.source, command.target) is not None:
        raise EdgeAlreadyExistsError(command.source, command.target)
    index, line = _placement(chunks, command.parent, ChunkKind.EDGE)
    _insert(
        chunks,
        index,
        Chunk(
            kind=ChunkKind.EDGE,
            id=command.source,
            attrs=dict(command.attrs or {}),
            extra=command.target,
        ),
        line,
    )


def _update_edge(chunks: list[Chunk], command: UpdateEdge, config: EditorConfig) -> None:
    index = find_edge(chunks, command.source, command.target)
    if index is not None:
        chunks[index].attrs.update(command.attrs or {})
        return
    # Edges upsert unless told otherwise.
    if command.upsert is False:
        raise EdgeNotFoundError(command.source, command.target)
    create = CreateEdge(source=command.source, target=command.target, attrs=command.attrs)
    _create_edge(chunks, create, config)


def _delete_edge(chunks: list[Chunk], command: DeleteEdge, config: EditorConfig) -> None:
    index = find_edge(chunks, command.source, command.target)
    if index is None:
        raise EdgeNotFoundError(command.source, command.target)
    del chunks[index]


def _create_subgraph(chunks: list[Chunk], command: CreateSubgraph, config: EditorConfig) -> None:
    if command.id is not None and find_subgraph(chunks, command.id) is not None:
        raise SubgraphAlreadyExistsError(command.id)

    if command.parent is not None:
        parent_index = find_subgraph(chunks, command.parent)
        if parent_index is None:
            raise ParentSubgraphNotFoundError(command.parent)
        parent = chunks[parent_index]
        index = parent_index + 1
        line_range = (parent.start + 1, parent.end - 1)
    else:
        # Placeholder window; later insertions grow it as needed.
        line = last_line(chunks) + 1
        index = len(chunks)
        line_range = (line, line + config.subgraph_window)

    chunks.insert(
        index,
        Chunk(
            kind=ChunkKind.SUBGRAPH,
            id=command.id,
            attrs=dict(command.attrs or {}),
            range=line_range,
        ),
    )


def _delete_subgraph(chunks: list[Chunk], command: DeleteSubgraph, config: EditorConfig) -> None:
    index = find_subgraph(chunks, command.id)
    if index is None:
        raise SubgraphNotFoundError(command.id)
    subgraph = chunks[index]
    if not subgraph.placed:
        del chunks[index]
        return
    chunks[:] = [
        chunk
        for chunk in chunks
        if chunk is not subgraph and not (chunk.placed and subgraph.encloses(chunk))
    ]


def _set_graph_attr(chunks: list[Chunk], command: SetGraphAttr, config: EditorConfig) -> None:
    assignment = _top_level(chunks, ChunkKind.ID_EQ, command.key)
    if assignment is not None:
        assignment.extra = command.value
        return
    statement = _graph_attr_stmt_with(chunks, command.key)
    if statement is not None:
        statement.attrs[command.key] = command.value
        return
    chunks.insert(0, Chunk(kind=ChunkKind.ID_EQ, id=command.key, extra=command.value))


def _set_node_default(chunks: list[Chunk], command: SetNodeDefault, config: EditorConfig) -> None:
    _set_default(chunks, "node", command.attrs)


def _set_edge_default(chunks: list[Chunk], command: SetEdgeDefault, config: EditorConfig) -> None:
    _set_default(chunks, "edge", command.attrs)


def _delete_attr(chunks: list[Chunk], command: DeleteAttr, config: EditorConfig) -> None:
    assignment = _top_level(chunks, ChunkKind.ID_EQ, command.key)
    if assignment is not None:
        chunks.remove(assignment)
        return
    statement = _graph_attr_stmt_with(chunks, command.key)
    if statement is None:
        raise AttributeNotFoundError(command.key)
    del statement.attrs[command.key]
    if not statement.attrs:
        chunks.remove(statement)


_HANDLERS: dict[type, Callable[[list[Chunk], Any, EditorConfig], None]] = {
    CreateNode: _create_node,
    UpdateNode: _update_node,
    DeleteNode: _delete_node,
    CreateEdge: _create_edge,
    UpdateEdge: _update_edge,
    DeleteEdge: _delete_edge,
    CreateSubgraph: _create_subgraph,
    DeleteSubgraph: _delete_subgraph,
    SetGraphAttr: _set_graph_attr,
    SetNodeDefault: _set_node_default,
    SetEdgeDefault: _set_edge_default,
    DeleteAttr: _delete_attr,
}


# --- Primitives shared with the DSL interpreter ---


def rename_node(chunks: list[Chunk], old_id: str, new_id: str) -> None:
    """Rename a node and rewrite every edge endpoint and rank group naming it."""
    if old_id == new_id:
        return
    node_index = find_node(chunks, old_id)
    referenced = any(
        chunk.kind == ChunkKind.EDGE
        and (names_node(chunk.id, old_id) or names_node(chunk.extra, old_id))
        for chunk in chunks
    )
    if node_index is None and not referenced:
        raise NodeNotFoundError(old_id)
    if find_node(chunks, new_id) is not None:
        raise NodeAlreadyExistsError(new_id)

    if node_index is not None:
        chunks[node_index].id = new_id
    for chunk in chunks:
        if chunk.kind == ChunkKind.EDGE:
            chunk.id = _rename_endpoint(chunk.id, old_id, new_id)
            chunk.extra = _rename_endpoint(chunk.extra, old_id, new_id)
        elif chunk.kind == ChunkKind.RANK and chunk.extra:
            members = [new_id if member == old_id else member for member in chunk.extra.split(",")]
            chunk.extra = ",".join(members)
    logger.debug("Renamed node %s to %s", old_id, new_id)


def set_subgraph_attrs(chunks: list[Chunk], subgraph_id: str, attrs: dict[str, str]) -> None:
    """Merge attributes into a subgraph, updating its own statements when present."""
    index = find_subgraph(chunks, subgraph_id)
    if index is None:
        raise SubgraphNotFoundError(subgraph_id)
    subgraph = chunks[index]
    own = [chunk for chunk in chunks if enclosing_subgraph(chunks, chunk) is subgraph]

    for key, value in attrs.items():
        assignment = next(
            (c for c in own if c.kind == ChunkKind.ID_EQ and c.id == key),
            None,
        )
        if assignment is not None:
            assignment.extra = value
            continue
        statement = next(
            (c for c in own if c.kind == ChunkKind.ATTR_STMT and c.id == "graph"),
            None,
        )
        if statement is not None:
            statement.attrs[key] = value
        else:
            subgraph.attrs[key] = value


def dissolve_subgraph(chunks: list[Chunk], subgraph_id: str) -> None:
    """Remove a subgraph block and its own attributes, keeping its members."""
    index = find_subgraph(chunks, subgraph_id)
    if index is None:
        raise SubgraphNotFoundError(subgraph_id)
    subgraph = chunks[index]
    own_attributes = [
        chunk
        for chunk in chunks
        if chunk.kind in (ChunkKind.ID_EQ, ChunkKind.ATTR_STMT)
        and enclosing_subgraph(chunks, chunk) is subgraph
        and (chunk.kind == ChunkKind.ID_EQ or chunk.id == "graph")
    ]
    chunks[:] = [
        chunk
        for chunk in chunks
        if chunk is not subgraph and not any(chunk is own for own in own_attributes)
    ]


def add_rank_group(chunks: list[Chunk], rank: str, nodes: list[str]) -> None:
    line = last_line(chunks) + 1
    chunks.append(
        Chunk(kind=ChunkKind.RANK, id=rank, range=(line, line), extra=",".join(nodes))
    )


# --- Placement helpers ---


def _placement(chunks: list[Chunk], parent: str | None, kind: ChunkKind) -> tuple[int, int]:
    """List index and synthetic line for a new chunk of ``kind``."""
    if parent is not None:
        parent_index = find_subgraph(chunks, parent)
        if parent_index is None:
            raise ParentSubgraphNotFoundError(parent)
        container = chunks[parent_index]
        anchor = parent_index
        for index, chunk in enumerate(chunks):
            if container.contains(chunk) and (
                anchor == parent_index or chunk.end >= chunks[anchor].end
            ):
                anchor = index
        if anchor == parent_index:
            return anchor + 1, container.start + 1
        return anchor + 1, chunks[anchor].end + 1

    anchor = None
    for index, chunk in enumerate(chunks):
        if chunk.kind == kind and chunk.placed and is_top_level(chunks, chunk):
            anchor = index
    if anchor is None:
        return len(chunks), last_line(chunks) + 1
    return anchor + 1, chunks[anchor].end + 1


def _insert(chunks: list[Chunk], index: int, chunk: Chunk, line: int) -> None:
    _open_line(chunks, line)
    chunk.range = (line, line)
    chunks.insert(index, chunk)


def _open_line(chunks: list[Chunk], line: int) -> None:
    """Shift placed chunks down so ``line`` is free; enclosing ranges grow."""
    for chunk in chunks:
        if not chunk.placed:
            continue
        start, end = chunk.range
        chunk.range = (start + 1 if start >= line else start, end + 1 if end >= line else end)


def _top_level(chunks: list[Chunk], kind: ChunkKind, chunk_id: str) -> Chunk | None:
    for chunk in chunks:
        if chunk.kind == kind and chunk.id == chunk_id and is_top_level(chunks, chunk):
            return chunk
    return None


def _graph_attr_stmt_with(chunks: list[Chunk], key: str) -> Chunk | None:
    for chunk in chunks:
        if (
            chunk.kind == ChunkKind.ATTR_STMT
            and chunk.id == "graph"
            and key in chunk.attrs
            and is_top_level(chunks, chunk)
        ):
            return chunk
    return None


def _set_default(chunks: list[Chunk], target: str, attrs: dict[str, str]) -> None:
    statement = _top_level(chunks, ChunkKind.ATTR_STMT, target)
    if statement is not None:
        statement.attrs.update(attrs)
        return
    index = 0
    for position, chunk in enumerate(chunks):
        if chunk.kind == ChunkKind.ATTR_STMT and is_top_level(chunks, chunk):
            index = position + 1
    chunks.insert(index, Chunk(kind=ChunkKind.ATTR_STMT, id=target, attrs=dict(attrs)))


def _rename_endpoint(endpoint: str | None, old_id: str, new_id: str) -> str | None:
    if endpoint is None or not names_node(endpoint, old_id):
        return endpoint
    return new_id + endpoint[len(old_id) :]


def _drop_node_references(chunks: list[Chunk], node_id: str) -> None:
    kept: list[Chunk] = []
    for chunk in chunks:
        if chunk.kind == ChunkKind.EDGE and (
            names_node(chunk.id, node_id) or names_node(chunk.extra, node_id)
        ):
            continue
        if chunk.kind == ChunkKind.RANK and chunk.extra:
            members = [member for member in chunk.extra.split(",") if member != node_id]
            if not members:
                continue
            chunk.extra = ",".join(members)
        kept.append(chunk)
    chunks[:] = kept
