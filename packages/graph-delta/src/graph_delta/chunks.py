"""Flat, line-addressed view of a DOT document.

A DOT file is reduced to an ordered list of :class:`Chunk` records, one per
node, edge, subgraph, attribute statement, ``key = value`` assignment or rank
group. Nesting is not stored explicitly: a chunk belongs to a subgraph when
its line range lies strictly inside the subgraph's range.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from graph_delta.parser.ast import (
    Assignment,
    AttrStmt,
    EdgeOperand,
    EdgeStmt,
    NodeId,
    NodeStmt,
    Span,
    Statement,
    Subgraph,
)
from graph_delta.parser.parser import DotParser

SYNTHETIC_RANGE = (0, 0)


class ChunkKind(str, Enum):
    NODE = "node"
    EDGE = "edge"
    SUBGRAPH = "subgraph"
    ATTR_STMT = "attr_stmt"
    ID_EQ = "id_eq"
    RANK = "rank"


@dataclass(slots=True)
class Chunk:
    kind: ChunkKind
    id: str | None = None
    attrs: dict[str, str] = field(default_factory=dict)
    range: tuple[int, int] = SYNTHETIC_RANGE
    extra: str | None = None

    @property
    def start(self) -> int:
        return self.range[0]

    @property
    def end(self) -> int:
        return self.range[1]

    @property
    def placed(self) -> bool:
        """False for chunks created without a line position."""
        return self.range != SYNTHETIC_RANGE

    def contains(self, other: Chunk) -> bool:
        """Strict range containment, the nesting test."""
        return other.start > self.start and other.end < self.end

    def encloses(self, other: Chunk) -> bool:
        """Inclusive range containment."""
        return other.start >= self.start and other.end <= self.end

    def copy(self) -> Chunk:
        return Chunk(
            kind=self.kind,
            id=self.id,
            attrs=dict(self.attrs),
            range=self.range,
            extra=self.extra,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": ChunkKind(self.kind).value,
            "id": self.id,
            "attrs": dict(self.attrs),
            "range": list(self.range),
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Chunk:
        start, end = payload.get("range", SYNTHETIC_RANGE)
        return cls(
            kind=ChunkKind(payload["kind"]),
            id=payload.get("id"),
            attrs=dict(payload.get("attrs") or {}),
            range=(int(start), int(end)),
            extra=payload.get("extra"),
        )


@dataclass(slots=True)
class ParsedDot:
    name: str | None
    chunks: list[Chunk]
    directed: bool = True
    strict: bool = False


def parse_dot_document(source: str) -> ParsedDot:
    graph = DotParser(source).parse()
    chunks: list[Chunk] = []
    _walk(graph.body, source, chunks)
    return ParsedDot(
        name=graph.name,
        chunks=chunks,
        directed=graph.directed,
        strict=graph.strict,
    )


def parse_dot_to_chunks(source: str) -> list[Chunk]:
    return parse_dot_document(source).chunks


def parse_attribute_string(text: str) -> dict[str, str]:
    """Parse ``label="A" shape=box`` (commas, semicolons or spaces) into a map."""
    return DotParser(text).parse_attributes()


def span_to_line_range(source: str, span: Span) -> tuple[int, int]:
    start_line = source.count("\n", 0, span.start) + 1
    end_line = start_line + source.count("\n", span.start, span.end)
    return start_line, end_line


def expand_edge_chain(
    operands: list[list[str]], attrs: dict[str, str], line_range: tuple[int, int]
) -> list[Chunk]:
    """Join consecutive operands pairwise, sharing attrs and range.

    Each operand is a group of endpoints: ``A -> B -> C`` is
    ``[["A"], ["B"], ["C"]]`` and yields ``(A, B)`` and ``(B, C)``, while
    ``A -> {B C}`` is ``[["A"], ["B", "C"]]`` and yields ``(A, B)`` and ``(A, C)``.
    """
    chunks: list[Chunk] = []
    for sources, targets in zip(operands, operands[1:]):
        for source in sources:
            for target in targets:
                chunks.append(
                    Chunk(
                        kind=ChunkKind.EDGE,
                        id=source,
                        attrs=dict(attrs),
                        range=line_range,
                        extra=target,
                    )
                )
    return chunks


def operand_endpoints(operand: EdgeOperand) -> list[str]:
    """Endpoint names for one edge operand; a subgraph stands for its nodes."""
    if isinstance(operand, NodeId):
        return [operand.text()]
    endpoints: list[str] = []
    for statement in operand.body:
        if isinstance(statement, NodeStmt):
            names = [statement.node.id]
        elif isinstance(statement, EdgeStmt):
            names = [
                name
                for inner in (statement.source, *statement.targets)
                for name in operand_endpoints(inner)
            ]
        elif isinstance(statement, Subgraph):
            names = operand_endpoints(statement)
        else:
            continue
        for name in names:
            if name not in endpoints:
                endpoints.append(name)
    return endpoints


def _edge_chunks(statement: EdgeStmt, line_range: tuple[int, int]) -> list[Chunk]:
    operands = [statement.source, *statement.targets]
    chunks = expand_edge_chain(
        [operand_endpoints(operand) for operand in operands], statement.attrs, line_range
    )
    # Edges written inside an operand block, e.g. `A -> { B -> C }`.
    for operand in operands:
        if isinstance(operand, Subgraph):
            for inner in operand.body:
                if isinstance(inner, EdgeStmt):
                    chunks.extend(_edge_chunks(inner, line_range))
    return chunks


def _walk(statements: list[Statement], source: str, chunks: list[Chunk]) -> None:
    for statement in statements:
        line_range = span_to_line_range(source, statement.span)

        if isinstance(statement, NodeStmt):
            chunks.append(
                Chunk(
                    kind=ChunkKind.NODE,
                    id=statement.node.id,
                    attrs=dict(statement.attrs),
                    range=line_range,
                )
            )
        elif isinstance(statement, EdgeStmt):
            chunks.extend(_edge_chunks(statement, line_range))
        elif isinstance(statement, AttrStmt):
            chunks.append(
                Chunk(
                    kind=ChunkKind.ATTR_STMT,
                    id=statement.target,
                    attrs=dict(statement.attrs),
                    range=line_range,
                )
            )
        elif isinstance(statement, Assignment):
            chunks.append(
                Chunk(
                    kind=ChunkKind.ID_EQ,
                    id=statement.key,
                    range=line_range,
                    extra=statement.value,
                )
            )
        elif isinstance(statement, Subgraph):
            rank = _rank_group(statement)
            if rank is not None:
                rank_kind, nodes = rank
                chunks.append(
                    Chunk(
                        kind=ChunkKind.RANK,
                        id=rank_kind,
                        range=line_range,
                        extra=",".join(nodes),
                    )
                )
                continue
            chunks.append(Chunk(kind=ChunkKind.SUBGRAPH, id=statement.id, range=line_range))
            _walk(statement.body, source, chunks)


def _rank_group(subgraph: Subgraph) -> tuple[str, list[str]] | None:
    """Recognise ``{ rank=same; A; B }``: one rank assignment plus bare nodes."""
    if subgraph.id is not None:
        return None

    rank_kind = None
    nodes: list[str] = []
    for statement in subgraph.body:
        if isinstance(statement, Assignment) and statement.key == "rank" and rank_kind is None:
            rank_kind = statement.value
        elif isinstance(statement, NodeStmt) and not statement.attrs:
            nodes.append(statement.node.id)
        else:
            return None

    if rank_kind is None or not nodes:
        return None
    return rank_kind, nodes


# --- Lookups shared by the command layer, DSL and tool adapter ---


def find_node(chunks: list[Chunk], node_id: str) -> int | None:
    for index, chunk in enumerate(chunks):
        if chunk.kind == ChunkKind.NODE and chunk.id == node_id:
            return index
    return None


def find_edge(chunks: list[Chunk], source: str, target: str) -> int | None:
    for index, chunk in enumerate(chunks):
        if chunk.kind == ChunkKind.EDGE and chunk.id == source and chunk.extra == target:
            return index
    return None


def find_subgraph(chunks: list[Chunk], subgraph_id: str) -> int | None:
    for index, chunk in enumerate(chunks):
        if chunk.kind == ChunkKind.SUBGRAPH and chunk.id == subgraph_id:
            return index
    return None


def enclosing_subgraph(chunks: list[Chunk], chunk: Chunk) -> Chunk | None:
    """Innermost subgraph whose range strictly contains ``chunk``."""
    if not chunk.placed:
        return None
    innermost: Chunk | None = None
    for candidate in chunks:
        if candidate is chunk or candidate.kind != ChunkKind.SUBGRAPH:
            continue
        if candidate.placed and candidate.contains(chunk):
            if innermost is None or innermost.contains(candidate):
                innermost = candidate
    return innermost


def is_top_level(chunks: list[Chunk], chunk: Chunk) -> bool:
    return enclosing_subgraph(chunks, chunk) is None


def nested_in(chunks: list[Chunk], parent: Chunk) -> list[Chunk]:
    """Every chunk strictly inside ``parent``, at any depth."""
    if not parent.placed:
        return []
    return [chunk for chunk in chunks if chunk is not parent and parent.contains(chunk)]


def last_line(chunks: list[Chunk]) -> int:
    return max((chunk.end for chunk in chunks), default=0)


def names_node(endpoint: str | None, node_id: str) -> bool:
    """True when an edge endpoint refers to ``node_id``, with or without a port."""
    return endpoint is not None and (endpoint == node_id or endpoint.startswith(f"{node_id}:"))
