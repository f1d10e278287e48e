from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Span:
    start: int
    end: int


@dataclass(slots=True)
class NodeId:
    id: str
    port: str | None = None

    def text(self) -> str:
        return self.id if self.port is None else f"{self.id}:{self.port}"


@dataclass(slots=True)
class NodeStmt:
    node: NodeId
    span: Span
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class AttrStmt:
    target: str
    span: Span
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class Assignment:
    key: str
    value: str
    span: Span


@dataclass(slots=True)
class Subgraph:
    id: str | None
    span: Span
    body: list[Statement] = field(default_factory=list)


@dataclass(slots=True)
class EdgeStmt:
    source: EdgeOperand
    targets: list[EdgeOperand]
    span: Span
    attrs: dict[str, str] = field(default_factory=dict)


EdgeOperand = NodeId | Subgraph
Statement = NodeStmt | EdgeStmt | AttrStmt | Assignment | Subgraph


@dataclass(slots=True)
class Graph:
    name: str | None
    span: Span
    directed: bool = True
    strict: bool = False
    body: list[Statement] = field(default_factory=list)
