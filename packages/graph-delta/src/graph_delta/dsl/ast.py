from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DslAction(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"


class GlobalTarget(str, Enum):
    GRAPH = "graph"
    NODE_DEFAULTS = "node"
    EDGE_DEFAULTS = "edge"


class RankKind(str, Enum):
    SAME = "same"
    MIN = "min"
    MAX = "max"


@dataclass(slots=True)
class NodeCmd:
    action: DslAction
    id: str
    attrs: dict[str, str] = field(default_factory=dict)
    line: int = 0


@dataclass(slots=True)
class EdgeCmd:
    action: DslAction
    source: str
    target: str
    attrs: dict[str, str] = field(default_factory=dict)
    line: int = 0


@dataclass(slots=True)
class ClusterCmd:
    action: DslAction
    id: str
    attrs: dict[str, str] = field(default_factory=dict)
    node: str | None = None  # node being moved, MOVE only
    line: int = 0


@dataclass(slots=True)
class GlobalCmd:
    target: GlobalTarget
    attrs: dict[str, str] = field(default_factory=dict)
    line: int = 0


@dataclass(slots=True)
class RankCmd:
    rank: RankKind
    nodes: list[str] = field(default_factory=list)
    line: int = 0


DslCommand = NodeCmd | EdgeCmd | ClusterCmd | GlobalCmd | RankCmd
