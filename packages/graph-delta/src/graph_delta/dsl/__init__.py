from graph_delta.dsl.ast import (
    ClusterCmd,
    DslAction,
    DslCommand,
    EdgeCmd,
    GlobalCmd,
    GlobalTarget,
    NodeCmd,
    RankCmd,
    RankKind,
)
from graph_delta.dsl.interpreter import (
    apply_command,
    apply_commands,
    apply_dsl,
    lower_command,
    normalize_cluster_id,
)
from graph_delta.dsl.parser import DslParser, parse_dsl

__all__ = [
    "ClusterCmd",
    "DslAction",
    "DslCommand",
    "DslParser",
    "EdgeCmd",
    "GlobalCmd",
    "GlobalTarget",
    "NodeCmd",
    "RankCmd",
    "RankKind",
    "apply_command",
    "apply_commands",
    "apply_dsl",
    "lower_command",
    "normalize_cluster_id",
    "parse_dsl",
]
