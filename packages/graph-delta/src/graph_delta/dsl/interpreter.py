"""Apply DSL commands to a chunk list.

Set commands pick create or update by looking the target up first. Most
DSL commands compile to ``DotCommand`` values via :func:`lower_command`;
renames, cluster updates, cluster dissolution and rank groups have no
JSON equivalent and go through the shared primitives in
:mod:`graph_delta.commands` instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from graph_delta import commands as dot
from graph_delta.chunks import Chunk, find_edge, find_node, find_subgraph
from graph_delta.config import EditorConfig
from graph_delta.dsl.ast import (
    ClusterCmd,
    DslAction,
    DslCommand,
    EdgeCmd,
    GlobalCmd,
    GlobalTarget,
    NodeCmd,
    RankCmd,
)
from graph_delta.dsl.parser import parse_dsl
from graph_delta.errors import GraphDeltaError, UnsupportedCommandError

logger = logging.getLogger(__name__)

RENAME_KEY = "id"
CLUSTER_KEY = "cluster"


def normalize_cluster_id(cluster_id: str, prefix: str = "cluster_") -> str:
    return cluster_id if cluster_id.startswith(prefix) else f"{prefix}{cluster_id}"


def lower_command(
    command: DslCommand, chunks: list[Chunk], config: EditorConfig | None = None
) -> list[dot.DotCommand]:
    """Compile a DSL command into equivalent ``DotCommand`` values.

    Raises :class:`UnsupportedCommandError` for commands that only the
    interpreter can apply.
    """
    config = config or EditorConfig()

    if isinstance(command, NodeCmd):
        if RENAME_KEY in command.attrs and command.action != DslAction.DELETE:
            raise UnsupportedCommandError("Node renames have no JSON command equivalent")
        if command.action == DslAction.DELETE:
            return [dot.DeleteNode(id=command.id, cascade=True)]
        attrs = dict(command.attrs)
        parent = attrs.pop(CLUSTER_KEY, None)
        exists = find_node(chunks, command.id) is not None
        if command.action == DslAction.UPDATE or exists:
            return [dot.UpdateNode(id=command.id, attrs=attrs)] if attrs or not exists else []
        if parent is not None:
            parent = normalize_cluster_id(parent, config.cluster_prefix)
        return [dot.CreateNode(id=command.id, attrs=attrs, parent=parent)]

    if isinstance(command, EdgeCmd):
        if command.action == DslAction.DELETE:
            return [dot.DeleteEdge(source=command.source, target=command.target)]
        if command.action == DslAction.UPDATE:
            return [
                dot.UpdateEdge(
                    source=command.source,
                    target=command.target,
                    attrs=command.attrs,
                    upsert=False,
                )
            ]
        if find_edge(chunks, command.source, command.target) is not None:
            return [
                dot.UpdateEdge(source=command.source, target=command.target, attrs=command.attrs)
            ]
        return [dot.CreateEdge(source=command.source, target=command.target, attrs=command.attrs)]

    if isinstance(command, ClusterCmd):
        cluster_id = normalize_cluster_id(command.id, config.cluster_prefix)
        if command.action == DslAction.SET and find_subgraph(chunks, cluster_id) is None:
            return [dot.CreateSubgraph(id=cluster_id, attrs=command.attrs)]
        raise UnsupportedCommandError(
            f"Cluster {command.action.value} has no JSON command equivalent"
        )

    if isinstance(command, GlobalCmd):
        if command.target == GlobalTarget.NODE_DEFAULTS:
            return [dot.SetNodeDefault(attrs=command.attrs)]
        if command.target == GlobalTarget.EDGE_DEFAULTS:
            return [dot.SetEdgeDefault(attrs=command.attrs)]
        return [dot.SetGraphAttr(key=key, value=value) for key, value in command.attrs.items()]

    raise UnsupportedCommandError("Rank groups have no JSON command equivalent")


def apply_command(
    chunks: list[Chunk], command: DslCommand, config: EditorConfig | None = None
) -> None:
    config = config or EditorConfig()

    if (
        isinstance(command, NodeCmd)
        and RENAME_KEY in command.attrs
        and command.action != DslAction.DELETE
    ):
        _rename_and_update(chunks, command, config)
        return

    if isinstance(command, ClusterCmd):
        cluster_id = normalize_cluster_id(command.id, config.cluster_prefix)
        if command.action == DslAction.MOVE:
            logger.warning(
                "Ignoring move of %s into %s: not supported", command.node, cluster_id
            )
            raise UnsupportedCommandError(
                f"Moving '{command.node}' into '{cluster_id}' is not supported"
            )
        if command.action == DslAction.DELETE:
            dot.dissolve_subgraph(chunks, cluster_id)
            logger.debug("Dissolved %s", cluster_id)
            return
        if command.action == DslAction.UPDATE or find_subgraph(chunks, cluster_id) is not None:
            dot.set_subgraph_attrs(chunks, cluster_id, command.attrs)
            logger.debug("Updated %s", cluster_id)
            return

    if isinstance(command, RankCmd):
        dot.add_rank_group(chunks, command.rank.value, command.nodes)
        logger.debug("Added rank=%s group for %s", command.rank.value, command.nodes)
        return

    for lowered in lower_command(command, chunks, config):
        dot.apply_command(chunks, lowered, config)


def apply_commands(
    chunks: list[Chunk],
    commands: Iterable[DslCommand],
    config: EditorConfig | None = None,
) -> dot.BatchResult:
    result = dot.BatchResult()
    for index, command in enumerate(commands):
        try:
            apply_command(chunks, command, config)
        except GraphDeltaError as exc:
            logger.warning("DSL line %d failed: %s", command.line, exc)
            result.errors.append(dot.CommandFailure(index=index, command=command, error=exc))
        else:
            result.applied += 1
    return result


def apply_dsl(
    chunks: list[Chunk], source: str, config: EditorConfig | None = None
) -> dot.BatchResult:
    """Parse DSL text and apply it. A syntax error applies nothing."""
    return apply_commands(chunks, parse_dsl(source), config)


def _rename_and_update(chunks: list[Chunk], command: NodeCmd, config: EditorConfig) -> None:
    attrs = dict(command.attrs)
    new_id = attrs.pop(RENAME_KEY)
    attrs.pop(CLUSTER_KEY, None)

    # The old id may survive only as an edge endpoint, hence the upsert.
    dot.rename_node(chunks, command.id, new_id)
    if attrs:
        dot.apply_command(chunks, dot.UpdateNode(id=new_id, attrs=attrs, upsert=True), config)
