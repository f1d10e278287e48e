"""Editor configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from graph_delta.errors import ConfigurationError


@dataclass(slots=True)
class EditorConfig:
    graph_name: str = "G"
    indent: str = "    "
    subgraph_window: int = 10
    cluster_prefix: str = "cluster_"

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> EditorConfig:
        """Build a config from GRAPH_DELTA_* environment variables."""
        env = environ if environ is not None else os.environ
        config = cls()

        graph_name = env.get("GRAPH_DELTA_GRAPH_NAME")
        if graph_name:
            config.graph_name = graph_name

        indent = env.get("GRAPH_DELTA_INDENT")
        if indent:
            config.indent = " " * _read_int("GRAPH_DELTA_INDENT", indent)

        window = env.get("GRAPH_DELTA_SUBGRAPH_WINDOW")
        if window:
            config.subgraph_window = _read_int("GRAPH_DELTA_SUBGRAPH_WINDOW", window)

        prefix = env.get("GRAPH_DELTA_CLUSTER_PREFIX")
        if prefix:
            config.cluster_prefix = prefix

        return config


def _read_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", cause=exc) from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value
