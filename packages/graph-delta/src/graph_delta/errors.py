"""Error hierarchy for graph editing."""

from __future__ import annotations


class GraphDeltaError(Exception):
    """Base error for all graph-delta errors."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


# --- Input errors ---


class ParseError(GraphDeltaError, ValueError):
    """DOT, attribute or DSL text could not be parsed."""

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        cause: Exception | None = None,
    ):
        if line is not None:
            where = f"line {line}" if column is None else f"line {line}, column {column}"
            message = f"{message} ({where})"
        super().__init__(message, cause=cause)
        self.line = line
        self.column = column


class ConfigurationError(GraphDeltaError):
    """Invalid editor configuration."""


# --- Entity errors (from applying commands) ---


class NodeAlreadyExistsError(GraphDeltaError):
    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' already exists")
        self.node_id = node_id


class NodeNotFoundError(GraphDeltaError):
    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' not found")
        self.node_id = node_id


class EdgeAlreadyExistsError(GraphDeltaError):
    def __init__(self, source: str, target: str):
        super().__init__(f"Edge '{source}' -> '{target}' already exists")
        self.source = source
        self.target = target


class EdgeNotFoundError(GraphDeltaError):
    def __init__(self, source: str, target: str):
        super().__init__(f"Edge '{source}' -> '{target}' not found")
        self.source = source
        self.target = target


class ParentSubgraphNotFoundError(GraphDeltaError):
    def __init__(self, parent: str):
        super().__init__(f"Parent subgraph '{parent}' not found")
        self.parent = parent


class SubgraphNotFoundError(GraphDeltaError):
    def __init__(self, subgraph_id: str):
        super().__init__(f"Subgraph '{subgraph_id}' not found")
        self.subgraph_id = subgraph_id


class SubgraphAlreadyExistsError(GraphDeltaError):
    def __init__(self, subgraph_id: str):
        super().__init__(f"Subgraph '{subgraph_id}' already exists")
        self.subgraph_id = subgraph_id


class AttributeNotFoundError(GraphDeltaError):
    def __init__(self, key: str):
        super().__init__(f"Attribute '{key}' not found")
        self.key = key


class UnsupportedCommandError(GraphDeltaError, NotImplementedError):
    """The command is recognised but cannot be applied to a flat chunk list."""


# --- Tool call errors ---


class UnknownToolError(GraphDeltaError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class MissingParameterError(GraphDeltaError):
    def __init__(self, tool: str, parameter: str):
        super().__init__(f"Missing '{parameter}' parameter for tool '{tool}'")
        self.tool = tool
        self.parameter = parameter
