from __future__ import annotations

from graph_delta.tools.registry import ToolRegistry

_PROMPT = """\
You edit Graphviz DOT graphs on behalf of the user by calling tools.

Read-only tools:
{queries}

Editing tools:
{mutations}

Guidelines:
- Look things up only when the request depends on the current graph.
- Prefer one tool call per change; node ids are case sensitive.
- Clusters are subgraphs whose id starts with "cluster_"; pass the id
  as the parent of a node or edge to place it inside.

For "add a Server node connected to DB": create_node(id="Server",
label="Server"), then create_edge(from="Server", to="DB").
For "make A red": update_node(id="A", color="red").

Answer briefly once the edits are done."""


def get_system_prompt(registry: ToolRegistry | None = None) -> str:
    """System prompt for a model driving the editing tools."""
    if registry is None:
        from graph_delta.tools import default_registry

        registry = default_registry()

    queries: list[str] = []
    mutations: list[str] = []
    for name in registry.names():
        tool = registry.get(name)
        line = f"- {name}: {tool.definition.description}"
        (mutations if tool.mutating else queries).append(line)
    return _PROMPT.format(queries="\n".join(queries), mutations="\n".join(mutations))
