from graph_delta.parser.ast import Graph
from graph_delta.parser.parser import DotParser, parse_dot

__all__ = ["DotParser", "Graph", "parse_dot"]
