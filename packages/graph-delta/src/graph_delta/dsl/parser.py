"""Parser for the line-oriented edit DSL.

One command per line::

    node: X, "My Node", shape=box
    edge: A -> B:w, color=red
    update_node: X {id: Y, label: "Renamed"}
    cluster: backend, "Backend services"
    rank_same: A, B

Blank lines and ``#`` or ``//`` comments are ignored. The DOT lexer is
reused, so quoting and escaping follow DOT rules.
"""

from collections.abc import Iterator
from typing import NoReturn

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
from graph_delta.errors import ParseError
from graph_delta.parser.lexer import Token, lex, location

VALUE_KINDS = {"IDENT", "STRING", "HTML"}
ARGUMENT_SEPARATORS = {"COMMA", "ARROW"}

NODE_KEYWORDS = {
    "node": DslAction.SET,
    "add_node": DslAction.SET,
    "update_node": DslAction.UPDATE,
    "delete_node": DslAction.DELETE,
}
EDGE_KEYWORDS = {
    "edge": DslAction.SET,
    "add_edge": DslAction.SET,
    "update_edge": DslAction.UPDATE,
    "delete_edge": DslAction.DELETE,
}
CLUSTER_KEYWORDS = {
    "cluster": DslAction.SET,
    "subgraph": DslAction.SET,
    "update_cluster": DslAction.UPDATE,
    "delete_cluster": DslAction.DELETE,
    "move": DslAction.MOVE,
}
GLOBAL_KEYWORDS = {
    "graph": GlobalTarget.GRAPH,
    "node_defaults": GlobalTarget.NODE_DEFAULTS,
    "edge_defaults": GlobalTarget.EDGE_DEFAULTS,
}
RANK_KEYWORDS = {
    "rank_same": RankKind.SAME,
    "rank_min": RankKind.MIN,
    "rank_max": RankKind.MAX,
}


class DslParser:
    def __init__(self, source: str):
        self._source = source
        self._tokens: list[Token] = []
        self._index = 0

    def parse(self) -> list[DslCommand]:
        commands: list[DslCommand] = []
        for line, tokens in _split_lines(self._source, lex(self._source)):
            self._tokens = tokens
            self._index = 0
            commands.append(self._parse_command(line))
        return commands

    def _parse_command(self, line: int) -> DslCommand:
        keyword_token = self._peek()
        if keyword_token.kind != "IDENT":
            self._fail("Expected a command keyword")
        self._consume()
        keyword = keyword_token.value.lower()
        if not any(
            keyword in table
            for table in (
                NODE_KEYWORDS,
                EDGE_KEYWORDS,
                CLUSTER_KEYWORDS,
                GLOBAL_KEYWORDS,
                RANK_KEYWORDS,
            )
        ):
            self._fail(f"Unknown command {keyword_token.value!r}", keyword_token)

        self._expect("COLON")
        positionals, attrs = self._parse_arguments(ports=keyword in EDGE_KEYWORDS)
        self._expect("EOF")

        if keyword in NODE_KEYWORDS:
            action = NODE_KEYWORDS[keyword]
            if action == DslAction.SET:
                self._check_arity(keyword_token, positionals, 1, 2)
                attrs = _with_label(positionals[1:], attrs)
            else:
                self._check_arity(keyword_token, positionals, 1, 1)
            return NodeCmd(action=action, id=positionals[0], attrs=attrs, line=line)

        if keyword in EDGE_KEYWORDS:
            action = EDGE_KEYWORDS[keyword]
            if action == DslAction.SET:
                self._check_arity(keyword_token, positionals, 2, 3)
                attrs = _with_label(positionals[2:], attrs)
            else:
                self._check_arity(keyword_token, positionals, 2, 2)
            return EdgeCmd(
                action=action,
                source=positionals[0],
                target=positionals[1],
                attrs=attrs,
                line=line,
            )

        if keyword in CLUSTER_KEYWORDS:
            action = CLUSTER_KEYWORDS[keyword]
            if action == DslAction.MOVE:
                # move: <node>, <cluster>
                self._check_arity(keyword_token, positionals, 2, 2)
                return ClusterCmd(action=action, id=positionals[1], node=positionals[0], line=line)
            if action == DslAction.SET:
                self._check_arity(keyword_token, positionals, 1, 2)
                attrs = _with_label(positionals[1:], attrs)
            else:
                self._check_arity(keyword_token, positionals, 1, 1)
            return ClusterCmd(action=action, id=positionals[0], attrs=attrs, line=line)

        if keyword in GLOBAL_KEYWORDS:
            self._check_arity(keyword_token, positionals, 0, 0)
            if not attrs:
                self._fail(f"{keyword!r} needs at least one attribute", keyword_token)
            return GlobalCmd(target=GLOBAL_KEYWORDS[keyword], attrs=attrs, line=line)

        if attrs:
            self._fail(f"{keyword!r} takes node ids only", keyword_token)
        self._check_arity(keyword_token, positionals, 1, None)
        return RankCmd(rank=RANK_KEYWORDS[keyword], nodes=positionals, line=line)

    def _parse_arguments(self, ports: bool = False) -> tuple[list[str], dict[str, str]]:
        """Comma-separated values, ``key=value`` items and an optional ``{...}`` block.

        With ``ports`` a value may carry ``:port[:compass]`` as in DOT edges.
        """
        positionals: list[str] = []
        attrs: dict[str, str] = {}
        while self._peek().kind not in {"EOF", "LBRACE"}:
            value = self._expect_value()
            if self._peek().kind == "EQUALS":
                self._consume()
                attrs[value] = self._expect_value()
            else:
                if ports:
                    value = self._with_port(value)
                positionals.append(value)

            if self._peek().kind in ARGUMENT_SEPARATORS:
                self._consume()
            elif self._peek().kind not in {"EOF", "LBRACE"}:
                self._fail("Expected ',' between arguments")

        if self._peek().kind == "LBRACE":
            attrs.update(self._parse_block())
        return positionals, attrs

    def _with_port(self, value: str) -> str:
        parts = [value]
        while self._peek().kind == "COLON" and len(parts) < 3:
            self._consume()
            parts.append(self._expect_value())
        return ":".join(parts)

    def _parse_block(self) -> dict[str, str]:
        """``{key: value, key=value}``"""
        self._expect("LBRACE")
        attrs: dict[str, str] = {}
        while self._peek().kind != "RBRACE":
            key = self._expect_value()
            if self._peek().kind not in {"COLON", "EQUALS"}:
                self._fail("Expected ':' after attribute name")
            self._consume()
            attrs[key] = self._expect_value()
            if self._peek().kind in {"COMMA", "SEMICOLON"}:
                self._consume()
        self._expect("RBRACE")
        return attrs

    def _check_arity(
        self,
        keyword: Token,
        positionals: list[str],
        minimum: int,
        maximum: int | None,
    ) -> None:
        count = len(positionals)
        if count < minimum or (maximum is not None and count > maximum):
            if maximum is None:
                expected = f"at least {minimum}"
            elif minimum == maximum:
                expected = str(minimum)
            else:
                expected = f"{minimum} to {maximum}"
            self._fail(f"{keyword.value!r} takes {expected} arguments, got {count}", keyword)

    def _expect_value(self) -> str:
        if self._peek().kind not in VALUE_KINDS:
            self._fail("Expected a value")
        return self._consume().value

    def _expect(self, kind: str) -> Token:
        if self._peek().kind != kind:
            self._fail(f"Expected {kind}")
        return self._consume()

    def _peek(self) -> Token:
        return self._tokens[min(self._index, len(self._tokens) - 1)]

    def _consume(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _fail(self, message: str, token: Token | None = None) -> NoReturn:
        token = token or self._peek()
        found = "end of line" if token.kind == "EOF" else repr(token.value)
        line, column = location(self._source, token.position)
        raise ParseError(f"{message}, found {found}", line=line, column=column)


def parse_dsl(source: str) -> list[DslCommand]:
    return DslParser(source).parse()


def _with_label(extra: list[str], attrs: dict[str, str]) -> dict[str, str]:
    """A bare trailing argument is the label; explicit attributes win."""
    if not extra:
        return attrs
    return {"label": extra[0], **attrs}


def _split_lines(source: str, tokens: list[Token]) -> Iterator[tuple[int, list[Token]]]:
    """Group tokens by the line they start on; each group ends with an EOF token."""
    group: list[Token] = []
    group_line = 0
    line = 1
    cursor = 0
    for token in tokens:
        line += source.count("\n", cursor, token.position)
        cursor = token.position
        if token.kind == "EOF" or (group and line != group_line):
            if group:
                yield group_line, [*group, _line_end(source, group[-1])]
            group = []
        if token.kind != "EOF":
            if not group:
                group_line = line
            group.append(token)


def _line_end(source: str, last: Token) -> Token:
    end = source.find("\n", last.end)
    position = len(source) if end < 0 else end
    return Token("EOF", "", position, position)
