from typing import NoReturn

from graph_delta.errors import ParseError
from graph_delta.parser.ast import (
    Assignment,
    AttrStmt,
    EdgeOperand,
    EdgeStmt,
    Graph,
    NodeId,
    NodeStmt,
    Span,
    Statement,
    Subgraph,
)
from graph_delta.parser.lexer import Token, lex, location

ID_KINDS = {"IDENT", "STRING", "HTML"}
ATTR_TARGETS = {"graph", "node", "edge"}


class DotParser:
    def __init__(self, source: str):
        self._source = source
        self._tokens = lex(source)
        self._index = 0
        self._directed = True

    def parse(self) -> Graph:
        start = self._peek().position
        strict = False
        if self._peek_keyword("strict"):
            self._consume()
            strict = True

        if self._peek_keyword("digraph"):
            self._directed = True
        elif self._peek_keyword("graph"):
            self._directed = False
        else:
            self._fail("Expected 'digraph' or 'graph'")
        self._consume()

        name = None
        if self._peek().kind in ID_KINDS:
            name = self._expect_id()
        self._expect("LBRACE")
        body = self._parse_stmt_list()
        end = self._expect("RBRACE").end
        self._expect("EOF")

        return Graph(
            name=name,
            span=Span(start, end),
            directed=self._directed,
            strict=strict,
            body=body,
        )

    def parse_attributes(self) -> dict[str, str]:
        """Parse a free-standing attribute list such as ``a=1, b="x"``."""
        bracketed = self._peek().kind == "LBRACKET"
        if bracketed:
            attrs = self._parse_attr_lists()
        else:
            attrs = self._parse_a_list(closing="EOF")
        self._expect("EOF")
        return attrs

    def _parse_stmt_list(self) -> list[Statement]:
        statements: list[Statement] = []
        while self._peek().kind not in {"RBRACE", "EOF"}:
            statements.append(self._parse_statement())
            if self._peek().kind == "SEMICOLON":
                self._consume()
        return statements

    def _parse_statement(self) -> Statement:
        token = self._peek()
        if self._at_subgraph():
            subgraph = self._parse_subgraph()
            if self._peek().kind == "ARROW":
                return self._parse_edge_statement(subgraph, token.position)
            return subgraph

        if token.kind == "IDENT" and token.value.lower() in ATTR_TARGETS:
            self._consume()
            if self._peek().kind != "LBRACKET":
                self._fail(f"Expected attribute list after {token.value!r}")
            attrs = self._parse_attr_lists()
            return AttrStmt(
                target=token.value.lower(),
                span=Span(token.position, self._last_end()),
                attrs=attrs,
            )

        if token.kind not in ID_KINDS:
            self._fail("Expected statement")

        if self._peek(1).kind == "EQUALS":
            key = self._expect_id()
            self._expect("EQUALS")
            value = self._expect_id()
            return Assignment(key=key, value=value, span=Span(token.position, self._last_end()))

        node = self._parse_node_id()
        if self._peek().kind == "ARROW":
            return self._parse_edge_statement(node, token.position)

        attrs = self._parse_attr_lists()
        return NodeStmt(
            node=NodeId(node.id),
            span=Span(token.position, self._last_end()),
            attrs=attrs,
        )

    def _parse_subgraph(self) -> Subgraph:
        start = self._peek().position
        subgraph_id = None
        if self._peek_keyword("subgraph"):
            self._consume()
            if self._peek().kind in ID_KINDS:
                subgraph_id = self._expect_id()
        self._expect("LBRACE")
        body = self._parse_stmt_list()
        end = self._expect("RBRACE").end
        return Subgraph(id=subgraph_id, span=Span(start, end), body=body)

    def _parse_edge_statement(self, source: EdgeOperand, start: int) -> EdgeStmt:
        expected_op = "->" if self._directed else "--"
        targets: list[EdgeOperand] = []
        while self._peek().kind == "ARROW":
            arrow = self._consume()
            if arrow.value != expected_op:
                self._fail(f"Edge operator {arrow.value!r} not allowed here", arrow)
            if self._at_subgraph():
                targets.append(self._parse_subgraph())
            elif self._peek().kind in ID_KINDS:
                targets.append(self._parse_node_id())
            else:
                self._fail("Expected edge target")

        attrs = self._parse_attr_lists()
        return EdgeStmt(
            source=source,
            targets=targets,
            span=Span(start, self._last_end()),
            attrs=attrs,
        )

    def _parse_node_id(self) -> NodeId:
        node_id = self._expect_id()
        port_parts: list[str] = []
        while self._peek().kind == "COLON" and len(port_parts) < 2:
            self._consume()
            port_parts.append(self._expect_id())
        return NodeId(node_id, ":".join(port_parts) if port_parts else None)

    def _parse_attr_lists(self) -> dict[str, str]:
        attrs: dict[str, str] = {}
        while self._peek().kind == "LBRACKET":
            self._consume()
            attrs.update(self._parse_a_list(closing="RBRACKET"))
            self._expect("RBRACKET")
        return attrs

    def _parse_a_list(self, closing: str) -> dict[str, str]:
        attrs: dict[str, str] = {}
        while self._peek().kind != closing:
            key = self._expect_id()
            self._expect("EQUALS")
            attrs[key] = self._expect_id()
            if self._peek().kind in {"COMMA", "SEMICOLON"}:
                self._consume()
        return attrs

    def _expect_id(self) -> str:
        token = self._peek()
        if token.kind not in ID_KINDS:
            self._fail("Expected identifier")
        value = self._consume().value
        # "a" + "b" concatenation
        if token.kind == "STRING":
            while self._peek().kind == "PLUS" and self._peek(1).kind == "STRING":
                self._consume()
                value += self._consume().value
        return value

    def _expect(self, kind: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            self._fail(f"Expected {kind}")
        return self._consume()

    def _at_subgraph(self) -> bool:
        return self._peek().kind == "LBRACE" or self._peek_keyword("subgraph")

    def _peek_keyword(self, keyword: str) -> bool:
        token = self._peek()
        return token.kind == "IDENT" and token.value.lower() == keyword

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._index + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _consume(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _last_end(self) -> int:
        return self._tokens[self._index - 1].end

    def _fail(self, message: str, token: Token | None = None) -> NoReturn:
        token = token or self._peek()
        found = "end of input" if token.kind == "EOF" else repr(token.value)
        line, column = location(self._source, token.position)
        raise ParseError(f"{message}, found {found}", line=line, column=column)


def parse_dot(source: str) -> Graph:
    return DotParser(source).parse()
