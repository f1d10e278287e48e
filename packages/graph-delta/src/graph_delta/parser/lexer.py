from dataclasses import dataclass

from graph_delta.errors import ParseError


@dataclass(slots=True, frozen=True)
class Token:
    kind: str
    value: str
    position: int
    end: int


SINGLE_CHAR_TOKENS = {
    "{": "LBRACE",
    "}": "RBRACE",
    "[": "LBRACKET",
    "]": "RBRACKET",
    "=": "EQUALS",
    ",": "COMMA",
    ";": "SEMICOLON",
    ":": "COLON",
    "+": "PLUS",
}

# Inverse of the serializer's escaping. Other sequences (\l, \N, ...) are kept.
STRING_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "r": "\r",
}


def lex(source: str) -> list[Token]:
    tokens: list[Token] = []
    index = 0
    length = len(source)

    while index < length:
        char = source[index]
        if char.isspace():
            index += 1
            continue

        if source.startswith("//", index):
            index = _skip_to_line_end(source, index)
            continue

        if source.startswith("/*", index):
            index = _skip_block_comment(source, index)
            continue

        if char == "#" and _at_line_start(source, index):
            index = _skip_to_line_end(source, index)
            continue

        if char == '"':
            value, end = _read_string(source, index)
            tokens.append(Token("STRING", value, index, end))
            index = end
            continue

        if char == "<":
            value, end = _read_html(source, index)
            tokens.append(Token("HTML", value, index, end))
            index = end
            continue

        if source.startswith("->", index) or source.startswith("--", index):
            tokens.append(Token("ARROW", source[index : index + 2], index, index + 2))
            index += 2
            continue

        token_kind = SINGLE_CHAR_TOKENS.get(char)
        if token_kind is not None:
            tokens.append(Token(token_kind, char, index, index + 1))
            index += 1
            continue

        if _is_identifier_start(source, index):
            value, end = _read_identifier(source, index)
            tokens.append(Token("IDENT", value, index, end))
            index = end
            continue

        line, column = location(source, index)
        raise ParseError(f"Unexpected character {char!r}", line=line, column=column)

    tokens.append(Token("EOF", "", len(source), len(source)))
    return tokens


def location(source: str, index: int) -> tuple[int, int]:
    """1-based line and column of a character offset."""
    line = source.count("\n", 0, index) + 1
    column = index - (source.rfind("\n", 0, index) + 1) + 1
    return line, column


def _skip_to_line_end(source: str, index: int) -> int:
    while index < len(source) and source[index] != "\n":
        index += 1
    return index


def _skip_block_comment(source: str, index: int) -> int:
    end = source.find("*/", index + 2)
    if end < 0:
        line, column = location(source, index)
        raise ParseError("Unterminated block comment", line=line, column=column)
    return end + 2


def _at_line_start(source: str, index: int) -> bool:
    line_start = source.rfind("\n", 0, index) + 1
    return source[line_start:index].strip() == ""


def _read_string(source: str, index: int) -> tuple[str, int]:
    start = index
    index += 1
    result: list[str] = []

    while index < len(source):
        char = source[index]
        if char == '"':
            return "".join(result), index + 1
        if char == "\\" and index + 1 < len(source):
            following = source[index + 1]
            if following != "\n":
                result.append(STRING_ESCAPES.get(following, char + following))
            index += 2
            continue
        result.append(char)
        index += 1

    line, column = location(source, start)
    raise ParseError("Unterminated string literal", line=line, column=column)


def _read_html(source: str, index: int) -> tuple[str, int]:
    start = index
    depth = 0

    while index < len(source):
        char = source[index]
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
            if depth == 0:
                return source[start : index + 1], index + 1
        index += 1

    line, column = location(source, start)
    raise ParseError("Unterminated HTML string", line=line, column=column)


def _read_identifier(source: str, index: int) -> tuple[str, int]:
    start = index
    index += 1
    while index < len(source) and _is_identifier_part(source, index):
        index += 1
    return source[start:index], index


def _is_identifier_start(source: str, index: int) -> bool:
    char = source[index]
    if char == "-":
        following = source[index + 1 : index + 2]
        return following.isdigit() or following == "."
    return char.isalnum() or char in "_.#" or ord(char) > 127


def _is_identifier_part(source: str, index: int) -> bool:
    char = source[index]
    if char == "-":
        return source[index + 1 : index + 2] not in {"-", ">"}
    return char.isalnum() or char in "_.#" or ord(char) > 127
