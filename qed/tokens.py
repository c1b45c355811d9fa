"""QED tokenizer — lexes source into a flat token list."""

from __future__ import annotations

from .diagnostics import Reporter, TokenizeError


# Token type constants
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_IDENT = "IDENTIFIER"
TK_OP = "OP"
TK_EOF = "EOF"

# Keyword tokens use the keyword itself as their type.
KEYWORDS: set[str] = {
    "and",
    "break",
    "class",
    "continue",
    "else",
    "false",
    "for",
    "fun",
    "if",
    "nil",
    "or",
    "print",
    "return",
    "super",
    "this",
    "true",
    "var",
    "while",
}

# Two-character operators, checked before their one-character prefixes
MULTI_OPS: list[str] = [
    "!=",
    "==",
    "<=",
    ">=",
]

SINGLE_OPS: set[str] = {
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
    ",",
    ".",
    "-",
    "+",
    ";",
    "*",
    "/",
    "?",
    ":",
    "!",
    "=",
    "<",
    ">",
}


class Token:
    """A token with type, raw lexeme, literal value, and position."""

    def __init__(
        self,
        type_: str,
        lexeme: str,
        literal: float | str | None,
        line: int,
        col: int = 0,
    ):
        self.type: str = type_
        self.lexeme: str = lexeme
        self.literal: float | str | None = literal
        self.line: int = line
        self.col: int = col

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.lexeme)
            + ", "
            + repr(self.literal)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def tokenize(source: str, reporter: Reporter | None = None) -> list[Token]:
    """Tokenize QED source into a flat list ending with TK_EOF.

    Lexical errors are reported to `reporter` and scanning carries on, so one
    pass surfaces every bad character in the file.
    """
    if reporter is None:
        reporter = Reporter()
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment: //
        if c == "/" and pos + 1 < length and source[pos + 1] == "/":
            while pos < length and source[pos] != "\n":
                pos += 1
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # Block comment: /* ... */, nesting
        if c == "/" and pos + 1 < length and source[pos + 1] == "*":
            pos += 2
            col += 2
            depth = 1
            while pos < length and depth > 0:
                if source[pos] == "/" and pos + 1 < length and source[pos + 1] == "*":
                    depth += 1
                    pos += 2
                    col += 2
                elif source[pos] == "*" and pos + 1 < length and source[pos + 1] == "/":
                    depth -= 1
                    pos += 2
                    col += 2
                elif source[pos] == "\n":
                    pos += 1
                    line += 1
                    col = 1
                else:
                    pos += 1
                    col += 1
            if depth > 0:
                reporter.report(
                    TokenizeError("Unterminated block comment.", start_line, start_col)
                )
            continue

        # Number: digits, optionally '.' and more digits
        if _is_digit(c):
            while pos < length and _is_digit(source[pos]):
                pos += 1
                col += 1
            if (
                pos + 1 < length
                and source[pos] == "."
                and _is_digit(source[pos + 1])
            ):
                pos += 1
                col += 1
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_NUMBER, raw, float(raw), start_line, start_col))
            continue

        # String literal: raw run between quotes, may span lines
        if c == '"':
            pos += 1
            col += 1
            while pos < length and source[pos] != '"':
                if source[pos] == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
                pos += 1
            if pos >= length:
                reporter.report(
                    TokenizeError("Unterminated string.", start_line, start_col)
                )
                continue
            pos += 1  # skip closing "
            col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_STRING, raw, raw[1:-1], start_line, start_col))
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(word, word, None, start_line, start_col))
            else:
                tokens.append(Token(TK_IDENT, word, None, start_line, start_col))
            continue

        # Two-character operators
        matched = False
        for op in MULTI_OPS:
            if source[pos : pos + 2] == op:
                tokens.append(Token(TK_OP, op, None, start_line, start_col))
                pos += 2
                col += 2
                matched = True
                break
        if matched:
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(TK_OP, c, None, start_line, start_col))
            pos += 1
            col += 1
            continue

        reporter.report(TokenizeError("Unexpected character.", line, col))
        pos += 1
        col += 1

    tokens.append(Token(TK_EOF, "", None, line, col))
    return tokens
