"""QED diagnostics — error classes and the reporting sink shared by all passes."""

from __future__ import annotations

from typing import Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from .tokens import Token


class QedError(Exception):
    """Base error for every diagnostic the toolchain can produce."""

    def __init__(self, msg: str, line: int, col: int = 0):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class TokenizeError(QedError):
    """Error during tokenization."""


class ParseError(QedError):
    """Parse error with location info."""

    @classmethod
    def at(cls, token: Token, msg: str) -> ParseError:
        return cls(msg, token.line, token.col)


class ResolveError(QedError):
    """Static scoping error (bad keyword usage, shadowing, self-reference)."""

    @classmethod
    def at(cls, token: Token, msg: str) -> ResolveError:
        return cls(msg, token.line, token.col)


class QedRuntimeError(QedError):
    """Runtime fault raised by the evaluator, carrying the offending token."""

    def __init__(self, token: Token, msg: str):
        self.token: Token = token
        super().__init__(msg, token.line, token.col)


class Reporter:
    """Collects diagnostics from every pass.

    Static errors (lexing, parsing, resolving) land in `errors`; runtime errors
    land in `runtime_errors`. Each report is also forwarded to `on_error` when
    one is given, so a front end can display errors as they happen.
    """

    def __init__(self, on_error: Callable[[QedError], None] | None = None):
        self.errors: list[QedError] = []
        self.runtime_errors: list[QedRuntimeError] = []
        self.on_error = on_error

    @property
    def had_error(self) -> bool:
        return len(self.errors) > 0

    @property
    def had_runtime_error(self) -> bool:
        return len(self.runtime_errors) > 0

    def report(self, error: QedError) -> None:
        if isinstance(error, QedRuntimeError):
            self.runtime_errors.append(error)
        else:
            self.errors.append(error)
        if self.on_error is not None:
            self.on_error(error)

    def reset(self) -> None:
        self.errors = []
        self.runtime_errors = []


def format_error(error: QedError) -> str:
    """One-line rendering used by front ends."""
    if isinstance(error, QedRuntimeError):
        return "runtime error: " + str(error)
    return "error: " + str(error)
