"""QED interpreter — public API."""

from __future__ import annotations

from .ast import Stmt
from .diagnostics import (
    ParseError as ParseError,
    QedError as QedError,
    QedRuntimeError as QedRuntimeError,
    Reporter as Reporter,
    ResolveError as ResolveError,
    TokenizeError as TokenizeError,
)
from .emit import to_rpn as to_rpn, to_sexpr as to_sexpr
from .parse import Parser
from .resolve import Resolver as Resolver, resolve as resolve
from .runtime import Interpreter as Interpreter, RunResult as RunResult, run as run
from .tokens import tokenize as tokenize


def parse(source: str, reporter: Reporter | None = None) -> list[Stmt]:
    """Tokenize and parse QED source. Errors go to `reporter`; check `had_error`."""
    if reporter is None:
        reporter = Reporter()
    tokens = tokenize(source, reporter)
    return Parser(tokens, reporter).parse_program()


def check(source: str) -> list[QedError]:
    """Parse and resolve QED source. Returns static errors (empty = ok)."""
    reporter = Reporter()
    stmts = parse(source, reporter)
    if not reporter.had_error:
        resolve(stmts, reporter)
    return reporter.errors

