"""QED AST — parse-time node definitions.

Nodes are frozen and compare by identity, so the resolver can use them as
keys of its side table without ever mutating the tree.
"""

from __future__ import annotations

from dataclasses import dataclass

from .tokens import Token


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True, eq=False)
class Expr:
    """Base for all expressions."""


@dataclass(frozen=True, eq=False)
class Literal(Expr):
    """Number, string, true/false, or nil (None)."""

    value: float | str | bool | None


@dataclass(frozen=True, eq=False)
class Variable(Expr):
    name: Token


@dataclass(frozen=True, eq=False)
class Assign(Expr):
    """name = value."""

    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class Binary(Expr):
    """Arithmetic, comparison, equality, and the comma operator."""

    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Logical(Expr):
    """Short-circuiting `and` / `or`."""

    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Unary(Expr):
    operator: Token
    operand: Expr


@dataclass(frozen=True, eq=False)
class Grouping(Expr):
    inner: Expr


@dataclass(frozen=True, eq=False)
class Ternary(Expr):
    """cond ? then_expr : else_expr."""

    cond: Expr
    then_expr: Expr
    else_expr: Expr


@dataclass(frozen=True, eq=False)
class Call(Expr):
    """callee(args); paren is the closing ')' for error locations."""

    callee: Expr
    paren: Token
    args: list[Expr]


@dataclass(frozen=True, eq=False)
class Get(Expr):
    """obj.name."""

    obj: Expr
    name: Token


@dataclass(frozen=True, eq=False)
class Set(Expr):
    """obj.name = value."""

    obj: Expr
    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class ArrayGet(Expr):
    """array[index]."""

    array: Expr
    bracket: Token
    index: Expr


@dataclass(frozen=True, eq=False)
class ArraySet(Expr):
    """array[index] = value."""

    array: Expr
    bracket: Token
    index: Expr
    value: Expr


@dataclass(frozen=True, eq=False)
class ArrayLiteral(Expr):
    """[e0, e1, ...]."""

    bracket: Token
    elements: list[Expr]


@dataclass(frozen=True, eq=False)
class This(Expr):
    keyword: Token


@dataclass(frozen=True, eq=False)
class Super(Expr):
    """super.method."""

    keyword: Token
    method: Token


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(frozen=True, eq=False)
class Stmt:
    """Base for all statements."""


@dataclass(frozen=True, eq=False)
class ExpressionStmt(Stmt):
    expr: Expr


@dataclass(frozen=True, eq=False)
class PrintStmt(Stmt):
    """print e0, e1, ...;"""

    keyword: Token
    exprs: list[Expr]


@dataclass(frozen=True, eq=False)
class VarStmt(Stmt):
    """var name = initializer;"""

    name: Token
    initializer: Expr | None


@dataclass(frozen=True, eq=False)
class BlockStmt(Stmt):
    stmts: list[Stmt]


@dataclass(frozen=True, eq=False)
class IfStmt(Stmt):
    cond: Expr
    then_branch: Stmt
    else_branch: Stmt | None


@dataclass(frozen=True, eq=False)
class WhileStmt(Stmt):
    cond: Expr
    body: Stmt


@dataclass(frozen=True, eq=False)
class ForStmt(Stmt):
    """for (init; cond; incr) body; every clause is optional."""

    init: Stmt | None
    cond: Expr | None
    incr: Expr | None
    body: Stmt


@dataclass(frozen=True, eq=False)
class BreakStmt(Stmt):
    keyword: Token


@dataclass(frozen=True, eq=False)
class ContinueStmt(Stmt):
    keyword: Token


@dataclass(frozen=True, eq=False)
class FunctionStmt(Stmt):
    """fun name(params) { body }; also used for class methods."""

    name: Token
    params: list[Token]
    body: list[Stmt]


@dataclass(frozen=True, eq=False)
class ReturnStmt(Stmt):
    keyword: Token
    value: Expr | None


@dataclass(frozen=True, eq=False)
class ClassStmt(Stmt):
    """class Name < Superclass { methods }."""

    name: Token
    superclass: Variable | None
    methods: list[FunctionStmt]
