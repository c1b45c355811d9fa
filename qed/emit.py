"""QED AST printer — fully parenthesized and reverse-Polish renderings.

Used for debugging output and tests only; evaluation never depends on it.
Both renderers are total over `qed/ast.py`: a new node type needs a case here.
"""

from __future__ import annotations

from .ast import (
    ArrayGet,
    ArrayLiteral,
    ArraySet,
    Assign,
    Binary,
    BlockStmt,
    BreakStmt,
    Call,
    ClassStmt,
    ContinueStmt,
    Expr,
    ExpressionStmt,
    ForStmt,
    FunctionStmt,
    Get,
    Grouping,
    IfStmt,
    Literal,
    Logical,
    PrintStmt,
    ReturnStmt,
    Set,
    Stmt,
    Super,
    Ternary,
    This,
    Unary,
    VarStmt,
    Variable,
    WhileStmt,
)
from .runtime import format_number


def to_sexpr(node: Expr | Stmt) -> str:
    """Render an expression or statement as an S-expression."""
    if isinstance(node, Stmt):
        return _stmt_sexpr(node)
    return _expr_sexpr(node)


def to_rpn(expr: Expr) -> str:
    """Render an expression in reverse-Polish notation."""
    return _expr_rpn(expr)


def _literal(value: float | str | bool | None) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return value


def _paren(name: str, parts: list[str]) -> str:
    if not parts:
        return "(" + name + ")"
    return "(" + name + " " + " ".join(parts) + ")"


# ── S-expressions ────────────────────────────────────────────


def _expr_sexpr(expr: Expr) -> str:
    if isinstance(expr, Literal):
        return _literal(expr.value)
    if isinstance(expr, Variable):
        return expr.name.lexeme
    if isinstance(expr, Assign):
        return _paren("=", [expr.name.lexeme, _expr_sexpr(expr.value)])
    if isinstance(expr, (Binary, Logical)):
        return _paren(
            expr.operator.lexeme, [_expr_sexpr(expr.left), _expr_sexpr(expr.right)]
        )
    if isinstance(expr, Unary):
        return _paren(expr.operator.lexeme, [_expr_sexpr(expr.operand)])
    if isinstance(expr, Grouping):
        return _paren("group", [_expr_sexpr(expr.inner)])
    if isinstance(expr, Ternary):
        return _paren(
            "?:",
            [
                _expr_sexpr(expr.cond),
                _expr_sexpr(expr.then_expr),
                _expr_sexpr(expr.else_expr),
            ],
        )
    if isinstance(expr, Call):
        return _paren("call", [_expr_sexpr(expr.callee)] + [_expr_sexpr(a) for a in expr.args])
    if isinstance(expr, Get):
        return _paren(".", [_expr_sexpr(expr.obj), expr.name.lexeme])
    if isinstance(expr, Set):
        target = _paren(".", [_expr_sexpr(expr.obj), expr.name.lexeme])
        return _paren("=", [target, _expr_sexpr(expr.value)])
    if isinstance(expr, ArrayGet):
        return _paren("[]", [_expr_sexpr(expr.array), _expr_sexpr(expr.index)])
    if isinstance(expr, ArraySet):
        target = _paren("[]", [_expr_sexpr(expr.array), _expr_sexpr(expr.index)])
        return _paren("=", [target, _expr_sexpr(expr.value)])
    if isinstance(expr, ArrayLiteral):
        return _paren("array", [_expr_sexpr(e) for e in expr.elements])
    if isinstance(expr, This):
        return "this"
    if isinstance(expr, Super):
        return _paren("super", [expr.method.lexeme])
    raise TypeError("cannot print expression: " + type(expr).__name__)


def _opt_stmt(st: Stmt | None) -> str:
    return "_" if st is None else _stmt_sexpr(st)


def _opt_expr(expr: Expr | None) -> str:
    return "_" if expr is None else _expr_sexpr(expr)


def _function_sexpr(fn: FunctionStmt) -> str:
    params = "(" + " ".join(p.lexeme for p in fn.params) + ")"
    return _paren("fun", [fn.name.lexeme, params] + [_stmt_sexpr(s) for s in fn.body])


def _stmt_sexpr(st: Stmt) -> str:
    if isinstance(st, ExpressionStmt):
        return _paren(";", [_expr_sexpr(st.expr)])
    if isinstance(st, PrintStmt):
        return _paren("print", [_expr_sexpr(e) for e in st.exprs])
    if isinstance(st, VarStmt):
        if st.initializer is None:
            return _paren("var", [st.name.lexeme])
        return _paren("var", [st.name.lexeme, _expr_sexpr(st.initializer)])
    if isinstance(st, BlockStmt):
        return _paren("block", [_stmt_sexpr(s) for s in st.stmts])
    if isinstance(st, IfStmt):
        parts = [_expr_sexpr(st.cond), _stmt_sexpr(st.then_branch)]
        if st.else_branch is not None:
            parts.append(_stmt_sexpr(st.else_branch))
        return _paren("if", parts)
    if isinstance(st, WhileStmt):
        return _paren("while", [_expr_sexpr(st.cond), _stmt_sexpr(st.body)])
    if isinstance(st, ForStmt):
        return _paren(
            "for",
            [
                _opt_stmt(st.init),
                _opt_expr(st.cond),
                _opt_expr(st.incr),
                _stmt_sexpr(st.body),
            ],
        )
    if isinstance(st, BreakStmt):
        return "(break)"
    if isinstance(st, ContinueStmt):
        return "(continue)"
    if isinstance(st, FunctionStmt):
        return _function_sexpr(st)
    if isinstance(st, ReturnStmt):
        if st.value is None:
            return "(return)"
        return _paren("return", [_expr_sexpr(st.value)])
    if isinstance(st, ClassStmt):
        head = [st.name.lexeme]
        if st.superclass is not None:
            head += ["<", st.superclass.name.lexeme]
        return _paren("class", head + [_function_sexpr(m) for m in st.methods])
    raise TypeError("cannot print statement: " + type(st).__name__)


# ── Reverse Polish ───────────────────────────────────────────


def _postfix(parts: list[str], op: str) -> str:
    return " ".join(parts + [op])


def _expr_rpn(expr: Expr) -> str:
    if isinstance(expr, Literal):
        return _literal(expr.value)
    if isinstance(expr, Variable):
        return expr.name.lexeme
    if isinstance(expr, Grouping):
        return _expr_rpn(expr.inner)
    if isinstance(expr, Unary):
        # '~' keeps negation distinct from binary subtraction.
        op = "~" if expr.operator.lexeme == "-" else expr.operator.lexeme
        return _postfix([_expr_rpn(expr.operand)], op)
    if isinstance(expr, (Binary, Logical)):
        return _postfix([_expr_rpn(expr.left), _expr_rpn(expr.right)], expr.operator.lexeme)
    if isinstance(expr, Ternary):
        return _postfix(
            [_expr_rpn(expr.cond), _expr_rpn(expr.then_expr), _expr_rpn(expr.else_expr)],
            "?",
        )
    if isinstance(expr, Assign):
        return _postfix([_expr_rpn(expr.value), expr.name.lexeme], "=")
    if isinstance(expr, Call):
        return _postfix([_expr_rpn(expr.callee)] + [_expr_rpn(a) for a in expr.args], "call")
    if isinstance(expr, Get):
        return _postfix([_expr_rpn(expr.obj)], "." + expr.name.lexeme)
    if isinstance(expr, Set):
        return _postfix([_expr_rpn(expr.obj), _expr_rpn(expr.value)], "." + expr.name.lexeme + "=")
    if isinstance(expr, ArrayGet):
        return _postfix([_expr_rpn(expr.array), _expr_rpn(expr.index)], "[]")
    if isinstance(expr, ArraySet):
        return _postfix(
            [_expr_rpn(expr.array), _expr_rpn(expr.index), _expr_rpn(expr.value)], "[]="
        )
    if isinstance(expr, ArrayLiteral):
        return _postfix(
            [_expr_rpn(e) for e in expr.elements], "[" + str(len(expr.elements)) + "]"
        )
    if isinstance(expr, This):
        return "this"
    if isinstance(expr, Super):
        return "super." + expr.method.lexeme
    raise TypeError("cannot print expression: " + type(expr).__name__)
