"""QED resolver — static binding-distance analysis.

Walks the tree once, mirroring the scopes the evaluator will create, and
records for every local variable reference how many environments to walk
outward to find its binding. References that are never found are globals and
get no entry. Keyword misuse (`this`, `super`, `return`) and scoping mistakes
are reported; resolution always continues past them.
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
from .diagnostics import Reporter, ResolveError
from .tokens import Token

# Function context kinds
FN_NONE = "none"
FN_FUNCTION = "function"
FN_METHOD = "method"
FN_INITIALIZER = "initializer"

# Class context kinds
CLASS_NONE = "none"
CLASS_CLASS = "class"
CLASS_SUBCLASS = "subclass"


class Resolver:
    """Computes the distance side table for one or more statement lists."""

    def __init__(self, reporter: Reporter | None = None) -> None:
        self.reporter: Reporter = reporter if reporter is not None else Reporter()
        # name -> defined? (False while the initializer is being resolved)
        self.scopes: list[dict[str, bool]] = []
        self.locals: dict[Expr, int] = {}
        self.current_fn: str = FN_NONE
        self.current_class: str = CLASS_NONE

    def error(self, tok: Token, msg: str) -> None:
        self.reporter.report(ResolveError.at(tok, msg))

    def resolve(self, stmts: list[Stmt]) -> dict[Expr, int]:
        for stmt in stmts:
            self._resolve_stmt(stmt)
        return self.locals

    # ── Scopes ───────────────────────────────────────────────

    def _begin_scope(self) -> None:
        self.scopes.append({})

    def _end_scope(self) -> None:
        self.scopes.pop()

    def _declare(self, name: Token) -> None:
        if not self.scopes:
            return
        scope = self.scopes[-1]
        if name.lexeme in scope:
            self.error(name, "Already a variable named '" + name.lexeme + "' in this scope.")
        scope[name.lexeme] = False

    def _define(self, name: Token) -> None:
        if not self.scopes:
            return
        self.scopes[-1][name.lexeme] = True

    def _resolve_local(self, expr: Expr, name: Token) -> None:
        depth = 0
        for scope in reversed(self.scopes):
            if name.lexeme in scope:
                self.locals[expr] = depth
                return
            depth += 1
        # Not found: global.

    def _resolve_function(self, fn: FunctionStmt, kind: str) -> None:
        enclosing_fn = self.current_fn
        self.current_fn = kind
        self._begin_scope()
        try:
            for param in fn.params:
                self._declare(param)
                self._define(param)
            for stmt in fn.body:
                self._resolve_stmt(stmt)
        finally:
            self._end_scope()
            self.current_fn = enclosing_fn

    # ── Statements ───────────────────────────────────────────

    def _resolve_stmt(self, st: Stmt) -> None:
        if isinstance(st, BlockStmt):
            self._begin_scope()
            for inner in st.stmts:
                self._resolve_stmt(inner)
            self._end_scope()
            return

        if isinstance(st, VarStmt):
            self._declare(st.name)
            if st.initializer is not None:
                self._resolve_expr(st.initializer)
            self._define(st.name)
            return

        if isinstance(st, FunctionStmt):
            # Defined before the body so the function can recurse.
            self._declare(st.name)
            self._define(st.name)
            self._resolve_function(st, FN_FUNCTION)
            return

        if isinstance(st, ClassStmt):
            self._resolve_class(st)
            return

        if isinstance(st, ExpressionStmt):
            self._resolve_expr(st.expr)
            return

        if isinstance(st, PrintStmt):
            for expr in st.exprs:
                self._resolve_expr(expr)
            return

        if isinstance(st, IfStmt):
            self._resolve_expr(st.cond)
            self._resolve_stmt(st.then_branch)
            if st.else_branch is not None:
                self._resolve_stmt(st.else_branch)
            return

        if isinstance(st, WhileStmt):
            self._resolve_expr(st.cond)
            self._resolve_stmt(st.body)
            return

        if isinstance(st, ForStmt):
            # The loop gets its own environment holding the initializer's variable.
            self._begin_scope()
            if st.init is not None:
                self._resolve_stmt(st.init)
            if st.cond is not None:
                self._resolve_expr(st.cond)
            if st.incr is not None:
                self._resolve_expr(st.incr)
            self._resolve_stmt(st.body)
            self._end_scope()
            return

        if isinstance(st, ReturnStmt):
            if self.current_fn == FN_NONE:
                self.error(st.keyword, "Can't return from top-level code.")
            if st.value is not None:
                if self.current_fn == FN_INITIALIZER:
                    self.error(st.keyword, "Can't return a value from an initializer.")
                self._resolve_expr(st.value)
            return

        if isinstance(st, (BreakStmt, ContinueStmt)):
            return

        raise TypeError("unsupported statement: " + type(st).__name__)

    def _resolve_class(self, st: ClassStmt) -> None:
        enclosing_class = self.current_class
        self.current_class = CLASS_CLASS
        self._declare(st.name)
        self._define(st.name)

        if st.superclass is not None:
            if st.superclass.name.lexeme == st.name.lexeme:
                self.error(st.superclass.name, "A class can't inherit from itself.")
            self.current_class = CLASS_SUBCLASS
            self._resolve_expr(st.superclass)
            self._begin_scope()
            self.scopes[-1]["super"] = True

        self._begin_scope()
        self.scopes[-1]["this"] = True
        for method in st.methods:
            kind = FN_METHOD
            if method.name.lexeme == "init":
                kind = FN_INITIALIZER
            self._resolve_function(method, kind)
        self._end_scope()

        if st.superclass is not None:
            self._end_scope()
        self.current_class = enclosing_class

    # ── Expressions ──────────────────────────────────────────

    def _resolve_expr(self, expr: Expr) -> None:
        if isinstance(expr, Variable):
            if self.scopes and self.scopes[-1].get(expr.name.lexeme) is False:
                self.error(expr.name, "Can't read local variable in its own initializer.")
            self._resolve_local(expr, expr.name)
            return

        if isinstance(expr, Assign):
            self._resolve_expr(expr.value)
            self._resolve_local(expr, expr.name)
            return

        if isinstance(expr, This):
            if self.current_class == CLASS_NONE:
                self.error(expr.keyword, "Can't use 'this' outside of a class.")
                return
            self._resolve_local(expr, expr.keyword)
            return

        if isinstance(expr, Super):
            if self.current_class == CLASS_NONE:
                self.error(expr.keyword, "Can't use 'super' outside of a class.")
                return
            if self.current_class != CLASS_SUBCLASS:
                self.error(expr.keyword, "Can't use 'super' in a class with no superclass.")
                return
            self._resolve_local(expr, expr.keyword)
            return

        if isinstance(expr, (Binary, Logical)):
            self._resolve_expr(expr.left)
            self._resolve_expr(expr.right)
            return

        if isinstance(expr, Unary):
            self._resolve_expr(expr.operand)
            return

        if isinstance(expr, Grouping):
            self._resolve_expr(expr.inner)
            return

        if isinstance(expr, Ternary):
            self._resolve_expr(expr.cond)
            self._resolve_expr(expr.then_expr)
            self._resolve_expr(expr.else_expr)
            return

        if isinstance(expr, Call):
            self._resolve_expr(expr.callee)
            for arg in expr.args:
                self._resolve_expr(arg)
            return

        if isinstance(expr, Get):
            self._resolve_expr(expr.obj)
            return

        if isinstance(expr, Set):
            self._resolve_expr(expr.value)
            self._resolve_expr(expr.obj)
            return

        if isinstance(expr, ArrayGet):
            self._resolve_expr(expr.array)
            self._resolve_expr(expr.index)
            return

        if isinstance(expr, ArraySet):
            self._resolve_expr(expr.value)
            self._resolve_expr(expr.array)
            self._resolve_expr(expr.index)
            return

        if isinstance(expr, ArrayLiteral):
            for element in expr.elements:
                self._resolve_expr(element)
            return

        if isinstance(expr, Literal):
            return

        raise TypeError("unsupported expression: " + type(expr).__name__)


def resolve(stmts: list[Stmt], reporter: Reporter | None = None) -> dict[Expr, int]:
    """Resolve a parsed program. Returns the expression -> distance side table."""
    return Resolver(reporter).resolve(stmts)
