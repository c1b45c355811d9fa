"""QED parser — recursive descent, one method per grammar production."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

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
from .diagnostics import ParseError, Reporter
from .tokens import TK_EOF, TK_IDENT, TK_NUMBER, TK_STRING, Token

# Tokens that begin a declaration; panic-mode recovery stops in front of them.
SYNC_KEYWORDS: set[str] = {
    "class",
    "fun",
    "var",
    "for",
    "if",
    "while",
    "print",
    "return",
}

EQUALITY_OPS: set[str] = {"==", "!="}

COMPARE_OPS: set[str] = {"<", "<=", ">", ">="}


class Parser:
    """Recursive descent parser for QED.

    Errors inside a declaration are reported and recovered from by skipping to
    the next statement boundary, so a single run reports one error per broken
    statement instead of stopping at the first.
    """

    def __init__(self, tokens: list[Token], reporter: Reporter | None = None):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.reporter: Reporter = reporter if reporter is not None else Reporter()
        self.loop_depth: int = 0
        self.function_depth: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def at_end(self) -> bool:
        return self.current().type == TK_EOF

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if not self.at_end():
            self.pos += 1
        return tok

    def at(self, lexeme: str) -> bool:
        return self.current().lexeme == lexeme

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def match(self, *lexemes: str) -> bool:
        for lexeme in lexemes:
            if self.at(lexeme):
                self.advance()
                return True
        return False

    def expect(self, lexeme: str, msg: str) -> Token:
        if self.at(lexeme):
            return self.advance()
        raise self.error(self.current(), msg)

    def expect_ident(self, msg: str) -> Token:
        if self.at_type(TK_IDENT):
            return self.advance()
        raise self.error(self.current(), msg)

    def error(self, tok: Token, msg: str) -> ParseError:
        """Report an error at `tok` and return it for the caller to raise."""
        err = ParseError.at(tok, msg)
        self.reporter.report(err)
        return err

    def synchronize(self) -> None:
        self.advance()
        while not self.at_end():
            if self.previous().lexeme == ";":
                return
            if self.current().type in SYNC_KEYWORDS:
                return
            self.advance()

    @contextmanager
    def _in_loop(self) -> Iterator[None]:
        self.loop_depth += 1
        try:
            yield
        finally:
            self.loop_depth -= 1

    @contextmanager
    def _in_function(self) -> Iterator[None]:
        # A loop around a function declaration does not make `break` legal
        # inside its body.
        enclosing_loops = self.loop_depth
        self.loop_depth = 0
        self.function_depth += 1
        try:
            yield
        finally:
            self.function_depth -= 1
            self.loop_depth = enclosing_loops

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> list[Stmt]:
        stmts: list[Stmt] = []
        while not self.at_end():
            stmt = self.parse_declaration()
            if stmt is not None:
                stmts.append(stmt)
        return stmts

    def parse_declaration(self) -> Stmt | None:
        try:
            if self.match("class"):
                return self.parse_class_decl()
            if self.match("fun"):
                return self.parse_function("function")
            if self.match("var"):
                return self.parse_var_decl()
            return self.parse_stmt()
        except ParseError:
            self.synchronize()
            return None

    def parse_class_decl(self) -> ClassStmt:
        name = self.expect_ident("Expect class name.")
        superclass: Variable | None = None
        if self.match("<", ":"):
            super_name = self.expect_ident("Expect superclass name.")
            superclass = Variable(super_name)
        self.expect("{", "Expect '{' before class body.")
        methods: list[FunctionStmt] = []
        while not self.at("}") and not self.at_end():
            methods.append(self.parse_function("method"))
        self.expect("}", "Expect '}' after class body.")
        return ClassStmt(name, superclass, methods)

    def parse_function(self, kind: str) -> FunctionStmt:
        name = self.expect_ident("Expect " + kind + " name.")
        self.expect("(", "Expect '(' after " + kind + " name.")
        params: list[Token] = []
        if not self.at(")"):
            params.append(self.expect_ident("Expect parameter name."))
            while self.match(","):
                params.append(self.expect_ident("Expect parameter name."))
        self.expect(")", "Expect ')' after parameters.")
        self.expect("{", "Expect '{' before " + kind + " body.")
        with self._in_function():
            body = self.parse_block()
        return FunctionStmt(name, params, body)

    def parse_var_decl(self) -> VarStmt:
        name = self.expect_ident("Expect variable name.")
        initializer: Expr | None = None
        if self.match("="):
            initializer = self.parse_expr()
        self.expect(";", "Expect ';' after variable declaration.")
        return VarStmt(name, initializer)

    # ── Statements ───────────────────────────────────────────

    def parse_stmt(self) -> Stmt:
        if self.match("print"):
            return self.parse_print_stmt()
        if self.match("{"):
            return BlockStmt(self.parse_block())
        if self.match("if"):
            return self.parse_if_stmt()
        if self.match("while"):
            return self.parse_while_stmt()
        if self.match("for"):
            return self.parse_for_stmt()
        if self.match("break"):
            return self.parse_break_stmt()
        if self.match("continue"):
            return self.parse_continue_stmt()
        if self.match("return"):
            return self.parse_return_stmt()
        return self.parse_expr_stmt()

    def parse_block(self) -> list[Stmt]:
        """Block body after the opening '{'."""
        stmts: list[Stmt] = []
        while not self.at("}") and not self.at_end():
            stmt = self.parse_declaration()
            if stmt is not None:
                stmts.append(stmt)
        self.expect("}", "Expect '}' after block.")
        return stmts

    def parse_print_stmt(self) -> PrintStmt:
        """print args are a list, so the comma here is a separator, not an operator."""
        keyword = self.previous()
        exprs: list[Expr] = [self.parse_assignment()]
        while self.match(","):
            exprs.append(self.parse_assignment())
        self.expect(";", "Expect ';' after value.")
        return PrintStmt(keyword, exprs)

    def parse_if_stmt(self) -> IfStmt:
        self.expect("(", "Expect '(' after 'if'.")
        cond = self.parse_expr()
        self.expect(")", "Expect ')' after if condition.")
        then_branch = self.parse_stmt()
        else_branch: Stmt | None = None
        if self.match("else"):
            else_branch = self.parse_stmt()
        return IfStmt(cond, then_branch, else_branch)

    def parse_while_stmt(self) -> WhileStmt:
        self.expect("(", "Expect '(' after 'while'.")
        cond = self.parse_expr()
        self.expect(")", "Expect ')' after condition.")
        with self._in_loop():
            body = self.parse_stmt()
        return WhileStmt(cond, body)

    def parse_for_stmt(self) -> ForStmt:
        self.expect("(", "Expect '(' after 'for'.")
        init: Stmt | None
        if self.match(";"):
            init = None
        elif self.match("var"):
            init = self.parse_var_decl()
        else:
            init = self.parse_expr_stmt()
        cond: Expr | None = None
        if not self.at(";"):
            cond = self.parse_expr()
        self.expect(";", "Expect ';' after loop condition.")
        incr: Expr | None = None
        if not self.at(")"):
            incr = self.parse_expr()
        self.expect(")", "Expect ')' after for clauses.")
        with self._in_loop():
            body = self.parse_stmt()
        return ForStmt(init, cond, incr, body)

    def parse_break_stmt(self) -> BreakStmt:
        keyword = self.previous()
        if self.loop_depth == 0:
            self.error(keyword, "Can't use 'break' outside of a loop.")
        self.expect(";", "Expect ';' after 'break'.")
        return BreakStmt(keyword)

    def parse_continue_stmt(self) -> ContinueStmt:
        keyword = self.previous()
        if self.loop_depth == 0:
            self.error(keyword, "Can't use 'continue' outside of a loop.")
        self.expect(";", "Expect ';' after 'continue'.")
        return ContinueStmt(keyword)

    def parse_return_stmt(self) -> ReturnStmt:
        keyword = self.previous()
        if self.function_depth == 0:
            self.error(keyword, "Can't return from top-level code.")
        value: Expr | None = None
        if not self.at(";"):
            value = self.parse_expr()
        self.expect(";", "Expect ';' after return value.")
        return ReturnStmt(keyword, value)

    def parse_expr_stmt(self) -> ExpressionStmt:
        expr = self.parse_expr()
        self.expect(";", "Expect ';' after expression.")
        return ExpressionStmt(expr)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        """Expr = Assignment ( ',' Assignment )*"""
        left = self.parse_assignment()
        while self.match(","):
            op = self.previous()
            right = self.parse_assignment()
            left = Binary(left, op, right)
        return left

    def parse_assignment(self) -> Expr:
        """Assignment = Target '=' Assignment | Ternary"""
        expr = self.parse_ternary()
        if self.match("="):
            equals = self.previous()
            value = self.parse_assignment()
            if isinstance(expr, Variable):
                return Assign(expr.name, value)
            if isinstance(expr, Get):
                return Set(expr.obj, expr.name, value)
            if isinstance(expr, ArrayGet):
                return ArraySet(expr.array, expr.bracket, expr.index, value)
            # Reported but not raised: the parser is still in sync.
            self.error(equals, "Invalid assignment target.")
        return expr

    def parse_ternary(self) -> Expr:
        """Ternary = Or ( '?' Assignment ':' Ternary )?"""
        expr = self.parse_or()
        if self.match("?"):
            then_expr = self.parse_assignment()
            self.expect(":", "Expect ':' after then branch of conditional expression.")
            else_expr = self.parse_ternary()
            return Ternary(expr, then_expr, else_expr)
        return expr

    def parse_or(self) -> Expr:
        """Or = And ( 'or' And )*"""
        left = self.parse_and()
        while self.match("or"):
            op = self.previous()
            right = self.parse_and()
            left = Logical(left, op, right)
        return left

    def parse_and(self) -> Expr:
        """And = Equality ( 'and' Equality )*"""
        left = self.parse_equality()
        while self.match("and"):
            op = self.previous()
            right = self.parse_equality()
            left = Logical(left, op, right)
        return left

    def parse_equality(self) -> Expr:
        """Equality = Compare ( ( '==' | '!=' ) Compare )*"""
        left = self.parse_compare()
        while self.current().lexeme in EQUALITY_OPS:
            op = self.advance()
            right = self.parse_compare()
            left = Binary(left, op, right)
        return left

    def parse_compare(self) -> Expr:
        """Compare = Sum ( CompOp Sum )*"""
        left = self.parse_sum()
        while self.current().lexeme in COMPARE_OPS:
            op = self.advance()
            right = self.parse_sum()
            left = Binary(left, op, right)
        return left

    def parse_sum(self) -> Expr:
        """Sum = Product ( ( '+' | '-' ) Product )*"""
        left = self.parse_product()
        while self.at("+") or self.at("-"):
            op = self.advance()
            right = self.parse_product()
            left = Binary(left, op, right)
        return left

    def parse_product(self) -> Expr:
        """Product = Unary ( ( '*' | '/' ) Unary )*"""
        left = self.parse_unary()
        while self.at("*") or self.at("/"):
            op = self.advance()
            right = self.parse_unary()
            left = Binary(left, op, right)
        return left

    def parse_unary(self) -> Expr:
        """Unary = ( '!' | '-' ) Unary | Postfix"""
        if self.at("!") or self.at("-"):
            op = self.advance()
            operand = self.parse_unary()
            return Unary(op, operand)
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """Postfix = Primary ( '(' Args ')' | '.' IDENT | '[' Expr ']' )*"""
        expr = self.parse_primary()
        while True:
            if self.match("("):
                args = self.parse_arg_list()
                paren = self.expect(")", "Expect ')' after arguments.")
                expr = Call(expr, paren, args)
            elif self.match("."):
                name = self.expect_ident("Expect property name after '.'.")
                expr = Get(expr, name)
            elif self.match("["):
                bracket = self.previous()
                index = self.parse_expr()
                self.expect("]", "Expect ']' after index.")
                expr = ArrayGet(expr, bracket, index)
            else:
                break
        return expr

    def parse_arg_list(self) -> list[Expr]:
        """ArgList = ( Assignment ( ',' Assignment )* )?"""
        args: list[Expr] = []
        if self.at(")"):
            return args
        args.append(self.parse_assignment())
        while self.match(","):
            args.append(self.parse_assignment())
        return args

    def parse_primary(self) -> Expr:
        """Parse a primary expression."""
        tok = self.current()

        if tok.type == TK_NUMBER or tok.type == TK_STRING:
            self.advance()
            return Literal(tok.literal)
        if self.match("true"):
            return Literal(True)
        if self.match("false"):
            return Literal(False)
        if self.match("nil"):
            return Literal(None)
        if self.match("this"):
            return This(self.previous())
        if self.match("super"):
            keyword = self.previous()
            self.expect(".", "Expect '.' after 'super'.")
            method = self.expect_ident("Expect superclass method name.")
            return Super(keyword, method)
        if tok.type == TK_IDENT:
            self.advance()
            return Variable(tok)

        if self.match("("):
            inner = self.parse_expr()
            self.expect(")", "Expect ')' after expression.")
            return Grouping(inner)

        if self.match("["):
            bracket = self.previous()
            elements: list[Expr] = []
            if not self.at("]"):
                elements.append(self.parse_assignment())
                while self.match(","):
                    elements.append(self.parse_assignment())
            self.expect("]", "Expect ']' after array elements.")
            return ArrayLiteral(bracket, elements)

        raise self.error(tok, "Expect expression.")
