"""Tests for the S-expression and reverse-Polish printers."""

import io

import pytest

from qed import Interpreter, Reporter, parse, resolve, to_rpn, to_sexpr
from qed.ast import ExpressionStmt


def expr_of(source: str):
    reporter = Reporter()
    stmts = parse(source + ";", reporter)
    assert not reporter.had_error, reporter.errors
    stmt = stmts[0]
    assert isinstance(stmt, ExpressionStmt)
    return stmt.expr


@pytest.mark.parametrize(
    "source,expected",
    [
        ("-123 * (45.67)", "(* (- 123) (group 45.67))"),
        ("a.b.c = f(1)[2]", "(= (. (. a b) c) ([] (call f 1) 2))"),
        ('x ? "yes" : nil', "(?: x yes nil)"),
        ("super.m", "(super m)"),
        ("[1, [2]]", "(array 1 (array 2))"),
    ],
)
def test_sexpr_expressions(source: str, expected: str):
    assert to_sexpr(expr_of(source)) == expected


@pytest.mark.parametrize(
    "source,expected",
    [
        ("(1 + 2) * 3", "1 2 + 3 *"),
        ("1 + 2 * 3", "1 2 3 * +"),
        ("-a * b", "a ~ b *"),
        ("!ok", "ok !"),
        ("c ? a : b", "c a b ?"),
        ("a or b and c", "a b c and or"),
        ("x = 1 - 2", "1 2 - x ="),
        ("f(1, 2)", "f 1 2 call"),
        ("p.x", "p .x"),
        ("xs[0]", "xs 0 []"),
        ("[1, 2]", "1 2 [2]"),
    ],
)
def test_rpn(source: str, expected: str):
    assert to_rpn(expr_of(source)) == expected


def test_sexpr_statements():
    source = """\
class B < A { greet() { return super.greet() + "B"; } }
while (x) { if (y) break; else continue; }
"""
    assert [to_sexpr(st) for st in parse(source)] == [
        "(class B < A (fun greet () (return (+ (call (super greet)) B))))",
        "(while x (block (if y (break) (continue))))",
    ]


def test_printing_does_not_change_evaluation():
    stmts = parse("var a = [1, 2];\nprint a[0] + a[1];\n")
    rendered = [to_sexpr(st) for st in stmts]
    out = io.StringIO()
    Interpreter(stdout=out).interpret(stmts, resolve(stmts))
    assert out.getvalue() == "3\n"
    assert [to_sexpr(st) for st in stmts] == rendered
