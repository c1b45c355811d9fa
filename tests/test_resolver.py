"""Tests for the resolver's distance table as a whole."""

from qed import Reporter, check, parse, resolve
from qed.ast import Variable
from qed.resolve import Resolver

PROGRAM = """\
var g = 0;
fun outer(a) {
  var b = a;
  fun inner() {
    var c = b;
    { print a, b, c, g; }
  }
  return inner;
}
class Base { greet() { return "base"; } }
class Child < Base {
  init() { this.tag = super.greet(); }
}
for (var i = 0; i < 2; i = i + 1) { print i; }
"""


def _by_position(table):
    rows = []
    for expr, distance in table.items():
        tok = getattr(expr, "name", None) or getattr(expr, "keyword")
        rows.append((tok.line, tok.col, tok.lexeme, distance))
    return sorted(rows)


def test_same_tree_resolves_identically():
    stmts = parse(PROGRAM)
    first = Resolver().resolve(stmts)
    second = Resolver().resolve(stmts)
    assert first == second
    assert len(first) > 0


def test_reparse_resolves_identically():
    first = _by_position(resolve(parse(PROGRAM)))
    second = _by_position(resolve(parse(PROGRAM)))
    assert first == second


def test_distances_of_nested_reads():
    rows = _by_position(resolve(parse(PROGRAM)))
    line6 = [(name, distance) for line, _col, name, distance in rows if line == 6]
    # block -> inner body -> outer body (a, b) ; c is in inner's body
    assert line6 == [("a", 2), ("b", 2), ("c", 1)]


def test_globals_absent_from_table():
    table = resolve(parse(PROGRAM))
    names = {
        expr.name.lexeme for expr in table if isinstance(expr, Variable)
    }
    assert "g" not in names
    assert "Base" not in names


def test_errors_do_not_stop_resolution():
    errors = check("print this;\n{ var a = a; }\nfun f() { return this; }\n")
    assert [e.line for e in errors] == [1, 2, 3]


def test_check_clean_program():
    assert check(PROGRAM) == []


def test_resolver_reports_to_given_reporter():
    seen = []
    reporter = Reporter(on_error=seen.append)
    resolve(parse("class A < A {}"), reporter)
    assert reporter.had_error
    assert seen[0].msg == "A class can't inherit from itself."
