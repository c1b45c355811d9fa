"""CLI tests for the qed entry point.

Each test runs `python -m qed.cli` in a subprocess from the project root, so
the exit code and both output streams are observed exactly as a shell would.
"""

import subprocess
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).parent.parent


def run_cli(args: list[str], stdin: str = "") -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "qed.cli"] + args,
        input=stdin,
        capture_output=True,
        text=True,
        cwd=ROOT_DIR,
        timeout=30,
    )


@pytest.fixture
def program(tmp_path: Path):
    def write(source: str) -> str:
        path = tmp_path / "prog.qed"
        path.write_text(source)
        return str(path)

    return write


def test_help():
    result = run_cli(["--help"])
    assert result.returncode == 0
    assert result.stdout.startswith("qed [OPTIONS] [FILE]")


def test_unknown_flag():
    result = run_cli(["--bogus"])
    assert result.returncode == 2
    assert result.stderr == "qed: unknown flag '--bogus'\n"


def test_extra_argument(program):
    path = program("print 1;")
    result = run_cli([path, "other.qed"])
    assert result.returncode == 2
    assert "unexpected argument 'other.qed'" in result.stderr


def test_tokens_and_ast_together(program):
    result = run_cli(["--tokens", "--ast", program("print 1;")])
    assert result.returncode == 2


def test_tokens_without_file():
    result = run_cli(["--tokens"])
    assert result.returncode == 2
    assert "missing file argument" in result.stderr


def test_missing_file(tmp_path: Path):
    missing = str(tmp_path / "nope.qed")
    result = run_cli([missing])
    assert result.returncode == 66
    assert result.stderr == "qed: " + missing + ": No such file or directory\n"


def test_run_file(program):
    result = run_cli([program('var a = 2;\nprint a * 3, "ok";\n')])
    assert result.returncode == 0
    assert result.stdout == "6 ok\n"
    assert result.stderr == ""


def test_static_error_is_not_evaluated(program):
    result = run_cli([program('print "side effect";\nvar = 1;\n')])
    assert result.returncode == 65
    assert result.stdout == ""
    assert result.stderr == "qed: error: Expect variable name. at line 2 col 5\n"


def test_runtime_error_keeps_prior_output(program):
    result = run_cli([program("print 1;\nprint 1 / 0;\nprint 2;\n")])
    assert result.returncode == 70
    assert result.stdout == "1\n"
    assert result.stderr == "qed: runtime error: Division by zero. at line 2 col 9\n"


def test_tokens(program):
    result = run_cli(["--tokens", program("print 1;")])
    assert result.returncode == 0
    assert result.stdout.splitlines() == [
        "Token(print, 'print', None, 1, 1)",
        "Token(NUMBER, '1', 1.0, 1, 7)",
        "Token(OP, ';', None, 1, 8)",
        "Token(EOF, '', None, 1, 9)",
    ]


def test_tokens_reports_lex_errors(program):
    result = run_cli(["--tokens", program("1 @")])
    assert result.returncode == 65
    assert "Unexpected character." in result.stderr


def test_ast(program):
    result = run_cli(["--ast", program("var x = -1 * (2);\nprint x;\n")])
    assert result.returncode == 0
    assert result.stdout == "(var x (* (- 1) (group 2)))\n(print x)\n"


def test_repl_keeps_globals():
    result = run_cli([], stdin="var a = 1;\na = a + 1;\nprint a;\n")
    assert result.returncode == 0
    assert result.stdout == "> > > 2\n> \n"


def test_repl_continues_after_errors():
    result = run_cli([], stdin="print nope;\nprint ;\nprint 3;\n")
    assert result.returncode == 0
    assert "3\n" in result.stdout
    assert "qed: runtime error: Undefined variable 'nope'." in result.stderr
    assert "qed: error: Expect expression." in result.stderr
