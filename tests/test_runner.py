"""Test runner for the QED interpreter phases"""

import signal
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from qed import Reporter, parse, resolve, run, to_sexpr, tokenize

PHASE_TIMEOUT = 5
TESTS_DIR = Path(__file__).parent

TESTS = {
    "qed_lex": {"dir": "lexer", "run": "phase"},
    "qed_parse": {"dir": "parser", "run": "phase"},
    "qed_resolve": {"dir": "resolver", "run": "phase"},
    "qed_run": {"dir": "interpreter", "run": "phase"},
    "qed_app": {"dir": "apps", "run": "qed_app"},
}


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


def _timeout_handler(signum, frame):
    raise TimeoutError("phase timed out")


signal.signal(signal.SIGALRM, _timeout_handler)


# ---------------------------------------------------------------------------
# Case file parsing
# ---------------------------------------------------------------------------


def parse_case_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_cases(test_dir: Path) -> list[tuple[str, str, str]]:
    """Glob *.tests in test_dir, return (test_id, input, expected) tuples."""
    results = []
    for test_file in sorted(test_dir.glob("*.tests")):
        for name, input_code, expected in parse_case_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_code, expected))
    return results


def discover_qed_apps(test_dir: Path) -> list[Path]:
    """Find all .qed programs that have a matching .expected file."""
    return [p for p in sorted(test_dir.glob("*.qed")) if p.with_suffix(".expected").exists()]


# ---------------------------------------------------------------------------
# Phase result + assertion checker
# ---------------------------------------------------------------------------


@dataclass
class PhaseResult:
    errors: list[str] = field(default_factory=list)
    data: dict | None = None


def resolve_dotpath(obj: object, path: str) -> object:
    """Resolve a dot-separated path against a nested dict/list structure."""
    parts = path.split(".")
    current = obj
    for part in parts:
        if part == "length":
            return len(current)
        if isinstance(current, list):
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current[part]
        else:
            raise KeyError(
                f"cannot traverse {type(current).__name__} with key {part!r}"
            )
    return current


def to_comparable(value: object) -> str:
    """Convert a value to its string form for comparison."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def check_expected(expected: str, result: PhaseResult, phase: str) -> None:
    if expected == "ok":
        if result.errors:
            pytest.fail(f"Expected ok, got error: {result.errors[0]}")
        return
    if expected.startswith("error:"):
        expected_msg = expected[6:].strip()
        if not result.errors:
            pytest.fail(f"Expected error containing '{expected_msg}', got ok")
        found = any(expected_msg.lower() in e.lower() for e in result.errors)
        if not found:
            pytest.fail(
                f"Expected error containing '{expected_msg}', got: {result.errors}"
            )
        return
    # Dotpath assertions
    if result.errors:
        pytest.fail(f"{phase} failed: {result.errors[0]}")
    assert result.data is not None, f"No data returned from {phase}"
    for line in expected.split("\n"):
        line = line.strip()
        if not line:
            continue
        if "=" not in line:
            pytest.fail(f"Bad assertion (no '='): {line}")
        path, expected_val = line.split("=", 1)
        path = path.strip()
        expected_val = expected_val.strip()
        try:
            actual = resolve_dotpath(result.data, path)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            pytest.fail(f"Path '{path}' not found in result: {e}")
        actual_str = to_comparable(actual)
        if actual_str != expected_val:
            pytest.fail(
                f"Assertion failed: {path}\n"
                f"  expected: {expected_val!r}\n"
                f"  actual:   {actual_str!r}"
            )


# ---------------------------------------------------------------------------
# Phase runners
# ---------------------------------------------------------------------------


def run_qed_lex(source: str) -> PhaseResult:
    reporter = Reporter()
    try:
        signal.alarm(PHASE_TIMEOUT)
        tokens = tokenize(source, reporter)
    finally:
        signal.alarm(0)
    if reporter.had_error:
        return PhaseResult(errors=[str(e) for e in reporter.errors])
    return PhaseResult(
        data={
            "tokens": [
                {
                    "type": t.type,
                    "lexeme": t.lexeme,
                    "literal": t.literal,
                    "line": t.line,
                    "col": t.col,
                }
                for t in tokens
            ]
        }
    )


def run_qed_parse(source: str) -> PhaseResult:
    reporter = Reporter()
    try:
        signal.alarm(PHASE_TIMEOUT)
        stmts = parse(source, reporter)
    finally:
        signal.alarm(0)
    if reporter.had_error:
        return PhaseResult(errors=[str(e) for e in reporter.errors])
    return PhaseResult(data={"ast": [to_sexpr(st) for st in stmts]})


def run_qed_resolve(source: str) -> PhaseResult:
    """Distances are keyed `name@line`; several uses on one line join with ','."""
    reporter = Reporter()
    try:
        signal.alarm(PHASE_TIMEOUT)
        stmts = parse(source, reporter)
        if reporter.had_error:
            return PhaseResult(errors=[str(e) for e in reporter.errors])
        table = resolve(stmts, reporter)
    finally:
        signal.alarm(0)
    if reporter.had_error:
        return PhaseResult(errors=[str(e) for e in reporter.errors])
    entries: list[tuple[int, int, str, int]] = []
    for expr, distance in table.items():
        tok = getattr(expr, "name", None) or getattr(expr, "keyword")
        entries.append((tok.line, tok.col, tok.lexeme, distance))
    local_map: dict[str, str] = {}
    for line, _col, name, distance in sorted(entries):
        key = f"{name}@{line}"
        if key in local_map:
            local_map[key] += "," + str(distance)
        else:
            local_map[key] = str(distance)
    return PhaseResult(data={"locals": local_map})


def run_qed_run(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        result = run(source)
    finally:
        signal.alarm(0)
    if result.exit_code != 0:
        return PhaseResult(errors=result.stderr.splitlines())
    return PhaseResult(
        data={"stdout": result.stdout.splitlines(), "exit_code": result.exit_code}
    )


RUNNERS = {
    "qed_lex": run_qed_lex,
    "qed_parse": run_qed_parse,
    "qed_resolve": run_qed_resolve,
    "qed_run": run_qed_run,
}


# ---------------------------------------------------------------------------
# Parametrization
# ---------------------------------------------------------------------------


def pytest_generate_tests(metafunc):
    for name, cfg in TESTS.items():
        test_dir = TESTS_DIR / cfg["dir"]
        kind = cfg["run"]
        if kind == "phase":
            fixture = f"{name}_input"
            if fixture in metafunc.fixturenames:
                cases = discover_cases(test_dir)
                params = [pytest.param(inp, exp, id=tid) for tid, inp, exp in cases]
                metafunc.parametrize(f"{fixture},{name}_expected", params)
        elif kind == "qed_app" and "qed_app" in metafunc.fixturenames:
            apps = discover_qed_apps(test_dir)
            params = [pytest.param(p, id=p.stem) for p in apps]
            metafunc.parametrize("qed_app", params)


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------


def test_qed_lex(qed_lex_input, qed_lex_expected):
    check_expected(qed_lex_expected, RUNNERS["qed_lex"](qed_lex_input), "qed_lex")


def test_qed_parse(qed_parse_input, qed_parse_expected):
    check_expected(
        qed_parse_expected, RUNNERS["qed_parse"](qed_parse_input), "qed_parse"
    )


def test_qed_resolve(qed_resolve_input, qed_resolve_expected):
    check_expected(
        qed_resolve_expected, RUNNERS["qed_resolve"](qed_resolve_input), "qed_resolve"
    )


def test_qed_run(qed_run_input, qed_run_expected):
    check_expected(qed_run_expected, RUNNERS["qed_run"](qed_run_input), "qed_run")


def test_qed_app(qed_app: Path):
    """Run a .qed program in-process and compare its stdout with .expected."""
    source = qed_app.read_text()
    result = run(source)
    if result.exit_code != 0:
        pytest.fail(f"Exit code {result.exit_code}:\n{result.stderr.strip()}")
    expected = qed_app.with_suffix(".expected").read_text()
    assert result.stdout == expected
