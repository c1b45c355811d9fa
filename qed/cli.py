"""QED CLI — run .qed files or an interactive prompt."""

from __future__ import annotations

import sys
from typing import TextIO

from . import parse
from .diagnostics import QedError, Reporter, format_error
from .emit import to_sexpr
from .resolve import Resolver
from .runtime import EXIT_OK, EXIT_STATIC_ERROR, Interpreter, run
from .tokens import tokenize

EXIT_USAGE = 2
EXIT_NO_INPUT = 66


USAGE: str = """\
qed [OPTIONS] [FILE]

Run a QED program. With no FILE, start an interactive prompt.

Options:
  --tokens  Print the token stream instead of running
  --ast     Print the parsed program as S-expressions instead of running
  --help    Show this help message
"""


def _print_error(error: QedError) -> None:
    print("qed: " + format_error(error), file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    show_tokens = False
    show_ast = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return EXIT_OK
        elif arg == "--tokens":
            show_tokens = True
            i += 1
        elif arg == "--ast":
            show_ast = True
            i += 1
        elif arg.startswith("-"):
            print("qed: unknown flag '" + arg + "'", file=sys.stderr)
            return EXIT_USAGE
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("qed: unexpected argument '" + arg + "'", file=sys.stderr)
            return EXIT_USAGE
    if show_tokens and show_ast:
        print("qed: --tokens and --ast are mutually exclusive", file=sys.stderr)
        return EXIT_USAGE

    if filepath == "":
        if show_tokens or show_ast:
            print("qed: missing file argument", file=sys.stderr)
            return EXIT_USAGE
        return repl(sys.stdin, sys.stdout)

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("qed: " + filepath + ": No such file or directory", file=sys.stderr)
        return EXIT_NO_INPUT
    except OSError as e:
        print("qed: " + filepath + ": " + str(e), file=sys.stderr)
        return EXIT_NO_INPUT
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("qed: " + filepath + ": invalid utf-8", file=sys.stderr)
        return EXIT_NO_INPUT

    if show_tokens:
        reporter = Reporter(on_error=_print_error)
        for tok in tokenize(source, reporter):
            print(repr(tok))
        return EXIT_STATIC_ERROR if reporter.had_error else EXIT_OK

    if show_ast:
        reporter = Reporter(on_error=_print_error)
        stmts = parse(source, reporter)
        for st in stmts:
            print(to_sexpr(st))
        return EXIT_STATIC_ERROR if reporter.had_error else EXIT_OK

    result = run(source)
    sys.stdout.write(result.stdout)
    for line in result.stderr.splitlines():
        print("qed: " + line, file=sys.stderr)
    return result.exit_code


def repl(stdin: TextIO, stdout: TextIO) -> int:
    """Read-eval-print loop. Globals persist across lines; errors do not end it."""
    reporter = Reporter(on_error=_print_error)
    interp = Interpreter(reporter, stdout)
    while True:
        stdout.write("> ")
        stdout.flush()
        line = stdin.readline()
        if line == "":
            stdout.write("\n")
            return EXIT_OK
        stmts = parse(line, reporter)
        if not reporter.had_error:
            distances = Resolver(reporter).resolve(stmts)
            if not reporter.had_error:
                interp.interpret(stmts, distances)
        reporter.reset()


if __name__ == "__main__":
    sys.exit(main())
