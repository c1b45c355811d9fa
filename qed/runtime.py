"""QED runtime — value model and tree-walking evaluator.

The evaluator executes the parsed tree directly, using the resolver's side
table to find local bindings at a fixed distance up the environment chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import io
import math
import sys
import weakref
from typing import Callable, TextIO

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
from .diagnostics import QedRuntimeError, Reporter, format_error
from .parse import Parser
from .resolve import Resolver
from .tokens import Token, tokenize


# ============================================================
# Values
# ============================================================


class Value:
    """A runtime value."""

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass(eq=False)
class VNil(Value):
    def to_string(self) -> str:
        return "nil"


NIL = VNil()


@dataclass(eq=False)
class VBool(Value):
    value: bool

    def to_string(self) -> str:
        return "true" if self.value else "false"


@dataclass(eq=False)
class VNumber(Value):
    value: float

    def to_string(self) -> str:
        return format_number(self.value)


@dataclass(eq=False)
class VString(Value):
    value: str

    def to_string(self) -> str:
        return self.value


@dataclass(eq=False)
class VArray(Value):
    elements: list[Value]

    def to_string(self) -> str:
        return _array_to_string(self, set())


@dataclass(eq=False)
class VFunction(Value):
    """A user function closed over the environment it was declared in."""

    decl: FunctionStmt
    closure: Environment
    is_initializer: bool = False

    def to_string(self) -> str:
        return f"<fun {self.decl.name.lexeme}>"

    def arity(self) -> int:
        return len(self.decl.params)

    def bind(self, instance: VInstance) -> VFunction:
        env = Environment(self.closure)
        env.define("this", instance)
        return VFunction(self.decl, env, self.is_initializer)

    def call(self, interp: Interpreter, args: list[Value]) -> Value:
        env = Environment(self.closure)
        for i, param in enumerate(self.decl.params):
            env.define(param.lexeme, args[i])
        try:
            interp.execute_block(self.decl.body, env)
        except _Return as r:
            if self.is_initializer:
                return self.closure.get_at(0, "this")
            return r.value
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        return NIL


@dataclass(eq=False)
class VNative(Value):
    """A host function bound in the global environment."""

    name: str
    n_params: int
    fn: Callable[[list[Value]], Value]

    def to_string(self) -> str:
        return f"<native fun {self.name}>"

    def arity(self) -> int:
        return self.n_params

    def call(self, interp: Interpreter, args: list[Value]) -> Value:
        return self.fn(args)


@dataclass(eq=False)
class VClass(Value):
    name: str
    superclass: VClass | None
    methods: dict[str, VFunction]

    def to_string(self) -> str:
        return f"<class {self.name}>"

    def find_method(self, name: str) -> VFunction | None:
        klass: VClass | None = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        init = self.find_method("init")
        if init is None:
            return 0
        return init.arity()

    def call(self, interp: Interpreter, args: list[Value]) -> Value:
        instance = VInstance(self)
        init = self.find_method("init")
        if init is not None:
            init.bind(instance).call(interp, args)
        return instance


@dataclass(eq=False)
class VInstance(Value):
    klass: VClass
    fields: dict[str, Value] = field(default_factory=dict)

    def to_string(self) -> str:
        return f"<instance of {self.klass.name}>"

    def get(self, name: Token) -> Value:
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]
        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)
        raise QedRuntimeError(name, "Undefined property '" + name.lexeme + "'.")

    def set(self, name: Token, value: Value) -> None:
        self.fields[name.lexeme] = value


def _array_to_string(arr: VArray, active: set[int]) -> str:
    # An array already being printed further out renders as [...].
    if id(arr) in active:
        return "[...]"
    active.add(id(arr))
    parts: list[str] = []
    for v in arr.elements:
        if isinstance(v, VArray):
            parts.append(_array_to_string(v, active))
        else:
            parts.append(v.to_string())
    active.discard(id(arr))
    return "[" + ", ".join(parts) + "]"


def format_number(x: float) -> str:
    """Integer-valued numbers print without a trailing '.0'."""
    text = repr(x)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def is_truthy(v: Value) -> bool:
    if isinstance(v, VNil):
        return False
    if isinstance(v, VBool):
        return v.value
    return True


def values_equal(a: Value, b: Value) -> bool:
    if isinstance(a, VNil) and isinstance(b, VNil):
        return True
    if isinstance(a, VBool) and isinstance(b, VBool):
        return a.value == b.value
    if isinstance(a, VNumber) and isinstance(b, VNumber):
        return a.value == b.value
    if isinstance(a, VString) and isinstance(b, VString):
        return a.value == b.value
    # Arrays, functions, classes and instances compare by identity.
    return a is b


# ============================================================
# Environments
# ============================================================


class Environment:
    """One scope frame. The enclosing frame is shared, never copied."""

    def __init__(self, enclosing: Environment | None = None) -> None:
        self.values: dict[str, Value] = {}
        self.enclosing: Environment | None = enclosing

    def define(self, name: str, value: Value) -> None:
        self.values[name] = value

    def get(self, name: Token) -> Value:
        env: Environment | None = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.enclosing
        raise QedRuntimeError(name, "Undefined variable '" + name.lexeme + "'.")

    def assign(self, name: Token, value: Value) -> None:
        env: Environment | None = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.enclosing
        raise QedRuntimeError(
            name, "Assignment to undefined variable '" + name.lexeme + "'."
        )

    def ancestor(self, distance: int) -> Environment:
        env = self
        for _ in range(distance):
            assert env.enclosing is not None, "resolver distance past global scope"
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Value:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: Token, value: Value) -> None:
        self.ancestor(distance).values[name.lexeme] = value


# ============================================================
# Control flow signals (internal)
# ============================================================


class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: Value


class _Break(_Signal):
    pass


class _Continue(_Signal):
    pass


class _NativeFault(Exception):
    """Raised by natives; the call site turns it into a located runtime error."""


# ============================================================
# Natives (array primitives)
# ============================================================


def _expect_array(v: Value) -> VArray:
    if not isinstance(v, VArray):
        raise _NativeFault("Expected an array.")
    return v


def _native_len(args: list[Value]) -> Value:
    return VNumber(float(len(_expect_array(args[0]).elements)))


def _native_push(args: list[Value]) -> Value:
    arr = _expect_array(args[0])
    arr.elements.append(args[1])
    return VNumber(float(len(arr.elements)))


def _native_pop(args: list[Value]) -> Value:
    arr = _expect_array(args[0])
    if not arr.elements:
        raise _NativeFault("Can't pop from an empty array.")
    return arr.elements.pop()


_NATIVES: dict[str, tuple[int, Callable[[list[Value]], Value]]] = {
    "len": (1, _native_len),
    "push": (2, _native_push),
    "pop": (1, _native_pop),
}


# ============================================================
# Interpreter
# ============================================================


class Interpreter:
    """Evaluates resolved statements against a global environment.

    One interpreter can run several programs in turn (an interactive session):
    globals and recorded distances persist between `interpret` calls.
    """

    def __init__(self, reporter: Reporter | None = None, stdout: TextIO | None = None):
        self.reporter: Reporter = reporter if reporter is not None else Reporter()
        self.stdout: TextIO = stdout if stdout is not None else sys.stdout
        self.globals = Environment()
        self.environment = self.globals
        # Keyed weakly so an interactive session drops the tables of lines
        # whose trees are no longer reachable from any live closure.
        self.locals: weakref.WeakKeyDictionary[Expr, int] = weakref.WeakKeyDictionary()
        for name, (n_params, fn) in _NATIVES.items():
            self.globals.define(name, VNative(name, n_params, fn))

    def interpret(self, stmts: list[Stmt], distances: dict[Expr, int]) -> None:
        """Run statements; a runtime error is reported and stops this call."""
        self.locals.update(distances)
        try:
            for st in stmts:
                self.execute(st)
        except QedRuntimeError as e:
            self.reporter.report(e)

    # ---- Statements --------------------------------------------------------

    def execute_block(self, stmts: list[Stmt], env: Environment) -> None:
        previous = self.environment
        self.environment = env
        try:
            for st in stmts:
                self.execute(st)
        finally:
            self.environment = previous

    def execute(self, st: Stmt) -> None:
        if isinstance(st, ExpressionStmt):
            self.evaluate(st.expr)
            return

        if isinstance(st, PrintStmt):
            try:
                parts = [self.evaluate(e).to_string() for e in st.exprs]
            except RecursionError:
                raise QedRuntimeError(st.keyword, "Stack overflow.") from None
            self.stdout.write(" ".join(parts) + "\n")
            return

        if isinstance(st, VarStmt):
            value: Value = NIL
            if st.initializer is not None:
                value = self.evaluate(st.initializer)
            self.environment.define(st.name.lexeme, value)
            return

        if isinstance(st, BlockStmt):
            self.execute_block(st.stmts, Environment(self.environment))
            return

        if isinstance(st, IfStmt):
            if is_truthy(self.evaluate(st.cond)):
                self.execute(st.then_branch)
            elif st.else_branch is not None:
                self.execute(st.else_branch)
            return

        if isinstance(st, WhileStmt):
            while is_truthy(self.evaluate(st.cond)):
                try:
                    self.execute(st.body)
                except _Continue:
                    continue
                except _Break:
                    return
            return

        if isinstance(st, ForStmt):
            self._execute_for(st)
            return

        if isinstance(st, BreakStmt):
            raise _Break()
        if isinstance(st, ContinueStmt):
            raise _Continue()

        if isinstance(st, FunctionStmt):
            self.environment.define(
                st.name.lexeme, VFunction(st, self.environment, False)
            )
            return

        if isinstance(st, ReturnStmt):
            if st.value is None:
                raise _Return(NIL)
            raise _Return(self.evaluate(st.value))

        if isinstance(st, ClassStmt):
            self._execute_class(st)
            return

        raise TypeError("unsupported statement: " + type(st).__name__)

    def _execute_for(self, st: ForStmt) -> None:
        previous = self.environment
        self.environment = Environment(previous)
        try:
            if st.init is not None:
                self.execute(st.init)
            while st.cond is None or is_truthy(self.evaluate(st.cond)):
                try:
                    self.execute(st.body)
                except _Continue:
                    pass
                except _Break:
                    return
                # Runs after `continue` too.
                if st.incr is not None:
                    self.evaluate(st.incr)
        finally:
            self.environment = previous

    def _execute_class(self, st: ClassStmt) -> None:
        superclass: VClass | None = None
        if st.superclass is not None:
            sc = self.evaluate(st.superclass)
            if not isinstance(sc, VClass):
                raise QedRuntimeError(st.superclass.name, "Superclass must be a class.")
            superclass = sc

        self.environment.define(st.name.lexeme, NIL)
        previous = self.environment
        try:
            if superclass is not None:
                self.environment = Environment(self.environment)
                self.environment.define("super", superclass)
            methods: dict[str, VFunction] = {}
            for method in st.methods:
                methods[method.name.lexeme] = VFunction(
                    method, self.environment, method.name.lexeme == "init"
                )
            klass = VClass(st.name.lexeme, superclass, methods)
        finally:
            self.environment = previous
        self.environment.assign(st.name, klass)

    # ---- Expressions -------------------------------------------------------

    def evaluate(self, expr: Expr) -> Value:
        if isinstance(expr, Literal):
            return _literal_value(expr.value)

        if isinstance(expr, Grouping):
            return self.evaluate(expr.inner)

        if isinstance(expr, Variable):
            return self._lookup(expr.name, expr)

        if isinstance(expr, Assign):
            value = self.evaluate(expr.value)
            distance = self.locals.get(expr)
            if distance is not None:
                self.environment.assign_at(distance, expr.name, value)
            else:
                self.globals.assign(expr.name, value)
            return value

        if isinstance(expr, Unary):
            operand = self.evaluate(expr.operand)
            if expr.operator.lexeme == "!":
                return VBool(not is_truthy(operand))
            if expr.operator.lexeme == "-":
                if not isinstance(operand, VNumber):
                    raise QedRuntimeError(expr.operator, "Operand must be a number.")
                return VNumber(-operand.value)
            raise QedRuntimeError(expr.operator, "Unknown unary operator.")

        if isinstance(expr, Binary):
            left = self.evaluate(expr.left)
            right = self.evaluate(expr.right)
            return self._eval_binary(expr.operator, left, right)

        if isinstance(expr, Logical):
            left = self.evaluate(expr.left)
            if expr.operator.lexeme == "or":
                if is_truthy(left):
                    return left
            elif not is_truthy(left):
                return left
            return self.evaluate(expr.right)

        if isinstance(expr, Ternary):
            if is_truthy(self.evaluate(expr.cond)):
                return self.evaluate(expr.then_expr)
            return self.evaluate(expr.else_expr)

        if isinstance(expr, Call):
            return self._eval_call(expr)

        if isinstance(expr, Get):
            obj = self.evaluate(expr.obj)
            if not isinstance(obj, VInstance):
                raise QedRuntimeError(expr.name, "Only instances have properties.")
            return obj.get(expr.name)

        if isinstance(expr, Set):
            obj = self.evaluate(expr.obj)
            if not isinstance(obj, VInstance):
                raise QedRuntimeError(expr.name, "Only instances have fields.")
            value = self.evaluate(expr.value)
            obj.set(expr.name, value)
            return value

        if isinstance(expr, ArrayLiteral):
            return VArray([self.evaluate(e) for e in expr.elements])

        if isinstance(expr, ArrayGet):
            arr = self.evaluate(expr.array)
            idx = self.evaluate(expr.index)
            arr, i = self._check_index(expr.bracket, arr, idx)
            return arr.elements[i]

        if isinstance(expr, ArraySet):
            arr = self.evaluate(expr.array)
            idx = self.evaluate(expr.index)
            value = self.evaluate(expr.value)
            arr, i = self._check_index(expr.bracket, arr, idx)
            arr.elements[i] = value
            return value

        if isinstance(expr, This):
            return self._lookup(expr.keyword, expr)

        if isinstance(expr, Super):
            return self._eval_super(expr)

        raise TypeError("unsupported expression: " + type(expr).__name__)

    def _lookup(self, name: Token, expr: Expr) -> Value:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _eval_call(self, call: Call) -> Value:
        callee = self.evaluate(call.callee)
        args = [self.evaluate(a) for a in call.args]
        if not isinstance(callee, (VFunction, VNative, VClass)):
            raise QedRuntimeError(call.paren, "Can only call functions and classes.")
        if len(args) != callee.arity():
            raise QedRuntimeError(
                call.paren,
                "Expected "
                + str(callee.arity())
                + " arguments but got "
                + str(len(args))
                + ".",
            )
        try:
            return callee.call(self, args)
        except _NativeFault as e:
            raise QedRuntimeError(call.paren, str(e)) from None
        except RecursionError:
            raise QedRuntimeError(call.paren, "Stack overflow.") from None

    def _eval_super(self, expr: Super) -> Value:
        distance = self.locals[expr]
        superclass = self.environment.get_at(distance, "super")
        # `this` lives in the scope just inside the one binding `super`.
        instance = self.environment.get_at(distance - 1, "this")
        assert isinstance(superclass, VClass)
        assert isinstance(instance, VInstance)
        method = superclass.find_method(expr.method.lexeme)
        if method is None:
            raise QedRuntimeError(
                expr.method, "Undefined property '" + expr.method.lexeme + "'."
            )
        return method.bind(instance)

    def _check_index(self, bracket: Token, arr: Value, idx: Value) -> tuple[VArray, int]:
        if not isinstance(arr, VArray):
            raise QedRuntimeError(bracket, "Only arrays can be indexed.")
        if (
            not isinstance(idx, VNumber)
            or not math.isfinite(idx.value)
            or math.floor(idx.value) != idx.value
        ):
            raise QedRuntimeError(bracket, "Array index must be an integer.")
        i = int(idx.value)
        if i < 0 or i >= len(arr.elements):
            raise QedRuntimeError(bracket, "Array index out of range.")
        return arr, i

    def _eval_binary(self, op: Token, left: Value, right: Value) -> Value:
        kind = op.lexeme
        if kind == ",":
            return right
        if kind == "==":
            return VBool(values_equal(left, right))
        if kind == "!=":
            return VBool(not values_equal(left, right))

        if kind == "+":
            if isinstance(left, VNumber) and isinstance(right, VNumber):
                return VNumber(left.value + right.value)
            if isinstance(left, VString) and isinstance(right, VString):
                return VString(left.value + right.value)
            raise QedRuntimeError(op, "Operands must be two numbers or two strings.")

        if kind in ("<", "<=", ">", ">="):
            if isinstance(left, VNumber) and isinstance(right, VNumber):
                return VBool(_cmp(kind, left.value, right.value))
            if isinstance(left, VString) and isinstance(right, VString):
                return VBool(_cmp(kind, _code_units(left.value), _code_units(right.value)))
            raise QedRuntimeError(op, "Operands must be two numbers or two strings.")

        if kind in ("-", "*", "/"):
            if not isinstance(left, VNumber) or not isinstance(right, VNumber):
                raise QedRuntimeError(op, "Operands must be numbers.")
            if kind == "-":
                return VNumber(left.value - right.value)
            if kind == "*":
                return VNumber(left.value * right.value)
            if right.value == 0:
                raise QedRuntimeError(op, "Division by zero.")
            return VNumber(left.value / right.value)

        raise QedRuntimeError(op, f"Unknown operator '{kind}'.")


def _literal_value(value: float | str | bool | None) -> Value:
    if value is None:
        return NIL
    if isinstance(value, bool):
        return VBool(value)
    if isinstance(value, str):
        return VString(value)
    return VNumber(value)


def _code_units(s: str) -> bytes:
    """Big-endian UTF-16 bytes order the same as the string's 16-bit code units."""
    return s.encode("utf-16-be", "surrogatepass")


def _cmp(op: str, a: float | bytes, b: float | bytes) -> bool:
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    raise AssertionError(op)


# ============================================================
# One-shot runner
# ============================================================


EXIT_OK = 0
EXIT_STATIC_ERROR = 65
EXIT_RUNTIME_ERROR = 70


@dataclass
class RunResult:
    exit_code: int
    stdout: str
    stderr: str


def run(source: str) -> RunResult:
    """Lex, parse, resolve and evaluate a whole program, capturing its output.

    Nothing is evaluated when any static error was reported.
    """
    out = io.StringIO()
    err = io.StringIO()
    reporter = Reporter(on_error=lambda e: err.write(format_error(e) + "\n"))
    tokens = tokenize(source, reporter)
    stmts = Parser(tokens, reporter).parse_program()
    if reporter.had_error:
        return RunResult(EXIT_STATIC_ERROR, out.getvalue(), err.getvalue())
    distances = Resolver(reporter).resolve(stmts)
    if reporter.had_error:
        return RunResult(EXIT_STATIC_ERROR, out.getvalue(), err.getvalue())
    Interpreter(reporter, out).interpret(stmts, distances)
    if reporter.had_runtime_error:
        return RunResult(EXIT_RUNTIME_ERROR, out.getvalue(), err.getvalue())
    return RunResult(EXIT_OK, out.getvalue(), err.getvalue())
