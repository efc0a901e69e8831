"""
Built-in function registry for the scorch interpreter.

Each interpreter owns its own registry so output and input streams can be
redirected per run. Implementations receive the interpreter's Context, its
TypeRegistry and the already-evaluated argument list.
"""

import logging
import math
import sys
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO

from .context import Context
from .values import (
    Value, Instance, NONE, int_val, double_val, string_val,
    display, values_equal,
)
from ..types import TypeRegistry, ValueKind
from ..errors import (
    error_arity_mismatch,
    error_assertion_failed,
    error_immutable_mutation,
    error_pop_empty,
    error_type_mismatch,
)

logger = logging.getLogger(__name__)

BuiltinImpl = Callable[[Context, TypeRegistry, List[Value]], Value]


@dataclass
class BuiltinFunction:
    """
    A built-in function with its implementation and arity.

    ``arity`` None means variadic with at least ``min_args`` arguments.
    """
    name: str
    implementation: BuiltinImpl
    arity: Optional[int] = None
    min_args: int = 0
    doc: str = ""

    def check_arity(self, count: int) -> None:
        if self.arity is not None and count != self.arity:
            raise error_arity_mismatch(self.name, str(self.arity), count)
        if self.arity is None and count < self.min_args:
            raise error_arity_mismatch(self.name, f"at least {self.min_args}", count)

    def __call__(self, context: Context, registry: TypeRegistry, args: List[Value]) -> Value:
        self.check_arity(len(args))
        return self.implementation(context, registry, args)


def _expect(types: TypeRegistry, name: str, value: Value, position: int,
            *kinds: ValueKind) -> Value:
    """Reject an argument whose kind is not one of ``kinds``."""
    if value.kind not in kinds:
        expected = " or ".join(types.KIND_TYPES[k] for k in kinds)
        raise error_type_mismatch(
            expected, types.from_value(value).name, context=f"argument {position} of '{name}'"
        )
    return value


class BuiltinRegistry:
    """
    Registry of the built-in functions of one interpreter.

    Functions are registered by name and looked up when a call does not
    resolve to a user-defined function.
    """

    def __init__(self, stdout: Optional[TextIO] = None, stdin: Optional[TextIO] = None):
        self.stdout = stdout
        self.stdin = stdin
        self._functions: Dict[str, BuiltinFunction] = {}
        self._register_all()

    @property
    def output(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout

    @property
    def input(self) -> TextIO:
        return self.stdin if self.stdin is not None else sys.stdin

    def get_function(self, name: str) -> Optional[BuiltinFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)

    def register(self, func: BuiltinFunction) -> None:
        """Register a function."""
        if func.name in self._functions:
            logger.debug("overwriting builtin %s", func.name)
        self._functions[func.name] = func

    def _register_all(self) -> None:
        """Register all built-in functions."""
        self._register_io_functions()
        self._register_time_functions()
        self._register_conversion_functions()
        self._register_assertion_functions()
        self._register_array_functions()
        self._register_math_functions()

    # --- I/O Functions ---

    def _register_io_functions(self) -> None:
        """Register console input and output."""

        def _println(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            out = self.output
            if not args:
                out.write("\n")
            for arg in args:
                out.write(display(arg) + "\n")
            out.flush()
            return NONE

        def _readln(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            line = self.input.readline()
            return string_val(line.rstrip("\r\n"))

        self.register(BuiltinFunction(
            "println", _println, None, 0, "Print each argument on its own line"))
        self.register(BuiltinFunction(
            "readln", _readln, 0, doc="Read one line from standard input"))

    # --- Time Functions ---

    def _register_time_functions(self) -> None:
        """Register sleeping and the wall clock."""

        def _wait(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            ms = _expect(types, "wait", args[0], 1, ValueKind.INT, ValueKind.DOUBLE).data
            time.sleep(max(0.0, ms) / 1000.0)
            return NONE

        def _time(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            return int_val(time.time_ns() // 1_000_000)

        self.register(BuiltinFunction(
            "wait", _wait, 1, doc="Block for the given number of milliseconds"))
        self.register(BuiltinFunction(
            "time", _time, 0, doc="Milliseconds since the Unix epoch"))

    # --- Conversion Functions ---

    def _register_conversion_functions(self) -> None:
        """Register string conversion."""

        def _tostr(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            return string_val(display(args[0]))

        self.register(BuiltinFunction(
            "tostr", _tostr, 1, doc="Convert any value to its display string"))

    # --- Assertion Functions ---

    def _register_assertion_functions(self) -> None:
        """Register assert and assert_eq."""

        def _assert(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            cond = _expect(types, "assert", args[0], 1, ValueKind.BOOL)
            message = _expect(types, "assert", args[1], 2, ValueKind.STRING)
            if not cond.data:
                raise error_assertion_failed(message.data)
            return NONE

        def _assert_eq(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            left, right = args[0], args[1]
            message = _expect(types, "assert_eq", args[2], 3, ValueKind.STRING)
            if not values_equal(left, right):
                raise error_assertion_failed(
                    f"{message.data} (left: {display(left, True)}, right: {display(right, True)})"
                )
            return NONE

        self.register(BuiltinFunction(
            "assert", _assert, 2, doc="Fail with a message unless the condition holds"))
        self.register(BuiltinFunction(
            "assert_eq", _assert_eq, 3, doc="Fail with a message unless both values are equal"))

    # --- Array Functions ---

    def _register_array_functions(self) -> None:
        """Register len, push and pop."""

        def _len(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            array = _expect(types, "len", args[0], 1, ValueKind.ARRAY)
            return int_val(len(array.data))

        def _push(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            array = _expect(types, "push", args[0], 1, ValueKind.ARRAY)
            if not array.mutable:
                raise error_immutable_mutation("a const array")
            for value in args[1:]:
                array.data.append(Instance(False, value, types.from_value(value)))
            return array

        def _pop(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            array = _expect(types, "pop", args[0], 1, ValueKind.ARRAY)
            if not array.mutable:
                raise error_immutable_mutation("a const array")
            if not array.data:
                raise error_pop_empty()
            return array.data.pop().value

        self.register(BuiltinFunction(
            "len", _len, 1, doc="Number of elements in an array"))
        self.register(BuiltinFunction(
            "push", _push, None, 2, "Append values to a mutable array"))
        self.register(BuiltinFunction(
            "pop", _pop, 1, doc="Remove and return the last element of a mutable array"))

    # --- Math Functions ---

    def _register_math_functions(self) -> None:
        """Register abs and floor."""

        def _abs(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            x = _expect(types, "abs", args[0], 1, ValueKind.INT, ValueKind.DOUBLE)
            if x.kind is ValueKind.INT:
                return int_val(abs(x.data))
            return double_val(abs(x.data))

        def _floor(ctx: Context, types: TypeRegistry, args: List[Value]) -> Value:
            x = _expect(types, "floor", args[0], 1, ValueKind.INT, ValueKind.DOUBLE)
            if x.kind is ValueKind.INT:
                return x
            if math.isinf(x.data) or math.isnan(x.data):
                return x
            return double_val(math.floor(x.data))

        self.register(BuiltinFunction(
            "abs", _abs, 1, doc="Absolute value of an Int or Double"))
        self.register(BuiltinFunction(
            "floor", _floor, 1, doc="Round a Double down; Ints are returned unchanged"))
