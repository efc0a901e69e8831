"""
Tests for the built-in function library.
"""

import io

import pytest
from scorch import (
    Interpreter, InterpreterConfig, ValueKind, TypeRegistry, run,
    TypeMismatch, ImmutableMutation, ArityMismatch, AssertionFailed,
    ArrayIndexOutOfBounds,
)
from scorch.runtime import BuiltinFunction, BuiltinRegistry, Context, int_val, display


def run_with_output(source, stdin_text=""):
    out = io.StringIO()
    config = InterpreterConfig(stdout=out, stdin=io.StringIO(stdin_text))
    result = Interpreter(config).run(source)
    return result, out.getvalue()


class TestConsole:
    """Test println and readln."""

    def test_println_each_argument_on_own_line(self):
        """println writes every argument on its own line."""
        _, output = run_with_output('println("hi", 1, 2.5, true)')
        assert output == "hi\n1\n2.5\ntrue\n"

    def test_println_no_arguments(self):
        """println() writes a blank line."""
        _, output = run_with_output("println()")
        assert output == "\n"

    def test_println_composites(self):
        """Composite values use their display form."""
        _, output = run_with_output('println([1, "a"])')
        assert output == '[1, "a"]\n'

    def test_println_returns_none(self):
        """println has no result."""
        result, _ = run_with_output('println("x")')
        assert result.is_none

    def test_readln(self):
        """readln returns one line without its line ending."""
        result, _ = run_with_output('a := readln()\nb := readln()\na + "," + b',
                                    "first\r\nsecond\n")
        assert result.data == "first,second"

    def test_readln_at_eof(self):
        """readln at end of input returns an empty string."""
        result, _ = run_with_output("readln()")
        assert result.data == ""


class TestTime:
    """Test wait and time."""

    def test_time_is_int_millis(self):
        """time() returns epoch milliseconds as an Int."""
        result = run("time()")
        assert result.kind is ValueKind.INT
        assert result.data > 1_500_000_000_000

    def test_wait_zero(self):
        """wait(0) returns immediately with no result."""
        assert run("wait(0)").is_none

    def test_wait_type(self):
        """wait takes a number of milliseconds."""
        with pytest.raises(TypeMismatch) as exc_info:
            run('wait("soon")')
        assert "argument 1 of 'wait'" in str(exc_info.value)


class TestConversion:
    """Test tostr."""

    @pytest.mark.parametrize("expr,expected", [
        ("42", "42"),
        ("-7", "-7"),
        ("2.5", "2.5"),
        ("1.0", "1.0"),
        ("true", "true"),
        ('"text"', "text"),
        ("none", "None"),
        ("0.0 / 0.0", "NaN"),
        ("10000000000000000.0", "10000000000000000.0"),
        ("0.00001", "0.00001"),
        ("1.0 / 0.0", "inf"),
    ])
    def test_tostr(self, expr, expected):
        """tostr produces the display form."""
        assert run(f"tostr({expr})").data == expected

    @pytest.mark.parametrize("literal", [
        "42", "-7", "2.5", "0.125", "true", "false",
        "10000000000000000.0", "0.00001", "-123456789012345678.5",
    ])
    def test_round_trip(self, literal):
        """tostr output re-parses to a value with the same display form."""
        text = run(f"tostr({literal})").data
        assert display(run(text)) == text
        assert run(f'"{text}"').data == text

    def test_round_trip_string(self):
        """A string's tostr is itself."""
        text = run('tostr("hello")').data
        assert run(f'"{text}"').data == "hello"


class TestAssertions:
    """Test assert and assert_eq."""

    def test_assert_passes(self):
        """A true condition returns none."""
        assert run('assert(1 == 1, "ok")').is_none

    def test_assert_fails(self):
        """A false condition raises with the message."""
        with pytest.raises(AssertionFailed) as exc_info:
            run('assert(false, "boom")')
        assert exc_info.value.code == "E307"
        assert "boom" in str(exc_info.value)

    def test_assert_needs_bool(self):
        """The condition must be a Bool."""
        with pytest.raises(TypeMismatch):
            run('assert(1, "x")')

    def test_assert_eq_passes(self):
        """Equal values pass, including arrays compared element-wise."""
        assert run('assert_eq([1, 2], [1, 2], "same")').is_none

    def test_assert_eq_reports_both_sides(self):
        """Failures show both operands."""
        with pytest.raises(AssertionFailed) as exc_info:
            run('assert_eq(2, 3, "nums")')
        assert "nums (left: 2, right: 3)" in str(exc_info.value)

    def test_assert_eq_kinds_differ(self):
        """Values of different kinds are never equal."""
        with pytest.raises(AssertionFailed):
            run('assert_eq(1, 1.0, "kinds")')


class TestArrayBuiltins:
    """Test len, push and pop."""

    def test_len(self):
        """len counts elements."""
        assert run("len([1, 2, 3])").data == 3

    def test_len_needs_array(self):
        """len rejects non-arrays."""
        with pytest.raises(TypeMismatch):
            run('len("abc")')

    def test_mismatch_names_struct_type(self):
        """Argument errors name struct values by their struct type."""
        with pytest.raises(TypeMismatch) as exc_info:
            run("struct Point {\n    var x := 0\n}\nlen(Point())")
        assert "expected 'Array', found 'Point'" in str(exc_info.value)
        assert "argument 1 of 'len'" in str(exc_info.value)

    def test_push_returns_array(self):
        """push returns the array it appended to."""
        assert run("var a := [1]\nlen(push(a, 2))").data == 2

    def test_pop(self):
        """pop removes and returns the last element."""
        interp = Interpreter()
        assert interp.run("var a := [1, 2, 3]\npop(a)").data == 3
        assert interp.run("len(a)").data == 2

    def test_pop_empty(self):
        """pop on an empty array fails."""
        with pytest.raises(ArrayIndexOutOfBounds) as exc_info:
            run("var a := []\npop(a)")
        assert exc_info.value.code == "E405"

    @pytest.mark.parametrize("call", ["push(a, 3)", "pop(a)"])
    def test_const_array(self, call):
        """push and pop reject const arrays."""
        with pytest.raises(ImmutableMutation) as exc_info:
            run(f"const a := [1, 2]\n{call}")
        assert exc_info.value.code == "E304"

    def test_const_empty_pop_reports_mutation(self):
        """Mutability is checked before emptiness."""
        with pytest.raises(ImmutableMutation):
            run("const a := []\npop(a)")

    def test_arity(self):
        """Builtins check their argument counts."""
        with pytest.raises(ArityMismatch) as exc_info:
            run("len()")
        assert "expects 1 argument(s), got 0" in str(exc_info.value)
        with pytest.raises(ArityMismatch) as exc_info:
            run("var a := [1]\npush(a)")
        assert "at least 2" in str(exc_info.value)


class TestMath:
    """Test abs and floor."""

    def test_abs(self):
        """abs keeps the numeric kind."""
        assert run("abs(-3)").data == 3
        assert run("abs(-3)").kind is ValueKind.INT
        assert run("abs(-2.5)").data == 2.5

    def test_floor(self):
        """floor rounds Doubles down and leaves Ints alone."""
        assert run("floor(2.7)").data == 2.0
        assert run("floor(2.7)").kind is ValueKind.DOUBLE
        assert run("floor(-2.5)").data == -3.0
        assert run("floor(5)").kind is ValueKind.INT


class TestRegistry:
    """Test the builtin registry itself."""

    def test_names(self):
        """Every library function is registered."""
        names = BuiltinRegistry().names()
        for name in ("println", "readln", "wait", "time", "tostr", "assert",
                     "assert_eq", "len", "push", "pop", "abs", "floor"):
            assert name in names

    def test_custom_builtin(self):
        """Host code can register extra functions."""
        interp = Interpreter()
        interp.builtins.register(BuiltinFunction(
            "answer", lambda ctx, types, args: int_val(42), 0, doc="The answer"))
        assert interp.run("answer()").data == 42

    def test_direct_call(self):
        """Builtins can be invoked outside a program."""
        registry = BuiltinRegistry()
        result = registry.get_function("abs")(Context(), TypeRegistry(), [int_val(-4)])
        assert result.data == 4
        assert "abs" in registry
        assert registry.get_function("missing") is None
