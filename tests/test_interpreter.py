"""
Tests for the scorch interpreter: declarations, operators, control flow,
functions, arrays and structs.
"""

import math
import textwrap

import pytest
from scorch import (
    Interpreter, InterpreterConfig, ValueKind, run, run_with_modules,
    TypeMismatch, UnknownType, UnknownVariable, UnknownFunction,
    RedefinitionError, ImmutableMutation, FieldNotFound, ArityMismatch,
    DivideByZero, ArrayIndexOutOfBounds, RecursionLimitExceeded,
)
from scorch.runtime import display


def run_source(source, config=None):
    return run(textwrap.dedent(source), config)


POINT = """
struct Point {
    var x := 0
    var y := 0
}
"""


class TestDeclarations:
    """Test binding, reading and reassigning names."""

    def test_read_back(self):
        """A declared name reads back its value."""
        assert run_source("a := 5\na").data == 5

    def test_var_reassignment(self):
        """Mutable bindings can be reassigned."""
        assert run_source("var a := 5\na = 7\na").data == 7

    @pytest.mark.parametrize("source", [
        "const a := 5\na = 7",
        "a := 5\na = 7",
        "const a : Int = 5\na = 7",
    ])
    def test_immutable_reassignment(self, source):
        """const and implicit bindings reject reassignment."""
        with pytest.raises(ImmutableMutation) as exc_info:
            run_source(source)
        assert exc_info.value.code == "E304"

    def test_typed_declaration_mismatch(self):
        """A declared type must accept the initial value."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source("x : Int = 2.5")
        assert "expected 'Int', found 'Double'" in str(exc_info.value)

    @pytest.mark.parametrize("type_name,expected", [
        ("Int", 0),
        ("Double", 0.0),
        ("String", ""),
        ("Bool", False),
    ])
    def test_default_values(self, type_name, expected):
        """Typed declarations without a value get the type's default."""
        result = run_source(f"var x : {type_name}\nx")
        assert result.data == expected

    def test_default_array(self):
        """An Array declaration without value starts empty."""
        assert run_source("var a : Array\nlen(a)").data == 0

    def test_unknown_type(self):
        """Declaring with an unknown type fails."""
        with pytest.raises(UnknownType):
            run_source("x : Widget = 1")

    def test_assignment_keeps_type(self):
        """Reassignment must match the binding's type."""
        with pytest.raises(TypeMismatch):
            run_source('var x := 1\nx = "one"')

    def test_dynamic_accepts_anything(self):
        """Dynamic bindings change kind freely."""
        assert run_source('var d : Dynamic = 1\nd = "s"\nd').data == "s"

    def test_none_start(self):
        """A typed binding may start as none and be filled in later."""
        assert run_source("var n : Int = none\nn = 3\nn").data == 3

    def test_implicit_none_is_dynamic(self):
        """An untyped binding initialized to none is Dynamic."""
        assert run_source("var v := none\nv = 5\nv").data == 5

    def test_assign_unknown(self):
        """Assigning an undeclared name fails."""
        with pytest.raises(UnknownVariable) as exc_info:
            run_source("y = 1")
        assert exc_info.value.code == "E301"

    def test_read_unknown(self):
        """Reading an undeclared name fails."""
        with pytest.raises(UnknownVariable):
            run_source("y + 1")

    def test_redefinition_in_same_scope(self):
        """A name can be declared once per frame."""
        with pytest.raises(RedefinitionError) as exc_info:
            run_source("x := 1\nx := 2")
        assert exc_info.value.code == "E303"

    def test_shadowing_in_block(self):
        """Inner blocks may shadow without touching the outer binding."""
        assert run_source("x := 1\n{ x := 2 }\nx").data == 1

    def test_block_writes_outer_binding(self):
        """Assignment inside a block updates the enclosing binding."""
        assert run_source("var x := 1\n{ x = 2 }\nx").data == 2


class TestArithmetic:
    """Test arithmetic and comparison operators."""

    def test_mixed_arithmetic(self):
        """Int and Double mix with host float semantics."""
        result = run_source("(5.3 + 6.2) * 2.5")
        assert result.kind is ValueKind.DOUBLE
        assert result.data == (5.3 + 6.2) * 2.5 == 28.75

    @pytest.mark.parametrize("expr,expected", [
        ("2 + 3 * 4", 14),
        ("(2 + 3) * 4", 20),
        ("10 - 4 - 3", 3),
        ("7 / 2", 3),
        ("-7 / 2", -3),
        ("-7 % 2", -1),
        ("7 % -2", 1),
        ("-(3)", -3),
    ])
    def test_int_arithmetic(self, expr, expected):
        """Int operations stay Int; division truncates toward zero."""
        result = run_source(expr)
        assert result.kind is ValueKind.INT
        assert result.data == expected

    @pytest.mark.parametrize("expr,expected", [
        ("1 + 2.5", 3.5),
        ("10 / 4.0", 2.5),
        ("7.5 % 2", 1.5),
        ("0.1 + 0.2", 0.1 + 0.2),
        ("-2.5 * 2", -5.0),
    ])
    def test_double_arithmetic(self, expr, expected):
        """Any Double operand promotes the operation to Double."""
        result = run_source(expr)
        assert result.kind is ValueKind.DOUBLE
        assert result.data == expected

    @pytest.mark.parametrize("expr,expected", [
        ("5 < 10", True),
        ("5 > 10", False),
        ("5 <= 10", True),
        ("5 >= 10", False),
        ("5 == 10", False),
        ("5 != 10", True),
        ("5 == 5", True),
        ("5 != 5", False),
        ("5 <= 5", True),
        ("5 >= 5", True),
        ("5 < 5", False),
        ("5 > 5", False),
    ])
    def test_relational_chain(self, expr, expected):
        """Relational operators on Ints."""
        result = run_source(expr)
        assert result.kind is ValueKind.BOOL
        assert result.data is expected

    def test_mixed_comparison(self):
        """Int and Double compare numerically."""
        assert run_source("1 == 1.0").data is True
        assert run_source("2 > 1.5").data is True

    @pytest.mark.parametrize("expr", ["1 / 0", "1 % 0"])
    def test_int_divide_by_zero(self, expr):
        """Int division by zero fails."""
        with pytest.raises(DivideByZero) as exc_info:
            run_source(expr)
        assert exc_info.value.code == "E403"

    def test_double_divide_by_zero(self):
        """Double division by zero follows IEEE rules."""
        assert run_source("1.0 / 0").data == math.inf
        assert run_source("-1 / 0.0").data == -math.inf
        assert math.isnan(run_source("0.0 / 0.0").data)
        assert math.isnan(run_source("1.5 % 0.0").data)

    def test_strings(self):
        """Strings support + and equality."""
        assert run_source('"ab" + "cd"').data == "abcd"
        assert run_source('"a" == "a"').data is True
        assert run_source('"a" != "b"').data is True

    def test_logic(self):
        """Boolean operators."""
        assert run_source("true && false").data is False
        assert run_source("true || false").data is True
        assert run_source("!true").data is False
        assert run_source("1 < 2 && 2 < 3").data is True

    @pytest.mark.parametrize("expr", ["!1", '-"a"', "-true"])
    def test_unary_type_errors(self, expr):
        """Unary operators check their operand kind."""
        with pytest.raises(TypeMismatch):
            run_source(expr)


class TestControlFlow:
    """Test if, repeat, break and return."""

    def test_if_else_chain(self):
        """The first true branch runs."""
        source = """
            classify := (n: Int) -> String {
                if n < 0 {
                    return "neg"
                } else if n == 0 {
                    return "zero"
                } else {
                    return "pos"
                }
            }
            classify(-3) + classify(0) + classify(8)
        """
        assert run_source(source).data == "negzeropos"

    def test_condition_must_be_bool(self):
        """if conditions are not truthy-coerced."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source("if 1 { }")
        assert "if condition" in str(exc_info.value)

    def test_bound_repeat_counts(self):
        """repeat i < 3 runs three times and leaves i at 3."""
        interp = Interpreter()
        interp.run("var count := 0\nrepeat i < 3 { count = count + 1 }")
        assert interp.run("count").data == 3
        assert interp.run("i").data == 3

    def test_bound_repeat_existing_counter(self):
        """An existing var counter continues from its value."""
        assert run_source("var i := 10\nrepeat i < 12 { }\ni").data == 12

    def test_bound_repeat_sees_counter(self):
        """The body reads the counter's current value."""
        source = """
            var total := 0
            repeat k < 5 { total = total + k }
            total
        """
        assert run_source(source).data == 0 + 1 + 2 + 3 + 4

    def test_bound_repeat_const_counter(self):
        """A const counter cannot be incremented."""
        with pytest.raises(ImmutableMutation):
            run_source("const i := 0\nrepeat i < 3 { }")

    def test_bound_repeat_false_at_start(self):
        """The condition is checked before the first pass."""
        source = """
            var ran := false
            var i := 5
            repeat i < 3 { ran = true }
            ran
        """
        assert run_source(source).data is False

    def test_repeat_condition_must_be_bool(self):
        """Loop conditions must be Bool."""
        with pytest.raises(TypeMismatch):
            run_source("repeat i + 1 { }")

    def test_break_from_unconditional_repeat(self):
        """break leaves the loop."""
        source = """
            var n := 0
            repeat {
                n = n + 1
                if n == 5 {
                    break
                }
            }
            n
        """
        assert run_source(source).data == 5

    def test_loop_yields_break_value(self):
        """A loop evaluates to the value its break carries."""
        assert run_source("repeat { break 5 }").data == 5
        assert run_source("repeat k < 10 { if k == 4 { break k * 2 } }").data == 8

    def test_top_level_return(self):
        """A top-level return ends the unit with its value."""
        assert run_source("return 3\n4").data == 3

    def test_program_value_is_last_expression(self):
        """Without a return, the last statement's value is the result."""
        assert run_source("x := 2\nx * 21").data == 42
        assert run_source("x := 2").is_none


class TestFunctions:
    """Test function declaration and calls."""

    def test_call(self):
        """Parameters bind positionally."""
        assert run_source("add := (a: Int, b: Int) -> Int { return a + b }\nadd(2, 3)").data == 5

    def test_no_return_is_none(self):
        """Falling off the end of a body yields none."""
        assert run_source("f := { 1 }\nf()").is_none

    def test_recursion(self):
        """Functions can call themselves."""
        source = """
            fact := (n: Int) -> Int {
                if n <= 1 {
                    return 1
                }
                return n * fact(n - 1)
            }
            fact(10)
        """
        assert run_source(source).data == 3628800

    def test_arity_mismatch(self):
        """Argument count must match."""
        with pytest.raises(ArityMismatch) as exc_info:
            run_source("f := (a: Int) -> Int { return a }\nf(1, 2)")
        assert exc_info.value.code == "E306"

    def test_argument_type_mismatch(self):
        """Argument kinds must match the declared parameter types."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source('f := (a: Int) -> Int { return a }\nf("x")')
        message = str(exc_info.value)
        assert exc_info.value.code == "E201"
        assert "argument 'a' of 'f'" in message
        assert "(String)" in message

    def test_return_type_checked(self):
        """A typed function must return its declared type."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source('f := () -> Int { return "s" }\nf()')
        assert "return value of 'f'" in str(exc_info.value)

    def test_parameters_are_immutable(self):
        """Parameters cannot be reassigned."""
        with pytest.raises(ImmutableMutation):
            run_source("f := (a: Int) { a = 2 }\nf(1)")

    def test_closure_writes_captured_var(self):
        """A function body can update bindings of its defining scope."""
        source = """
            var counter := 0
            bump := { counter = counter + 1 }
            bump()
            bump()
            counter
        """
        assert run_source(source).data == 2

    def test_lexical_scoping(self):
        """Free names resolve where the function was defined, not where it is called."""
        source = """
            x := 1
            get := { return x }
            f := {
                x := 2
                return get()
            }
            f()
        """
        assert run_source(source).data == 1

    def test_unknown_function(self):
        """Calling an unbound name fails."""
        with pytest.raises(UnknownFunction) as exc_info:
            run_source("nope()")
        assert exc_info.value.code == "E302"

    def test_call_non_function(self):
        """Calling a value that is not a function, with no builtin of that name, fails."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source("x := 1\nx()")
        assert "expected 'Fn', found 'Int' (call of 'x')" in str(exc_info.value)

    def test_non_function_binding_falls_back_to_builtin(self):
        """A bound non-function does not hide the builtin of the same name."""
        assert run_source("len := 3\nlen([1, 2])").data == 2

    def test_user_function_shadows_builtin(self):
        """Names bound in scope take precedence over builtins."""
        assert run_source("len := (x: Int) -> Int { return 99 }\nlen(1)").data == 99

    def test_method_call_syntax(self):
        """a.f(b) calls f(a, b)."""
        source = """
            twice := (n: Int) -> Int { return n * 2 }
            x := 21
            x.twice()
        """
        assert run_source(source).data == 42

    def test_call_depth_limit(self):
        """Unbounded recursion fails cleanly."""
        with pytest.raises(RecursionLimitExceeded) as exc_info:
            run_source("f := (n: Int) -> Int { return f(n + 1) }\nf(0)")
        assert exc_info.value.code == "E402"

    def test_call_depth_is_configurable(self):
        """The call bound comes from the configuration."""
        source = """
            down := (n: Int) -> Int {
                if n == 0 { return 0 }
                return down(n - 1)
            }
            down(%d)
        """
        config = InterpreterConfig(max_call_depth=5)
        assert run_source(source % 3, config).data == 0
        with pytest.raises(RecursionLimitExceeded):
            run_source(source % 10, config)

    def test_deepest_call_limit_fits_the_stack(self):
        """Recursion up to the largest accepted call depth runs to completion."""
        source = """
            down := (n: Int) -> Int {
                if n == 0 { return 0 }
                return down(n - 1) + 1
            }
            down(%d)
        """
        config = InterpreterConfig(max_call_depth=64)
        assert run_source(source % 63, config).data == 63
        with pytest.raises(RecursionLimitExceeded) as exc_info:
            run_source(source % 300, config)
        assert exc_info.value.code == "E402"

    def test_host_stack_exhaustion_is_reported(self, monkeypatch):
        """A RecursionError inside a call surfaces as a call depth error."""
        interp = Interpreter()
        interp.run("f := { return 1 }")

        def exhausted(*args):
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr(interp, "_execute_block", exhausted)
        with pytest.raises(RecursionLimitExceeded) as exc_info:
            interp.run("f()")
        assert exc_info.value.code == "E402"
        assert interp.call_depth == 0

    def test_function_display(self):
        """Functions display as their signature."""
        assert run_source("f := (a: Int) -> Int { return a }\ntostr(f)").data == "f(a: Int) -> Int"


class TestArrays:
    """Test array literals, indexing and aliasing."""

    def test_index(self):
        """Elements are read by Int index."""
        assert run_source("a := [10, 20, 30]\na[1]").data == 20

    def test_double_index_truncates(self):
        """A Double index is truncated."""
        assert run_source("a := [10, 20, 30]\na[1.9]").data == 20

    @pytest.mark.parametrize("index", ["3", "-1"])
    def test_out_of_bounds(self, index):
        """Indices outside the array fail."""
        with pytest.raises(ArrayIndexOutOfBounds) as exc_info:
            run_source(f"a := [1, 2, 3]\na[{index}]")
        assert exc_info.value.code == "E404"

    def test_index_non_array(self):
        """Only arrays can be indexed."""
        with pytest.raises(TypeMismatch):
            run_source("x := 1\nx[0]")

    def test_aliasing(self):
        """Bindings of one array share its storage."""
        source = """
            var arr := [1, 2, 3]
            b := arr
            push(b, 4)
            len(arr)
        """
        assert run_source(source).data == 4

    def test_index_assignment(self):
        """Mutable arrays accept element writes."""
        assert run_source("var a := [1, 2]\na[0] = 5\na[0]").data == 5

    def test_index_assignment_type(self):
        """Element writes keep the element type."""
        with pytest.raises(TypeMismatch):
            run_source('var a := [1, 2]\na[0] = "s"')

    def test_const_index_assignment(self):
        """Const arrays reject element writes."""
        with pytest.raises(ImmutableMutation) as exc_info:
            run_source("const a := [1, 2]\na[0] = 5")
        assert "const array" in str(exc_info.value)

    def test_nested_display(self):
        """Arrays display with nested strings quoted."""
        assert run_source('tostr([1, "a", [true]])').data == '[1, "a", [true]]'

    def test_push_then_read(self):
        """push appends every extra argument."""
        assert run_source("var a := [1]\npush(a, 2, 3)\na[2]").data == 3

    def test_method_style_array_calls(self):
        """Array builtins work with method syntax."""
        assert run_source("var a := [1]\na.push(2)\na.len()").data == 2


class TestStructs:
    """Test struct declaration, construction and field access."""

    def test_positional_init(self):
        """Arguments fill fields in declaration order."""
        assert run_source(POINT + "p := Point(3, 4)\np.x * 10 + p.y").data == 34

    def test_default_init(self):
        """A zero-argument init copies the template defaults."""
        assert run_source(POINT + "p := Point()\np.y").data == 0

    def test_field_assignment(self):
        """var fields can be written through any binding."""
        assert run_source(POINT + "p := Point()\np.x = 5\np.x").data == 5

    def test_const_field(self):
        """Fields declared without var are read-only."""
        with pytest.raises(ImmutableMutation) as exc_info:
            run_source("struct C { id := 1 }\nc := C()\nc.id = 2")
        assert "const field 'id'" in str(exc_info.value)

    def test_field_type(self):
        """Field writes keep the field type."""
        with pytest.raises(TypeMismatch):
            run_source(POINT + 'p := Point()\np.x = "a"')

    @pytest.mark.parametrize("tail", ["p.z", "p.z = 1"])
    def test_unknown_field(self, tail):
        """Unknown fields fail on read and write."""
        with pytest.raises(FieldNotFound) as exc_info:
            run_source(POINT + "p := Point()\n" + tail)
        assert exc_info.value.code == "E305"

    def test_wrong_field_count(self):
        """Init takes zero arguments or one per field."""
        with pytest.raises(ArityMismatch):
            run_source(POINT + "Point(1)")

    def test_wrong_field_type(self):
        """Init arguments are checked against field types."""
        with pytest.raises(TypeMismatch) as exc_info:
            run_source(POINT + 'Point("a", 2)')
        assert "argument 'x' of 'Point'" in str(exc_info.value)

    def test_instances_are_independent(self):
        """Each init clones the template."""
        assert run_source(POINT + "a := Point()\nb := Point()\na.x = 1\nb.x").data == 0

    def test_array_defaults_are_not_shared(self):
        """Each instance owns its own copy of an array field default."""
        source = """
            struct Bag {
                var items := []
            }
            a := Bag()
            b := Bag()
            push(a.items, 1)
            push(a.items, 2)
            len(b.items) * 10 + len(Bag().items) + len(a.items) * 100
        """
        assert run_source(source).data == 200

    def test_nested_struct_defaults_are_not_shared(self):
        """Struct-valued field defaults are copied per instance."""
        source = POINT + """
            struct Segment {
                var start := Point()
            }
            a := Segment()
            b := Segment()
            a.start.x = 5
            b.start.x
        """
        assert run_source(source).data == 0

    def test_init_arguments_alias(self):
        """Arrays passed to an init are stored as given, not copied."""
        source = """
            struct Bag {
                var items := []
            }
            var shared := [1]
            bag := Bag(shared)
            push(shared, 2)
            len(bag.items)
        """
        assert run_source(source).data == 2

    def test_instances_alias(self):
        """Bindings of one instance share its fields."""
        assert run_source(POINT + "a := Point()\nb := a\nb.x = 9\na.x").data == 9

    def test_struct_parameter(self):
        """Struct types can be used as parameter types."""
        source = POINT + """
            norm2 := (p: Point) -> Int { return p.x * p.x + p.y * p.y }
            norm2(Point(3, 4))
        """
        assert run_source(source).data == 25

    def test_struct_parameter_mismatch(self):
        """Passing a non-struct to a struct parameter fails."""
        with pytest.raises(TypeMismatch):
            run_source(POINT + "f := (p: Point) { p }\nf(1)")

    def test_dot_on_non_struct(self):
        """Only struct instances have fields."""
        with pytest.raises(TypeMismatch):
            run_source("x := 1\nx.y")

    def test_duplicate_struct(self):
        """Struct names are unique."""
        with pytest.raises(RedefinitionError):
            run_source(POINT + POINT)

    def test_struct_display(self):
        """Structs display their fields in order."""
        assert run_source(POINT + "tostr(Point(1, 2))").data == "Point { x: 1, y: 2 }"

    def test_capitalized_function(self):
        """Capitalized names that are not struct types are called."""
        assert run_source("Make := { return 1 }\nMake()").data == 1


class TestModulesAndErrors:
    """Test multi-unit runs and diagnostics."""

    def test_run_with_modules_shares_state(self):
        """Later units see earlier declarations."""
        result = run_with_modules(["struct P { var v := 1 }", "p := P()\np.v"])
        assert result.data == 1

    def test_empty_module_list(self):
        """No units means a none result."""
        assert run_with_modules([]).is_none

    def test_separate_runs_are_isolated(self):
        """Each run() call gets a fresh interpreter."""
        run("x := 1")
        with pytest.raises(UnknownVariable):
            run("x")

    def test_interpreter_keeps_state(self):
        """One interpreter keeps its bindings across runs."""
        interp = Interpreter()
        interp.run("var total := 1")
        interp.run("total = total + 1")
        assert interp.run("total").data == 2

    def test_error_carries_source_line(self):
        """Runtime diagnostics show the offending line."""
        with pytest.raises(UnknownVariable) as exc_info:
            run("a := 1\nb := a + missing", filename="calc.scorch")
        diag = exc_info.value.diagnostic
        assert diag.source_line == "b := a + missing"
        assert "calc.scorch:2" in str(exc_info.value)
        data = diag.to_json()
        assert data["code"] == "E301"
        assert data["severity"] == "error"
        assert data["range"]["start"]["line"] == 2

    def test_builtin_error_gets_call_span(self):
        """Errors raised inside builtins point at the call."""
        with pytest.raises(ArrayIndexOutOfBounds) as exc_info:
            run("x := 1\npop([])")
        assert exc_info.value.code == "E405"
        assert exc_info.value.diagnostic.span.start.line == 2

    def test_parse_depth_from_config(self):
        """The parser bound comes from the configuration."""
        with pytest.raises(RecursionLimitExceeded) as exc_info:
            run("((((((1))))))", InterpreterConfig(max_parse_depth=4))
        assert exc_info.value.code == "E401"

    def test_deepest_parse_limit_fits_the_stack(self):
        """Nesting up to the largest accepted parse depth parses normally."""
        config = InterpreterConfig(max_parse_depth=128)
        assert run("(" * 127 + "1" + ")" * 127, config).data == 1
        with pytest.raises(RecursionLimitExceeded):
            run("(" * 128 + "1" + ")" * 128, config)

    def test_interpreter_state_restored_after_error(self):
        """A failing run leaves the interpreter at its global scope."""
        interp = Interpreter()
        with pytest.raises(UnknownVariable):
            interp.run("{ { missing } }")
        assert interp.context.current is interp.context.root
        assert display(interp.run("1 + 1")) == "2"
