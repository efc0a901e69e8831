"""
Tree-walking interpreter for scorch.

Statements and expressions are evaluated by dispatching on the AST node
class. Every statement yields a Value; ``break`` and ``return`` yield the
RETURN sentinel, which blocks and if-chains hand straight back to their
caller. Loops consume the sentinel and function calls unwrap it.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from .values import (
    Value, Instance, Function, NONE,
    int_val, double_val, bool_val, string_val, function_val, array_val,
    struct_val, return_val, unwrap_return,
)
from .context import Context
from .builtins import BuiltinRegistry
from ..ast import (
    Program, Statement, Block, ExpressionStatement, Declaration, FunctionDecl,
    Assignment, IfStatement, RepeatStatement, BreakStatement, ReturnStatement,
    StructDecl,
    Expression, Literal, Identifier, BinaryOp, RelationalOp, LogicalOp,
    UnaryOp, FunctionCall, ArrayLiteral, IndexAccess, StructInit, DotAccess,
    FunctionLiteral,
)
from ..config import InterpreterConfig
from ..errors import (
    ScorchError,
    error_arity_mismatch,
    error_call_depth_exceeded,
    error_divide_by_zero,
    error_field_not_found,
    error_immutable_mutation,
    error_index_out_of_bounds,
    error_redefinition,
    error_type_mismatch,
    error_unknown_function,
    error_unknown_variable,
)
from ..parser import parse_source
from ..tokens import SourceSpan, TokenType
from ..types import Type, TypeRegistry, ValueKind

logger = logging.getLogger(__name__)

ARITHMETIC_OPERATORS = {
    TokenType.PLUS, TokenType.MINUS, TokenType.STAR, TokenType.SLASH, TokenType.PERCENT,
}
ORDERING_OPERATORS = {TokenType.LT, TokenType.LE, TokenType.GT, TokenType.GE}
EQUALITY_OPERATORS = {TokenType.EQ, TokenType.NE}
LOGICAL_OPERATORS = {TokenType.AND, TokenType.OR}
NUMERIC_OPERATORS = ARITHMETIC_OPERATORS | ORDERING_OPERATORS | EQUALITY_OPERATORS
NUMERIC_KINDS = (ValueKind.INT, ValueKind.DOUBLE)


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _double_div(a: float, b: float) -> float:
    """IEEE division, including the zero-divisor cases Python raises on."""
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _compare(op: TokenType, a, b) -> bool:
    if op == TokenType.LT:
        return a < b
    if op == TokenType.LE:
        return a <= b
    if op == TokenType.GT:
        return a > b
    if op == TokenType.GE:
        return a >= b
    if op == TokenType.EQ:
        return a == b
    return a != b


class Interpreter:
    """
    Evaluates scorch programs against one persistent root scope.

    Each interpreter owns its type registry, builtins and scope chain, so
    separate interpreters never observe each other's declarations.

    Usage:
        interp = Interpreter()
        interp.run("x := 2")
        result = interp.run("x * 21")   # Value(INT, 42)
    """

    def __init__(self, config: Optional[InterpreterConfig] = None):
        self.config = config or InterpreterConfig()
        self.types = TypeRegistry()
        self.context = Context()
        self.builtins = BuiltinRegistry(self.config.stdout, self.config.stdin)
        self.call_depth = 0
        self.context.insert_variable("none", Instance(False, NONE, self.types.require("None")))

    # =========================================================================
    # Entry Points
    # =========================================================================

    def run(self, source: str, filename: Optional[str] = None) -> Value:
        """
        Tokenize, parse and evaluate one source unit.

        Returns:
            The program's value: a top-level break/return value if one ran,
            otherwise the value of the last statement.

        Raises:
            ScorchError: Any lexing, parsing or evaluation failure. The
                diagnostic carries the offending source line.
        """
        try:
            program = parse_source(source, filename, self.config.max_parse_depth)
            return self.execute(program)
        except ScorchError as exc:
            exc.attach_source(source.splitlines())
            raise

    def run_with_modules(self, sources: Sequence[str],
                         filenames: Optional[Sequence[str]] = None) -> Value:
        """Run several units in order on this interpreter; return the last result."""
        result = NONE
        for index, source in enumerate(sources):
            filename = filenames[index] if filenames else None
            logger.debug("running module %s", filename or index)
            result = self.run(source, filename)
        return result

    def execute(self, program: Program) -> Value:
        """Evaluate a parsed program in the current scope."""
        result = NONE
        for stmt in program.statements:
            value = self._execute_statement(stmt)
            if value.is_return:
                return unwrap_return(value)
            result = value
        return result

    # =========================================================================
    # Statements
    # =========================================================================

    def _execute_statement(self, stmt: Statement) -> Value:
        """Execute a statement."""
        if isinstance(stmt, ExpressionStatement):
            return self._evaluate(stmt.expression)
        elif isinstance(stmt, Declaration):
            self._execute_declaration(stmt)
        elif isinstance(stmt, FunctionDecl):
            self._execute_function_decl(stmt)
        elif isinstance(stmt, Assignment):
            self._execute_assignment(stmt)
        elif isinstance(stmt, IfStatement):
            return self._execute_if(stmt)
        elif isinstance(stmt, RepeatStatement):
            return self._execute_repeat(stmt)
        elif isinstance(stmt, (BreakStatement, ReturnStatement)):
            value = self._evaluate(stmt.value) if stmt.value is not None else None
            return return_val(value)
        elif isinstance(stmt, Block):
            return self._execute_block(stmt)
        elif isinstance(stmt, StructDecl):
            self._execute_struct_decl(stmt)
        else:
            raise RuntimeError(f"Unknown statement type: {type(stmt).__name__}")
        return NONE

    def _execute_block(self, block: Block, name: str = "block") -> Value:
        """Run statements in a fresh scope; stop at the first sentinel."""
        with self.context.new_scope(name):
            for stmt in block.statements:
                value = self._execute_statement(stmt)
                if value.is_return:
                    return value
        return NONE

    def _declare(self, name: str, instance: Instance, span: SourceSpan) -> None:
        if self.context.find_local(name) is not None:
            raise error_redefinition("variable", name, span)
        self.context.insert_variable(name, instance)

    def _execute_declaration(self, stmt: Declaration) -> None:
        """Bind a new name in the current scope."""
        if stmt.type_name is None:
            value = self._evaluate(stmt.value)
            if value.is_none:
                type_ = self.types.require("Dynamic")
            else:
                type_ = self.types.from_value(value)
        else:
            type_ = self.types.require(stmt.type_name, stmt.span)
            if stmt.value is None:
                value = self._default_value(type_, stmt.mutable)
            else:
                value = self._evaluate(stmt.value)
            # A declared binding may start out as None
            if not value.is_none:
                self._check_type(type_, value, stmt.value.span, f"declaration of '{stmt.name}'")
        self._declare(stmt.name, Instance(stmt.mutable, value, type_), stmt.span)

    def _default_value(self, type_: Type, mutable: bool) -> Value:
        if type_.name == "Int":
            return int_val(0)
        if type_.name == "Double":
            return double_val(0.0)
        if type_.name == "String":
            return string_val("")
        if type_.name == "Bool":
            return bool_val(False)
        if type_.name == "Array":
            return array_val([], mutable)
        return NONE

    def _execute_function_decl(self, stmt: FunctionDecl) -> None:
        function = self._make_function(stmt.name, stmt.function, stmt.mutable)
        instance = Instance(stmt.mutable, function_val(function), self.types.require("Fn"))
        self._declare(stmt.name, instance, stmt.span)

    def _make_function(self, name: str, literal: FunctionLiteral, mutable: bool = False) -> Function:
        params = [(p.name, self.types.require(p.type_name, p.span)) for p in literal.parameters]
        return Function(
            name=name,
            params=params,
            body=literal.body,
            return_type=self.types.require(literal.return_type, literal.span),
            mutable=mutable,
            closure=self.context.current,
        )

    def _execute_assignment(self, stmt: Assignment) -> None:
        """Reassign a variable, array element or struct field."""
        target = stmt.target
        if isinstance(target, Identifier):
            value = self._evaluate(stmt.value)
            instance = self.context.find_variable(target.name)
            if instance is None:
                raise error_unknown_variable(target.name, target.span)
            if not instance.mutable:
                raise error_immutable_mutation(f"const binding '{target.name}'", stmt.span)
            self._check_type(instance.type, value, stmt.value.span, f"assignment to '{target.name}'")
            self.context.seek_overwrite_in_parents(target.name, value)

        elif isinstance(target, IndexAccess):
            array = self._evaluate_array(target.target)
            index = self._evaluate(target.index)
            value = self._evaluate(stmt.value)
            if not array.mutable:
                raise error_immutable_mutation("a const array", stmt.span)
            element = array.data[self._index_of(index, len(array.data), target.index.span)]
            self._check_type(element.type, value, stmt.value.span, "array element assignment")
            element.set_value(value)

        elif isinstance(target, DotAccess):
            obj = self._evaluate_struct(target.object)
            instance = self._field_of(obj, target.member, target.span)
            value = self._evaluate(stmt.value)
            if not instance.mutable:
                raise error_immutable_mutation(f"const field '{target.member}'", stmt.span)
            self._check_type(instance.type, value, stmt.value.span, f"assignment to field '{target.member}'")
            instance.set_value(value)

        else:
            raise RuntimeError(f"Unknown assignment target: {type(target).__name__}")

    def _execute_if(self, stmt: IfStatement) -> Value:
        """Run the first branch whose condition holds."""
        if self._evaluate_condition(stmt.condition, "if"):
            return self._execute_block(stmt.body, "if-then")
        clause = stmt.else_branch
        while clause is not None:
            if clause.condition is None or self._evaluate_condition(clause.condition, "else"):
                return self._execute_block(clause.body, "else")
            clause = clause.else_branch
        return NONE

    def _execute_repeat(self, stmt: RepeatStatement) -> Value:
        """
        Run a loop.

        The bound form checks its condition before each pass and increments
        the counter after it. A counter that does not exist yet is declared
        as a mutable Int 0 in the enclosing scope, so its final value stays
        visible after the loop. Both forms end on break/return and yield the
        value it carried.
        """
        if not stmt.is_bound:
            while True:
                result = self._execute_block(stmt.body, "repeat-body")
                if result.is_return:
                    return unwrap_return(result)

        name = stmt.iterator
        counter = self.context.find_variable(name)
        if counter is None:
            counter = Instance(True, int_val(0), self.types.require("Int"))
            self.context.insert_variable(name, counter)
        elif not counter.mutable:
            raise error_immutable_mutation(f"loop counter '{name}' (declared const)", stmt.span)

        with self.context.new_scope("repeat"):
            while self._evaluate_condition(stmt.condition, "repeat"):
                result = self._execute_block(stmt.body, "repeat-body")
                if result.is_return:
                    return unwrap_return(result)
                current = counter.value
                if current.kind is not ValueKind.INT:
                    raise error_type_mismatch("Int", self._type_name(current), stmt.span,
                                              context=f"loop counter '{name}'")
                self.context.seek_overwrite_in_parents(name, int_val(current.data + 1))
        return NONE

    def _execute_struct_decl(self, stmt: StructDecl) -> None:
        """Evaluate field declarations into a template scope and register the type."""
        if stmt.name in self.types:
            raise error_redefinition("type", stmt.name, stmt.span)
        fields: List[Tuple[str, Type]] = []
        with self.context.new_scope(f"struct {stmt.name}") as template:
            for decl in stmt.fields:
                self._execute_declaration(decl)
                fields.append((decl.name, template.find_local(decl.name).type))
        self.types.define_struct(stmt.name, fields, template, stmt.span)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression."""
        if isinstance(expr, Literal):
            return self._eval_literal(expr)
        elif isinstance(expr, Identifier):
            instance = self.context.find_variable(expr.name)
            if instance is None:
                raise error_unknown_variable(expr.name, expr.span)
            return instance.value
        elif isinstance(expr, (BinaryOp, RelationalOp, LogicalOp)):
            left = self._evaluate(expr.left)
            right = self._evaluate(expr.right)
            return self._apply_operator(expr.operator, left, right, expr.span)
        elif isinstance(expr, UnaryOp):
            return self._eval_unary(expr)
        elif isinstance(expr, FunctionCall):
            args = [self._evaluate(arg) for arg in expr.arguments]
            return self.call(expr.name, args, expr.span)
        elif isinstance(expr, StructInit):
            return self._eval_struct_init(expr)
        elif isinstance(expr, ArrayLiteral):
            return self._eval_array_literal(expr)
        elif isinstance(expr, IndexAccess):
            array = self._evaluate_array(expr.target)
            index = self._evaluate(expr.index)
            return array.data[self._index_of(index, len(array.data), expr.index.span)].value
        elif isinstance(expr, DotAccess):
            obj = self._evaluate_struct(expr.object)
            return self._field_of(obj, expr.member, expr.span).value
        elif isinstance(expr, FunctionLiteral):
            return function_val(self._make_function("anonymous", expr))
        else:
            raise RuntimeError(f"Unknown expression type: {type(expr).__name__}")

    def _eval_literal(self, expr: Literal) -> Value:
        if expr.literal_type == TokenType.STRING:
            return string_val(expr.value)
        if expr.literal_type == TokenType.BOOLEAN:
            return bool_val(expr.value)
        if isinstance(expr.value, int):
            return int_val(expr.value)
        return double_val(expr.value)

    def _eval_unary(self, expr: UnaryOp) -> Value:
        operand = self._evaluate(expr.operand)
        if expr.operator == TokenType.NOT:
            if operand.kind is not ValueKind.BOOL:
                raise error_type_mismatch("Bool", self._type_name(operand), expr.span,
                                          context="operand of '!'")
            return bool_val(not operand.data)
        if operand.kind is ValueKind.INT:
            return int_val(-operand.data)
        if operand.kind is ValueKind.DOUBLE:
            return double_val(-operand.data)
        raise error_type_mismatch("Int or Double", self._type_name(operand), expr.span,
                                  context="operand of unary '-'")

    def _apply_operator(self, op: TokenType, left: Value, right: Value,
                        span: Optional[SourceSpan] = None) -> Value:
        """
        Apply a binary operator.

        Primitive operand pairs are handled directly. Anything else goes to
        the type registry's declared overloads.
        """
        kinds = (left.kind, right.kind)

        if kinds == (ValueKind.INT, ValueKind.INT) and op in NUMERIC_OPERATORS:
            return self._int_operator(op, left.data, right.data, span)

        if left.kind in NUMERIC_KINDS and right.kind in NUMERIC_KINDS and op in NUMERIC_OPERATORS:
            return self._double_operator(op, float(left.data), float(right.data))

        if kinds == (ValueKind.BOOL, ValueKind.BOOL):
            if op == TokenType.AND:
                return bool_val(left.data and right.data)
            if op == TokenType.OR:
                return bool_val(left.data or right.data)
            if op in EQUALITY_OPERATORS:
                return bool_val(_compare(op, left.data, right.data))

        if kinds == (ValueKind.STRING, ValueKind.STRING):
            if op == TokenType.PLUS:
                return string_val(left.data + right.data)
            if op in EQUALITY_OPERATORS:
                return bool_val(_compare(op, left.data, right.data))

        return self.types.perform_bin_op(op, left, right, span)

    def _int_operator(self, op: TokenType, a: int, b: int, span: Optional[SourceSpan]) -> Value:
        if op == TokenType.PLUS:
            return int_val(a + b)
        if op == TokenType.MINUS:
            return int_val(a - b)
        if op == TokenType.STAR:
            return int_val(a * b)
        if op in (TokenType.SLASH, TokenType.PERCENT):
            if b == 0:
                raise error_divide_by_zero(span)
            quotient = _trunc_div(a, b)
            return int_val(quotient if op == TokenType.SLASH else a - b * quotient)
        return bool_val(_compare(op, a, b))

    def _double_operator(self, op: TokenType, a: float, b: float) -> Value:
        if op == TokenType.PLUS:
            return double_val(a + b)
        if op == TokenType.MINUS:
            return double_val(a - b)
        if op == TokenType.STAR:
            return double_val(a * b)
        if op == TokenType.SLASH:
            return double_val(_double_div(a, b))
        if op == TokenType.PERCENT:
            return double_val(math.fmod(a, b) if b != 0.0 else math.nan)
        return bool_val(_compare(op, a, b))

    def _eval_array_literal(self, expr: ArrayLiteral) -> Value:
        items = []
        for element in expr.elements:
            value = self._evaluate(element)
            items.append(Instance(expr.elements_mutable, value, self.types.from_value(value)))
        if len(items) > expr.init_capacity:
            raise RuntimeError("array literal exceeds its initial capacity")
        return array_val(items, expr.mutable)

    def _eval_struct_init(self, expr: StructInit) -> Value:
        """Instantiate a struct, or call a capitalized function."""
        args = [self._evaluate(arg) for arg in expr.arguments]
        struct = self.types.get(expr.type_name)
        if struct is None or not struct.is_struct:
            return self.call(expr.type_name, args, expr.span)

        scope = struct.scope.clone(struct.name)
        if args:
            if len(args) != len(struct.fields):
                raise error_arity_mismatch(struct.name, f"0 or {len(struct.fields)}", len(args), expr.span)
            shape = self.types.field_shape(struct)
            if not shape.validate(args):
                self._raise_argument_mismatch(struct.name, struct.fields, args, expr.span)
            for (name, _), arg in zip(struct.fields, args):
                scope.variables[name].set_value(arg)
        return struct_val(struct.name, scope)

    # =========================================================================
    # Calls
    # =========================================================================

    def call(self, name: str, args: List[Value], span: Optional[SourceSpan] = None) -> Value:
        """
        Call a function by name with evaluated arguments.

        A function bound in scope takes precedence over a builtin of the same
        name; a bound non-function only fails when no builtin exists.
        """
        instance = self.context.find_variable(name)
        if instance is not None and instance.value.kind is ValueKind.FUNCTION:
            return self.call_function(instance.value.data, args, span)

        builtin = self.builtins.get_function(name)
        if builtin is None:
            if instance is not None:
                raise error_type_mismatch("Fn", self._type_name(instance.value), span,
                                          context=f"call of '{name}'")
            raise error_unknown_function(name, span)
        try:
            return builtin(self.context, self.types, args)
        except ScorchError as exc:
            if exc.diagnostic.span is None:
                exc.diagnostic.span = span
            raise

    def call_function(self, function: Function, args: List[Value],
                      span: Optional[SourceSpan] = None) -> Value:
        """Bind arguments in a frame linked to the function's closure and run the body."""
        if len(args) != function.arity:
            raise error_arity_mismatch(function.name, str(function.arity), len(args), span)
        if function.params:
            shape = self.types.tuple_shape([type_ for _, type_ in function.params])
            if not shape.validate(args):
                self._raise_argument_mismatch(function.name, function.params, args, span)
        if self.call_depth >= self.config.max_call_depth:
            raise error_call_depth_exceeded(function.name, self.config.max_call_depth, span)

        self.call_depth += 1
        logger.debug("call %s depth=%d", function.name, self.call_depth)
        try:
            with self.context.new_scope(f"call {function.name}", parent=function.closure):
                for (name, type_), arg in zip(function.params, args):
                    self._declare(name, Instance(False, arg, type_), span)
                result = unwrap_return(self._execute_block(function.body, "body"))
        except RecursionError:
            # Deeply nested blocks can exhaust the host stack below the call limit
            raise error_call_depth_exceeded(function.name, self.call_depth, span) from None
        finally:
            self.call_depth -= 1

        return_type = function.return_type
        if not result.is_none and return_type.name != "Dynamic":
            self._check_type(return_type, result, span, f"return value of '{function.name}'")
        return result

    def _raise_argument_mismatch(self, callee: str, params: Sequence[Tuple[str, Type]],
                                 args: List[Value], span: Optional[SourceSpan]) -> None:
        given = self.types.from_value(args).name
        for (name, type_), arg in zip(params, args):
            if not type_.validate(arg):
                raise error_type_mismatch(
                    type_.name, self._type_name(arg), span,
                    context=f"argument '{name}' of '{callee}', called with {given}"
                )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _type_name(self, value: Value) -> str:
        return self.types.from_value(value).name

    def _check_type(self, type_: Type, value: Value, span: Optional[SourceSpan], what: str) -> None:
        if not type_.validate(value):
            raise error_type_mismatch(type_.name, self._type_name(value), span, context=what)

    def _evaluate_condition(self, expr: Expression, construct: str) -> bool:
        value = self._evaluate(expr)
        if value.kind is not ValueKind.BOOL:
            raise error_type_mismatch("Bool", self._type_name(value), expr.span,
                                      context=f"{construct} condition")
        return value.data

    def _evaluate_array(self, expr: Expression) -> Value:
        value = self._evaluate(expr)
        if value.kind is not ValueKind.ARRAY:
            raise error_type_mismatch("Array", self._type_name(value), expr.span,
                                      context="indexed value")
        return value

    def _evaluate_struct(self, expr: Expression) -> Value:
        value = self._evaluate(expr)
        if value.kind is not ValueKind.STRUCT:
            raise error_type_mismatch("struct instance", self._type_name(value), expr.span,
                                      context="field access")
        return value

    def _field_of(self, obj: Value, member: str, span: SourceSpan) -> Instance:
        instance = obj.data.find_local(member)
        if instance is None:
            raise error_field_not_found(obj.type_name, member, span)
        return instance

    def _index_of(self, index: Value, length: int, span: SourceSpan) -> int:
        """Convert an index value to a checked list position."""
        if index.kind is ValueKind.DOUBLE and math.isfinite(index.data):
            position = int(index.data)
        elif index.kind is ValueKind.INT:
            position = index.data
        else:
            raise error_type_mismatch("Int", self._type_name(index), span, context="array index")
        if not 0 <= position < length:
            raise error_index_out_of_bounds(position, length, span)
        return position


def run(source: str, config: Optional[InterpreterConfig] = None,
        filename: Optional[str] = None) -> Value:
    """
    Run one source unit on a fresh interpreter.

    Args:
        source: Program text
        config: Optional interpreter settings
        filename: Optional filename for diagnostics

    Returns:
        The program's final Value

    Raises:
        ScorchError: If lexing, parsing or evaluation fails
    """
    return Interpreter(config).run(source, filename)


def run_with_modules(sources: Sequence[str], config: Optional[InterpreterConfig] = None,
                     filenames: Optional[Sequence[str]] = None) -> Value:
    """
    Run source units in order on one shared interpreter.

    Later units see declarations made by earlier ones. Returns the last
    unit's value (None for an empty list).
    """
    return Interpreter(config).run_with_modules(sources, filenames)
