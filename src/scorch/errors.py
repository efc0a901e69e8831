"""
Scorch exceptions and diagnostics.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Type errors
- E3xx: Name and binding errors
- E4xx: Runtime errors

Every error is detected where it happens and propagates unchanged to the
``run``/``run_with_modules`` boundary; nothing inside the core recovers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Sequence
from .tokens import SourceSpan


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single diagnostic message."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: Optional[SourceSpan] = None   # None for errors raised inside builtins
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        header = f"{self.severity.value}[{self.code}]: {self.message}"
        if self.span is not None:
            header = f"{self.span.start}: {header}"
        parts.append(header)

        # Source line with caret
        if show_source and self.span is not None and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            end_col = self.span.end.column if self.span.start.line == self.span.end.line else len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        data = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": None,
            "hints": self.hints,
        }
        if self.span is not None:
            data["range"] = {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            }
        return data


class ScorchError(Exception):
    """Base exception for all scorch errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def code(self) -> str:
        return self.diagnostic.code

    def attach_source(self, lines: Sequence[str]) -> None:
        """Fill in the offending source line if the error has a location."""
        diag = self.diagnostic
        if diag.span is None or diag.source_line is not None:
            return
        line_num = diag.span.start.line
        if 1 <= line_num <= len(lines):
            diag.source_line = lines[line_num - 1]

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexError(ScorchError):
    """Error during lexical analysis (E0xx)."""


class ParseError(ScorchError):
    """Error during parsing (E1xx)."""


class RecursionLimitExceeded(ScorchError):
    """Parser nesting or call depth exceeded its configured bound."""


class TypeMismatch(ScorchError):
    """A value does not satisfy the type it is bound or passed to."""


class UnknownType(ScorchError):
    """A type name is not registered."""


class NoOperatorOverload(ScorchError):
    """No operator implementation exists for an operand type pair."""


class UnknownVariable(ScorchError):
    """A name is not bound in any enclosing scope."""


class UnknownFunction(ScorchError):
    """A called name is neither a bound function nor a builtin."""


class RedefinitionError(ScorchError):
    """A name is declared twice in one scope, or a type is registered twice."""


class ImmutableMutation(ScorchError):
    """Attempted write through a const binding or into a const array."""


class FieldNotFound(ScorchError):
    """Dotted access names a field the struct does not have."""


class ArityMismatch(ScorchError):
    """Argument count differs from the callee's parameter count."""


class AssertionFailed(ScorchError):
    """An ``assert``/``assert_eq`` builtin failed."""


class DivideByZero(ScorchError):
    """Integer division or remainder by zero."""


class ArrayIndexOutOfBounds(ScorchError):
    """Index outside an array, or ``pop`` on an empty array."""


def _diagnostic(code: str, message: str, span: Optional[SourceSpan],
                source_line: Optional[str] = None,
                hints: Optional[List[str]] = None) -> Diagnostic:
    return Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=hints or [],
    )


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexError:
    """E001: Unexpected character."""
    return LexError(_diagnostic("E001", f"unexpected character '{char}'", span, source_line))


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexError:
    """E002: Unterminated string literal."""
    return LexError(_diagnostic(
        "E002", "unterminated string literal", span, source_line,
        hints=["string literals must be closed with the same quote on the same line"],
    ))


def error_unterminated_comment(span: SourceSpan, source_line: str = None) -> LexError:
    """E003: Unterminated block comment."""
    return LexError(_diagnostic(
        "E003", "unterminated block comment (expected closing */)", span, source_line,
    ))


def error_invalid_escape_sequence(seq: str, span: SourceSpan, source_line: str = None) -> LexError:
    """E004: Invalid escape sequence in string."""
    return LexError(_diagnostic(
        "E004", f"invalid escape sequence '\\{seq}'", span, source_line,
        hints=["valid escape sequences: \\n, \\t, \\r, \\\", \\', \\\\, \\0"],
    ))


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParseError:
    """E101: Unexpected token."""
    return ParseError(_diagnostic("E101", f"expected {expected}, got {found}", span, source_line))


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParseError:
    """E102: Unexpected end of input."""
    return ParseError(_diagnostic("E102", f"unexpected end of input, expected {expected}", span))


def error_invalid_expression(found: str, span: SourceSpan) -> ParseError:
    """E103: Invalid expression."""
    return ParseError(_diagnostic("E103", f"invalid expression starting at {found}", span))


def error_default_parameter(name: str, span: SourceSpan) -> ParseError:
    """E104: Default parameter values are not supported."""
    return ParseError(_diagnostic(
        "E104", f"parameter '{name}' has a default value", span,
        hints=["parameters are written as 'name: Type'"],
    ))


def error_invalid_struct_member(span: SourceSpan) -> ParseError:
    """E105: Struct bodies hold field declarations only."""
    return ParseError(_diagnostic(
        "E105", "struct bodies may only contain field declarations", span,
    ))


def error_invalid_assignment_target(span: SourceSpan) -> ParseError:
    """E106: Invalid assignment target."""
    return ParseError(_diagnostic(
        "E106", "invalid assignment target", span,
        hints=["assign to a name, an array element or a struct field"],
    ))


def error_invalid_number(text: str, span: SourceSpan) -> ParseError:
    """E107: Number literal is neither an integer nor a float."""
    return ParseError(_diagnostic("E107", f"invalid number literal '{text}'", span))


# --- Type error codes ---

def error_type_mismatch(expected: str, found: str, span: Optional[SourceSpan] = None,
                        context: str = None) -> TypeMismatch:
    """E201: Type mismatch."""
    message = f"type mismatch: expected '{expected}', found '{found}'"
    if context:
        message = f"{message} ({context})"
    return TypeMismatch(_diagnostic("E201", message, span))


def error_unknown_type(name: str, span: Optional[SourceSpan] = None) -> UnknownType:
    """E202: Unknown type name."""
    return UnknownType(_diagnostic("E202", f"unknown type '{name}'", span))


def error_no_operator_overload(op: str, left: str, right: str,
                               span: Optional[SourceSpan] = None) -> NoOperatorOverload:
    """E203: No operator overload for an operand pair."""
    return NoOperatorOverload(_diagnostic(
        "E203", f"no overload of '{op}' for '{left}' and '{right}'", span,
        hints=[f"register an overload on '{left}' for ('{op}', '{right}')"],
    ))


# --- Name and binding error codes ---

def error_unknown_variable(name: str, span: Optional[SourceSpan] = None) -> UnknownVariable:
    """E301: Unknown variable."""
    return UnknownVariable(_diagnostic("E301", f"unknown variable '{name}'", span))


def error_unknown_function(name: str, span: Optional[SourceSpan] = None) -> UnknownFunction:
    """E302: Unknown function."""
    return UnknownFunction(_diagnostic("E302", f"unknown function '{name}'", span))


def error_redefinition(kind: str, name: str, span: Optional[SourceSpan] = None) -> RedefinitionError:
    """E303: Name already defined."""
    return RedefinitionError(_diagnostic("E303", f"{kind} '{name}' is already defined", span))


def error_immutable_mutation(what: str, span: Optional[SourceSpan] = None) -> ImmutableMutation:
    """E304: Write through an immutable binding."""
    return ImmutableMutation(_diagnostic(
        "E304", f"cannot mutate {what}", span,
        hints=["declare it with 'var' to allow mutation"],
    ))


def error_field_not_found(type_name: str, field_name: str,
                          span: Optional[SourceSpan] = None) -> FieldNotFound:
    """E305: Struct has no such field."""
    return FieldNotFound(_diagnostic(
        "E305", f"struct '{type_name}' has no field '{field_name}'", span,
    ))


def error_arity_mismatch(name: str, expected: str, found: int,
                         span: Optional[SourceSpan] = None) -> ArityMismatch:
    """E306: Wrong number of arguments."""
    return ArityMismatch(_diagnostic(
        "E306", f"'{name}' expects {expected} argument(s), got {found}", span,
    ))


def error_assertion_failed(message: str, span: Optional[SourceSpan] = None) -> AssertionFailed:
    """E307: Assertion builtin failed."""
    return AssertionFailed(_diagnostic("E307", f"assertion failed: {message}", span))


# --- Runtime error codes ---

def error_parse_depth_exceeded(limit: int, span: SourceSpan) -> RecursionLimitExceeded:
    """E401: Parser nesting limit exceeded."""
    return RecursionLimitExceeded(_diagnostic(
        "E401", f"nesting deeper than {limit} levels", span,
    ))


def error_call_depth_exceeded(name: str, limit: int,
                              span: Optional[SourceSpan] = None) -> RecursionLimitExceeded:
    """E402: Call depth limit exceeded."""
    return RecursionLimitExceeded(_diagnostic(
        "E402", f"call to '{name}' exceeds the maximum call depth of {limit}", span,
    ))


def error_divide_by_zero(span: Optional[SourceSpan] = None) -> DivideByZero:
    """E403: Integer division by zero."""
    return DivideByZero(_diagnostic("E403", "integer division by zero", span))


def error_index_out_of_bounds(index: int, length: int,
                              span: Optional[SourceSpan] = None) -> ArrayIndexOutOfBounds:
    """E404: Array index out of bounds."""
    return ArrayIndexOutOfBounds(_diagnostic(
        "E404", f"index {index} out of bounds for array of length {length}", span,
    ))


def error_pop_empty(span: Optional[SourceSpan] = None) -> ArrayIndexOutOfBounds:
    """E405: Pop from an empty array."""
    return ArrayIndexOutOfBounds(_diagnostic("E405", "pop from an empty array", span))
