"""
Abstract Syntax Tree (AST) node definitions for scorch.

Nodes form a strict tree: each node is owned by its parent and is not
modified after the parser builds it. Every node records the source span it
was parsed from so runtime errors can point back at the offending code.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Union
from .tokens import SourceSpan, TokenType


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode:
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting


@dataclass
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Statement(AstNode):
    """Base class for all statements."""
    pass


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Literal(Expression):
    """A literal value (Int, Double, String, Bool)."""
    value: Union[int, float, str, bool]
    literal_type: TokenType  # NUMBER, STRING or BOOLEAN


@dataclass
class Identifier(Expression):
    """A variable or function name reference."""
    name: str


@dataclass
class BinaryOp(Expression):
    """An arithmetic operation (a + b, a % b)."""
    left: Expression
    operator: TokenType
    right: Expression


@dataclass
class RelationalOp(Expression):
    """A comparison (a < b, a == b)."""
    left: Expression
    operator: TokenType
    right: Expression


@dataclass
class LogicalOp(Expression):
    """A logical connective (a && b, a || b). Both sides are evaluated."""
    left: Expression
    operator: TokenType
    right: Expression


@dataclass
class UnaryOp(Expression):
    """Negation (-x) or logical not (!x)."""
    operator: TokenType
    operand: Expression


@dataclass
class FunctionCall(Expression):
    """A call by name. Dotted calls ``a.f(x)`` are stored as ``f(a, x)``."""
    name: str
    arguments: List[Expression]
    method_call: bool = False


@dataclass
class ArrayLiteral(Expression):
    """An array literal (e.g., [1, 2, 3])."""
    elements: List[Expression]
    init_capacity: int
    mutable: bool = True
    elements_mutable: bool = False


@dataclass
class IndexAccess(Expression):
    """Index access (e.g., arr[0])."""
    target: Expression
    index: Expression


@dataclass
class StructInit(Expression):
    """Struct instantiation (e.g., Point(), Point(1, 2))."""
    type_name: str
    arguments: List[Expression]


@dataclass
class DotAccess(Expression):
    """Field access (e.g., point.x)."""
    object: Expression
    member: str


@dataclass
class Parameter(AstNode):
    """A function parameter: ``name: Type``."""
    name: str
    type_name: str


@dataclass
class FunctionLiteral(Expression):
    """An anonymous function body with parameters and return type."""
    parameters: List[Parameter]
    return_type: str
    body: "Block"


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Block(Statement):
    """A brace-delimited statement list; runs in its own scope."""
    statements: List[Statement] = field(default_factory=list)


@dataclass
class ExpressionStatement(Statement):
    """An expression evaluated for its value and side effects."""
    expression: Expression


@dataclass
class Declaration(Statement):
    """Variable declaration.

    ``type_name`` is None for implicit (``:=``) declarations, in which case the
    binding takes the type inferred from the value. ``value`` is None when an
    explicit declaration relies on the type default.
    """
    name: str
    type_name: Optional[str]
    value: Optional[Expression]
    mutable: bool = False


@dataclass
class FunctionDecl(Statement):
    """A named function binding (``f := (a: Int) { }`` or ``f : Fn(...) { }``)."""
    name: str
    function: FunctionLiteral
    mutable: bool = False

    @property
    def parameters(self) -> List[Parameter]:
        return self.function.parameters

    @property
    def return_type(self) -> str:
        return self.function.return_type


@dataclass
class Assignment(Statement):
    """Reassignment of a name, an array element or a struct field."""
    target: Expression  # Identifier, IndexAccess or DotAccess
    value: Expression


@dataclass
class ElseClause(AstNode):
    """An ``else`` branch, optionally conditional, optionally chained."""
    condition: Optional[Expression]
    body: Block
    else_branch: Optional["ElseClause"] = None


@dataclass
class IfStatement(Statement):
    """If statement with an optional else chain."""
    condition: Expression
    body: Block
    else_branch: Optional[ElseClause] = None


@dataclass
class RepeatStatement(Statement):
    """Loop; bound when ``iterator`` names a counter, unconditional otherwise."""
    iterator: Optional[str]
    condition: Optional[Expression]
    body: Block

    @property
    def is_bound(self) -> bool:
        return self.iterator is not None


@dataclass
class BreakStatement(Statement):
    """``break [value]``: leaves the nearest loop or function."""
    value: Optional[Expression] = None


@dataclass
class ReturnStatement(Statement):
    """``return [value]``: same unwinding as ``break``."""
    value: Optional[Expression] = None


@dataclass
class StructDecl(Statement):
    """Struct type declaration; fields are plain declarations."""
    name: str
    fields: List[Declaration]


# =============================================================================
# Top-level
# =============================================================================

@dataclass
class Program(AstNode):
    """One parsed source unit."""
    statements: List[Statement] = field(default_factory=list)
    filename: Optional[str] = None
