"""
scorch - a small statically checked scripting language.

This package provides:
- Lexer: Tokenizes source text
- Parser: Builds an AST from tokens
- TypeRegistry: Named types, struct shapes and operator overloads
- Interpreter: Evaluates programs against a lexical scope chain

Usage:
    from scorch import run

    result = run('''
    square := (n: Int) -> Int { return n * n }
    square(7)
    ''')
    print(result.data)   # 49
"""

import logging

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("scorch")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "unknown"

from .tokens import (
    Token,
    TokenType,
    TokenFamily,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
    parse_source,
)

from .errors import (
    Diagnostic,
    ErrorSeverity,
    ScorchError,
    LexError,
    ParseError,
    RecursionLimitExceeded,
    TypeMismatch,
    UnknownType,
    NoOperatorOverload,
    UnknownVariable,
    UnknownFunction,
    RedefinitionError,
    ImmutableMutation,
    FieldNotFound,
    ArityMismatch,
    AssertionFailed,
    DivideByZero,
    ArrayIndexOutOfBounds,
)

from .types import (
    Type,
    TypeAttribute,
    TypeRegistry,
    ValueKind,
)

from .config import (
    InterpreterConfig,
    Project,
    load_config,
    load_project,
)

from .runtime import (
    Value,
    Instance,
    Scope,
    Context,
    Interpreter,
    run,
    run_with_modules,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # Tokens
    "Token",
    "TokenType",
    "TokenFamily",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    # Lexer / parser
    "Lexer",
    "tokenize",
    "Parser",
    "parse",
    "parse_source",
    # Errors
    "Diagnostic",
    "ErrorSeverity",
    "ScorchError",
    "LexError",
    "ParseError",
    "RecursionLimitExceeded",
    "TypeMismatch",
    "UnknownType",
    "NoOperatorOverload",
    "UnknownVariable",
    "UnknownFunction",
    "RedefinitionError",
    "ImmutableMutation",
    "FieldNotFound",
    "ArityMismatch",
    "AssertionFailed",
    "DivideByZero",
    "ArrayIndexOutOfBounds",
    # Types
    "Type",
    "TypeAttribute",
    "TypeRegistry",
    "ValueKind",
    # Config
    "InterpreterConfig",
    "Project",
    "load_config",
    "load_project",
    # Runtime
    "Value",
    "Instance",
    "Scope",
    "Context",
    "Interpreter",
    "run",
    "run_with_modules",
]
