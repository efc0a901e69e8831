"""
scorch runtime - tree-walking interpreter.

This module provides:
- Interpreter: Evaluates parsed programs
- Value / Instance: Runtime values and named bindings
- Scope / Context: The lexical scope chain
- BuiltinRegistry: Built-in function implementations
"""

from .values import (
    Value,
    Instance,
    Function,
    NONE,
    int_val,
    double_val,
    bool_val,
    string_val,
    function_val,
    array_val,
    struct_val,
    return_val,
    unwrap_return,
    display,
    values_equal,
)

from .context import (
    Scope,
    Context,
)

from .builtins import (
    BuiltinFunction,
    BuiltinRegistry,
)

from .interpreter import (
    Interpreter,
    run,
    run_with_modules,
)

__all__ = [
    # Values
    "Value",
    "Instance",
    "Function",
    "NONE",
    "int_val",
    "double_val",
    "bool_val",
    "string_val",
    "function_val",
    "array_val",
    "struct_val",
    "return_val",
    "unwrap_return",
    "display",
    "values_equal",
    # Context
    "Scope",
    "Context",
    # Builtins
    "BuiltinFunction",
    "BuiltinRegistry",
    # Interpreter
    "Interpreter",
    "run",
    "run_with_modules",
]
