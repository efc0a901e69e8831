"""
Runtime values for the scorch interpreter.

A ``Value`` is a tagged union: ``kind`` says which variant it is and ``data``
holds the payload. Copying a Value is cheap. Array and struct values share
their payload (a list of Instances, or a Scope), so every copy sees later
mutation through any other copy. Struct instantiation is the exception:
``Scope.clone`` gives every new instance its own copy of the template's
arrays and nested structs.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional, Tuple, TYPE_CHECKING

from ..types import Type, ValueKind

if TYPE_CHECKING:
    from ..ast import Block
    from .context import Scope


@dataclass
class Value:
    """
    A runtime value.

    ``mutable`` is only meaningful for arrays and ``type_name`` only for
    struct instances.
    """
    kind: ValueKind
    data: Any = None
    mutable: bool = False
    type_name: Optional[str] = None

    def __repr__(self) -> str:
        if self.kind is ValueKind.STRUCT:
            return f"Value(STRUCT, {self.type_name})"
        if self.kind is ValueKind.ARRAY:
            return f"Value(ARRAY, {len(self.data)} items, mutable={self.mutable})"
        return f"Value({self.kind.name}, {self.data!r})"

    @property
    def is_none(self) -> bool:
        return self.kind is ValueKind.NONE

    @property
    def is_return(self) -> bool:
        return self.kind is ValueKind.RETURN

    def to_python(self) -> Any:
        """Convert to plain Python data (arrays to lists, structs to dicts)."""
        if self.kind is ValueKind.ARRAY:
            return [item.value.to_python() for item in self.data]
        if self.kind is ValueKind.STRUCT:
            return {name: inst.value.to_python() for name, inst in self.data.variables.items()}
        if self.kind is ValueKind.RETURN:
            return self.data.to_python() if self.data is not None else None
        return self.data


@dataclass
class Instance:
    """A named binding: mutability, current value and declared type."""
    mutable: bool
    value: Value
    type: Type

    def set_value(self, value: Value) -> None:
        self.value = value

    def copy(self) -> "Instance":
        """A new binding whose array and struct values own fresh storage."""
        return Instance(self.mutable, fresh_storage(self.value), self.type)


@dataclass(eq=False)
class Function:
    """A user-defined function and the scope it closes over."""
    name: str
    params: List[Tuple[str, Type]]
    body: "Block"
    return_type: Type
    mutable: bool = False
    closure: Optional["Scope"] = field(default=None, repr=False)

    @property
    def arity(self) -> int:
        return len(self.params)

    def signature(self) -> str:
        params = ", ".join(f"{name}: {type_.name}" for name, type_ in self.params)
        return f"{self.name}({params}) -> {self.return_type.name}"


# Convenience constructors

NONE = Value(ValueKind.NONE)


def int_val(n: int) -> Value:
    """Create an Int value."""
    return Value(ValueKind.INT, int(n))


def double_val(x: float) -> Value:
    """Create a Double value."""
    return Value(ValueKind.DOUBLE, float(x))


def bool_val(b: bool) -> Value:
    """Create a Bool value."""
    return Value(ValueKind.BOOL, bool(b))


def string_val(s: str) -> Value:
    """Create a String value."""
    return Value(ValueKind.STRING, str(s))


def function_val(function: Function) -> Value:
    return Value(ValueKind.FUNCTION, function)


def array_val(items: List[Instance], mutable: bool = True) -> Value:
    """Wrap a list of Instances; the list itself is shared, not copied."""
    return Value(ValueKind.ARRAY, items, mutable=mutable)


def struct_val(type_name: str, scope: "Scope") -> Value:
    return Value(ValueKind.STRUCT, scope, type_name=type_name)


def fresh_storage(value: Value) -> Value:
    """Copy array elements and struct fields so the result shares nothing with ``value``."""
    if value.kind is ValueKind.ARRAY:
        return array_val([item.copy() for item in value.data], value.mutable)
    if value.kind is ValueKind.STRUCT:
        return struct_val(value.type_name, value.data.clone())
    return value


def return_val(value: Optional[Value] = None) -> Value:
    """Create the control-flow sentinel produced by ``break``/``return``."""
    return Value(ValueKind.RETURN, value)


def unwrap_return(value: Value) -> Value:
    """Turn a sentinel into the value it carries (None if it carries nothing)."""
    if value.kind is ValueKind.RETURN:
        return value.data if value.data is not None else NONE
    return value


def format_double(x: float) -> str:
    """Shortest round-tripping digits, in positional notation (no exponent)."""
    if x != x:
        return "NaN"
    text = repr(x)
    if "e" in text:
        text = format(Decimal(text), "f")
        if "." not in text:
            text += ".0"
    return text


def display(value: Value, nested: bool = False) -> str:
    """
    The user-facing text of a value, used by ``println`` and ``tostr``.

    Strings nested inside arrays or structs are quoted.
    """
    kind = value.kind
    if kind is ValueKind.NONE:
        return "None"
    if kind is ValueKind.INT:
        return str(value.data)
    if kind is ValueKind.DOUBLE:
        return format_double(value.data)
    if kind is ValueKind.BOOL:
        return "true" if value.data else "false"
    if kind is ValueKind.STRING:
        return f'"{value.data}"' if nested else value.data
    if kind is ValueKind.FUNCTION:
        return value.data.signature()
    if kind is ValueKind.ARRAY:
        return "[" + ", ".join(display(item.value, True) for item in value.data) + "]"
    if kind is ValueKind.STRUCT:
        fields = ", ".join(f"{name}: {display(inst.value, True)}"
                           for name, inst in value.data.variables.items())
        return f"{value.type_name} {{ {fields} }}" if fields else f"{value.type_name} {{ }}"
    raise RuntimeError("control-flow sentinel cannot be displayed")


def values_equal(a: Value, b: Value) -> bool:
    """Same-kind equality; values of different kinds are never equal."""
    if a.kind is not b.kind:
        return False
    if a.kind is ValueKind.ARRAY:
        return (len(a.data) == len(b.data) and
                all(values_equal(x.value, y.value) for x, y in zip(a.data, b.data)))
    if a.kind is ValueKind.STRUCT:
        if a.type_name != b.type_name:
            return False
        left, right = a.data.variables, b.data.variables
        return left.keys() == right.keys() and all(
            values_equal(left[name].value, right[name].value) for name in left)
    if a.kind is ValueKind.FUNCTION:
        return a.data is b.data
    return a.data == b.data
