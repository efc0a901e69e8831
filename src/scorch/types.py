"""
Type registry for scorch.

A ``Type`` is a name plus a validator predicate over runtime values, an
attribute tag, and the operator overloads declared for it. The registry maps
names to types. It starts with the primitive types; struct declarations and
tuple shapes add entries while a program runs.

Tuple shapes describe ordered lists of values such as argument lists and
struct field lists. They are named structurally, e.g. ``(Int, Double)``, and
each distinct shape is registered once.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from .tokens import SourceSpan, TokenType, operator_symbol
from .errors import (
    error_no_operator_overload,
    error_redefinition,
    error_unknown_type,
)

if TYPE_CHECKING:
    from .runtime.context import Scope
    from .runtime.values import Instance, Value

logger = logging.getLogger(__name__)


class ValueKind(Enum):
    """Runtime tags of the value union."""
    NONE = auto()
    INT = auto()
    DOUBLE = auto()
    BOOL = auto()
    STRING = auto()
    FUNCTION = auto()
    RETURN = auto()     # control-flow sentinel, never stored
    ARRAY = auto()
    STRUCT = auto()


class TypeAttribute(Enum):
    """Broad category of a type."""
    VALUE = auto()
    ARRAY = auto()
    STRUCT = auto()
    FUNCTION = auto()


Validator = Callable[[Any], bool]
OperatorImpl = Callable[["Value", "Value"], "Value"]


@dataclass(eq=False)
class Type:
    """A registered type descriptor."""
    name: str
    validator: Validator = field(repr=False)
    attribute: TypeAttribute = TypeAttribute.VALUE
    overloads: Dict[Tuple[TokenType, str], OperatorImpl] = field(default_factory=dict, repr=False)
    scope: Optional["Scope"] = field(default=None, repr=False)    # struct template
    fields: List[Tuple[str, "Type"]] = field(default_factory=list, repr=False)
    elements: List["Type"] = field(default_factory=list, repr=False)  # tuple shapes

    @property
    def is_struct(self) -> bool:
        return self.attribute is TypeAttribute.STRUCT

    def validate(self, value: Any) -> bool:
        """Check a value (or, for a tuple shape, a sequence of values)."""
        return bool(self.validator(value))

    def add_overload(self, operator: TokenType, other: str, implementation: OperatorImpl) -> None:
        self.overloads[(operator, other)] = implementation

    def find_overload(self, operator: TokenType, other: str) -> Optional[OperatorImpl]:
        return self.overloads.get((operator, other))

    def perform_bin_op(self, operator: TokenType, lhs: "Value", rhs: "Value",
                       other: "Type", span: Optional[SourceSpan] = None) -> "Value":
        """Apply the overload registered for (operator, other.name)."""
        implementation = self.find_overload(operator, other.name)
        if implementation is None:
            raise error_no_operator_overload(operator_symbol(operator), self.name, other.name, span)
        return implementation(lhs, rhs)

    def __str__(self) -> str:
        return self.name


def _kind_validator(kind: ValueKind) -> Validator:
    return lambda value: value.kind is kind


class TypeRegistry:
    """
    Name to ``Type`` mapping for one interpreter.

    Usage:
        registry = TypeRegistry()
        int_type = registry.require("Int")
        registry.register_overload("Vec", TokenType.PLUS, "Vec", add_vectors)
    """

    # Primitive type for each value kind; structs resolve by their type name
    KIND_TYPES = {
        ValueKind.NONE: "None",
        ValueKind.INT: "Int",
        ValueKind.DOUBLE: "Double",
        ValueKind.BOOL: "Bool",
        ValueKind.STRING: "String",
        ValueKind.FUNCTION: "Fn",
        ValueKind.ARRAY: "Array",
    }

    def __init__(self):
        self._types: Dict[str, Type] = {}
        self._register_primitives()

    def _register_primitives(self) -> None:
        for kind in (ValueKind.NONE, ValueKind.INT, ValueKind.DOUBLE,
                     ValueKind.STRING, ValueKind.BOOL):
            self.register(Type(self.KIND_TYPES[kind], _kind_validator(kind)))
        self.register(Type(
            "Dynamic",
            lambda value: value.kind is not ValueKind.RETURN,
        ))
        self.register(Type("Array", _kind_validator(ValueKind.ARRAY), TypeAttribute.ARRAY))
        self.register(Type("Fn", _kind_validator(ValueKind.FUNCTION), TypeAttribute.FUNCTION))

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def names(self) -> List[str]:
        return list(self._types)

    def get(self, name: str) -> Optional[Type]:
        """Look up a type by name, or None."""
        return self._types.get(name)

    def require(self, name: str, span: Optional[SourceSpan] = None) -> Type:
        """Look up a type by name, raising UnknownType if absent."""
        type_ = self._types.get(name)
        if type_ is None:
            raise error_unknown_type(name, span)
        return type_

    def register(self, type_: Type, span: Optional[SourceSpan] = None) -> Type:
        """Add a new type. Type names are unique."""
        if type_.name in self._types:
            raise error_redefinition("type", type_.name, span)
        self._types[type_.name] = type_
        logger.debug("registered type %s (%s)", type_.name, type_.attribute.name)
        return type_

    def from_value(self, value: Any) -> Type:
        """
        Classify a runtime value.

        A list or tuple of values classifies as its tuple shape. Every value a
        program can build has a type, so failure here is an interpreter bug
        and raises RuntimeError rather than a scorch error.
        """
        if isinstance(value, (list, tuple)):
            return self.tuple_shape([self.from_value(item) for item in value])
        if value.kind is ValueKind.RETURN:
            raise RuntimeError("control-flow sentinel reached type classification")
        if value.kind is ValueKind.STRUCT:
            name = value.type_name
        else:
            name = self.KIND_TYPES[value.kind]
        type_ = self._types.get(name)
        if type_ is None:
            raise RuntimeError(f"no registered type for value of kind {value.kind.name} ({name})")
        return type_

    def validate(self, instance: "Instance") -> bool:
        """Check an instance's value against its own declared type."""
        return instance.type.validate(instance.value)

    def tuple_shape(self, types: Sequence[Type]) -> Type:
        """Return the memoized tuple type for an ordered list of types."""
        elements = list(types)
        name = "(" + ", ".join(t.name for t in elements) + ")"
        shape = self._types.get(name)
        if shape is not None:
            return shape

        def validate_tuple(values: Sequence["Value"]) -> bool:
            return (len(values) == len(elements) and
                    all(t.validate(v) for t, v in zip(elements, values)))

        return self.register(Type(name, validate_tuple, elements=elements))

    def define_struct(self, name: str, fields: Sequence[Tuple[str, Type]],
                      template: "Scope", span: Optional[SourceSpan] = None) -> Type:
        """Register a struct type whose instances are cloned from ``template``."""
        struct = Type(
            name,
            lambda value: value.kind is ValueKind.STRUCT and value.type_name == name,
            TypeAttribute.STRUCT,
            scope=template,
            fields=list(fields),
        )
        return self.register(struct, span)

    def field_shape(self, struct: Type) -> Type:
        """Tuple shape of a struct's fields, in declaration order."""
        return self.tuple_shape([field_type for _, field_type in struct.fields])

    def register_overload(self, type_name: str, operator: TokenType,
                          other_type_name: str, implementation: OperatorImpl) -> None:
        """Declare ``type_name <operator> other_type_name`` for binary expressions."""
        left = self.require(type_name)
        right = self.require(other_type_name)
        left.add_overload(operator, right.name, implementation)
        logger.debug("overload %s %s %s", left.name, operator_symbol(operator), right.name)

    def perform_bin_op(self, operator: TokenType, lhs: "Value", rhs: "Value",
                       span: Optional[SourceSpan] = None) -> "Value":
        """Resolve an operator on the left operand's type by exact right type name."""
        left = self.from_value(lhs)
        right = self.from_value(rhs)
        return left.perform_bin_op(operator, lhs, rhs, right, span)
