"""
Scope chain for the scorch interpreter.

Frames link to their parent only; lookups walk upward, declarations always
land in the current frame, and ``seek_overwrite_in_parents`` is the only way
an existing binding's value changes.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .values import Instance, Value

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Scope:
    """
    A single frame of name to Instance bindings.

    Scopes form a chain via the `parent` field for lexical scoping.
    """
    variables: Dict[str, Instance] = field(default_factory=dict)
    parent: Optional["Scope"] = field(default=None, repr=False)
    name: str = "anonymous"  # For debugging

    def find_variable(self, name: str) -> Optional[Instance]:
        """Look up a binding here or in any enclosing frame."""
        scope = self
        while scope is not None:
            instance = scope.variables.get(name)
            if instance is not None:
                return instance
            scope = scope.parent
        return None

    def find_local(self, name: str) -> Optional[Instance]:
        """Look up a binding in this frame only."""
        return self.variables.get(name)

    def insert_variable(self, name: str, instance: Instance) -> None:
        """Bind a name in this frame. Callers check for redefinition."""
        self.variables[name] = instance

    def seek_overwrite_in_parents(self, name: str, value: Value) -> bool:
        """
        Replace the value of the nearest binding of ``name``.

        Type and mutability of the binding are left as they are; callers
        check both beforehand. Returns False if no frame binds the name.
        """
        instance = self.find_variable(name)
        if instance is None:
            return False
        instance.set_value(value)
        return True

    def clone(self, name: Optional[str] = None) -> "Scope":
        """Copy this frame's bindings, and any arrays or structs they hold, into a detached frame."""
        return Scope(
            variables={key: inst.copy() for key, inst in self.variables.items()},
            parent=None,
            name=name or self.name,
        )


class Context:
    """
    The current position in the scope tree for one interpreter.

    Usage:
        ctx = Context()
        with ctx.new_scope("block"):
            ctx.insert_variable("x", instance)
    """

    def __init__(self, root: Optional[Scope] = None):
        self.root = root if root is not None else Scope(name="global")
        self.current = self.root

    def find_variable(self, name: str) -> Optional[Instance]:
        return self.current.find_variable(name)

    def find_local(self, name: str) -> Optional[Instance]:
        return self.current.find_local(name)

    def insert_variable(self, name: str, instance: Instance) -> None:
        self.current.insert_variable(name, instance)

    def seek_overwrite_in_parents(self, name: str, value: Value) -> bool:
        return self.current.seek_overwrite_in_parents(name, value)

    def push_scope(self, name: str = "block", parent: Optional[Scope] = None) -> Scope:
        """Make a fresh frame current; its parent defaults to the current frame."""
        scope = Scope(parent=parent if parent is not None else self.current, name=name)
        self.current = scope
        return scope

    @contextmanager
    def new_scope(self, name: str = "block", parent: Optional[Scope] = None) -> Iterator[Scope]:
        """
        Run the body in a fresh frame, restoring the previous frame on every
        exit path.

        ``parent`` lets function calls link the frame to the function's
        defining scope instead of the caller's.
        """
        saved = self.current
        scope = self.push_scope(name, parent)
        try:
            yield scope
        finally:
            self.current = saved

    def chain(self) -> List[Scope]:
        """Frames from the current one up to the root."""
        frames = []
        scope = self.current
        while scope is not None:
            frames.append(scope)
            scope = scope.parent
        return frames
