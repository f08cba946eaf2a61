"""IR values, constants and the use edges that link them."""

from __future__ import annotations

import enum
from typing import List, Optional, Union

from calir.types import IRType


class ValueKind(enum.Enum):
    """What an IR value is."""

    ARGUMENT = "argument"
    INSTRUCTION = "instruction"
    BASIC_BLOCK = "basic_block"
    FUNCTION = "function"
    CONSTANT = "constant"
    GLOBAL = "global"


_SIGILS = {
    ValueKind.BASIC_BLOCK: "$",
    ValueKind.FUNCTION: "@",
    ValueKind.GLOBAL: "@",
    ValueKind.ARGUMENT: "%",
    ValueKind.INSTRUCTION: "%",
}

# Kinds that are printed with a ": type" suffix when used as operands.
_TYPED_KINDS = frozenset({ValueKind.CONSTANT, ValueKind.ARGUMENT, ValueKind.INSTRUCTION})


class Value:
    """Anything that has a type and can be used as an operand."""

    def __init__(self, kind: ValueKind, type: IRType, name: Optional[str] = None) -> None:
        self.kind = kind
        self.type = type
        self.name = name
        self.uses: List[Use] = []

    def ref(self) -> str:
        """The value's name with its sigil, e.g. ``%a``, ``@main`` or ``$entry``."""
        if self.name is None:
            raise ValueError(f"{self.kind.value} value has no name")
        return f"{_SIGILS[self.kind]}{self.name}"

    def typed_ref(self) -> str:
        """The value as an operand: ``%a: i32``, ``10: i32`` or ``$entry``."""
        text = self.ref()
        if self.kind in _TYPED_KINDS:
            return f"{text}: {self.type}"
        return text

    def replace_all_uses_with(self, new_value: "Value") -> None:
        """Redirect every use of this value to ``new_value``."""
        if new_value is self:
            return
        for use in list(self.uses):
            use.set_value(new_value)

    def __repr__(self) -> str:
        label = self.name if self.name is not None else "<unnamed>"
        return f"{type(self).__name__}({self.kind.value} {label}: {self.type})"


class Use:
    """An edge from a user (an instruction) to a value it uses.

    The edge lives in both the value's ``uses`` list and the user's
    ``operands`` list.
    """

    def __init__(self, user, value: Value) -> None:
        self.user = user
        self.value = value
        user.operands.append(self)
        value.uses.append(self)

    def unlink(self) -> None:
        """Remove this edge from both the user's and the value's lists."""
        if self in self.user.operands:
            self.user.operands.remove(self)
        if self in self.value.uses:
            self.value.uses.remove(self)

    def set_value(self, new_value: Value) -> None:
        """Point this edge at ``new_value`` instead of its current value."""
        if self in self.value.uses:
            self.value.uses.remove(self)
        self.value = new_value
        new_value.uses.append(self)

    def __repr__(self) -> str:
        return f"Use({self.value!r})"


class ConstantKind(enum.Enum):
    """The kind of a constant."""

    UNDEF = "undef"
    INT = "int"
    FLOAT = "float"


class Constant(Value):
    """A constant value: an integer, a float, or ``undef``."""

    def __init__(
        self,
        type: IRType,
        const_kind: ConstantKind,
        value: Union[int, float, None] = None,
    ) -> None:
        super().__init__(ValueKind.CONSTANT, type)
        self.const_kind = const_kind
        if const_kind is ConstantKind.UNDEF:
            value = None
        elif value is None:
            raise ValueError(f"a {const_kind.value} constant needs a value")
        self.value = value

    def ref(self) -> str:
        if self.const_kind is ConstantKind.UNDEF:
            return "undef"
        if self.const_kind is ConstantKind.INT:
            return str(int(self.value))
        return repr(float(self.value))

    def __repr__(self) -> str:
        return f"Constant({self.typed_ref()})"