"""IR type descriptors and their textual form."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


class TypeKind(enum.Enum):
    """The kind of an IR type."""

    VOID = "void"
    I1 = "i1"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    F32 = "f32"
    F64 = "f64"
    LABEL = "label"
    PTR = "ptr"
    ARRAY = "array"
    STRUCT = "struct"
    FUNCTION = "function"


_INTEGER_KINDS = frozenset({TypeKind.I1, TypeKind.I8, TypeKind.I16, TypeKind.I32, TypeKind.I64})
_FLOAT_KINDS = frozenset({TypeKind.F32, TypeKind.F64})
_PRIMITIVE_KINDS = _INTEGER_KINDS | _FLOAT_KINDS | {TypeKind.VOID, TypeKind.LABEL}


@dataclass(eq=False, repr=False)
class IRType:
    """An IR type.

    Types compare by identity; a context hands out one object per distinct
    type, so identity is type equality.
    """

    kind: TypeKind
    pointee: Optional["IRType"] = None
    element_type: Optional["IRType"] = None
    element_count: int = 0
    members: Tuple["IRType", ...] = field(default_factory=tuple)
    name: Optional[str] = None
    return_type: Optional["IRType"] = None
    params: Tuple["IRType", ...] = field(default_factory=tuple)
    is_variadic: bool = False

    def __post_init__(self) -> None:
        self.members = tuple(self.members)
        self.params = tuple(self.params)
        if self.kind is TypeKind.PTR and self.pointee is None:
            raise ValueError("a pointer type needs a pointee type")
        if self.kind is TypeKind.ARRAY:
            if self.element_type is None:
                raise ValueError("an array type needs an element type")
            if self.element_count < 0:
                raise ValueError("array element count cannot be negative")
        if self.kind is TypeKind.FUNCTION and self.return_type is None:
            raise ValueError("a function type needs a return type")

    def is_integer(self) -> bool:
        """True for i1, i8, i16, i32 and i64."""
        return self.kind in _INTEGER_KINDS

    def is_float(self) -> bool:
        """True for f32 and f64."""
        return self.kind in _FLOAT_KINDS

    def __str__(self) -> str:
        kind = self.kind
        if kind in _PRIMITIVE_KINDS:
            return kind.value
        if kind is TypeKind.PTR:
            return f"<{self.pointee}>"
        if kind is TypeKind.ARRAY:
            return f"[{self.element_count} x {self.element_type}]"
        if kind is TypeKind.STRUCT:
            if self.name:
                return f"%{self.name}"
            return "{ " + ", ".join(str(m) for m in self.members) + " }"
        # Function type.
        parts = [str(p) for p in self.params]
        if self.is_variadic:
            parts.append("...")
        return f"{self.return_type} ({', '.join(parts)})"

    def __repr__(self) -> str:
        return f"IRType({self})"