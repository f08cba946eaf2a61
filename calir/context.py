"""The IR context: owner of unique types and constants."""

from __future__ import annotations

import math
import struct
from typing import Dict, Iterable, Optional, Tuple

from calir.types import IRType, TypeKind
from calir.values import Constant, ConstantKind

_INT_BITS = {
    TypeKind.I8: 8,
    TypeKind.I16: 16,
    TypeKind.I32: 32,
    TypeKind.I64: 64,
}


def _wrap_signed(value: int, bits: int) -> int:
    mask = (1 << bits) - 1
    value &= mask
    return value - (1 << bits) if value >= (1 << (bits - 1)) else value


def _to_f32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


class Context:
    """Hands out one object per distinct type and per distinct constant."""

    def __init__(self) -> None:
        self.void = IRType(TypeKind.VOID)
        self.i1 = IRType(TypeKind.I1)
        self.i8 = IRType(TypeKind.I8)
        self.i16 = IRType(TypeKind.I16)
        self.i32 = IRType(TypeKind.I32)
        self.i64 = IRType(TypeKind.I64)
        self.f32 = IRType(TypeKind.F32)
        self.f64 = IRType(TypeKind.F64)
        self.label = IRType(TypeKind.LABEL)
        self._primitives: Dict[TypeKind, IRType] = {
            t.kind: t
            for t in (
                self.void, self.i1, self.i8, self.i16, self.i32,
                self.i64, self.f32, self.f64, self.label,
            )
        }

        self._pointers: Dict[IRType, IRType] = {}
        self._arrays: Dict[Tuple[IRType, int], IRType] = {}
        self.named_structs: Dict[str, IRType] = {}
        self._anon_structs: Dict[Tuple[IRType, ...], IRType] = {}
        self._functions: Dict[Tuple[IRType, Tuple[IRType, ...], bool], IRType] = {}

        self._undefs: Dict[IRType, Constant] = {}
        self._ints: Dict[Tuple[TypeKind, int], Constant] = {}
        self._floats: Dict[Tuple[TypeKind, float], Constant] = {}

        self.const_true = Constant(self.i1, ConstantKind.INT, 1)
        self.const_false = Constant(self.i1, ConstantKind.INT, 0)

    # --- types ----------------------------------------------------------

    def pointer(self, pointee: IRType) -> IRType:
        """The unique pointer type to ``pointee``."""
        found = self._pointers.get(pointee)
        if found is None:
            found = IRType(TypeKind.PTR, pointee=pointee)
            self._pointers[pointee] = found
        return found

    def array(self, element_type: IRType, count: int) -> IRType:
        """The unique array type of ``count`` elements of ``element_type``."""
        if count < 0:
            raise ValueError("array element count cannot be negative")
        key = (element_type, count)
        found = self._arrays.get(key)
        if found is None:
            found = IRType(TypeKind.ARRAY, element_type=element_type, element_count=count)
            self._arrays[key] = found
        return found

    def named_struct(self, name: str, members: Iterable[IRType]) -> IRType:
        """The struct type with this name, created on first request."""
        found = self.named_structs.get(name)
        if found is None:
            found = IRType(TypeKind.STRUCT, members=tuple(members), name=name)
            self.named_structs[name] = found
        return found

    def lookup_struct(self, name: str) -> Optional[IRType]:
        """The named struct type called ``name``, or None if undefined."""
        return self.named_structs.get(name)

    def anonymous_struct(self, members: Iterable[IRType]) -> IRType:
        """The unique unnamed struct type with these member types."""
        key = tuple(members)
        found = self._anon_structs.get(key)
        if found is None:
            found = IRType(TypeKind.STRUCT, members=key)
            self._anon_structs[key] = found
        return found

    def function_type(
        self, return_type: IRType, params: Iterable[IRType], is_variadic: bool = False
    ) -> IRType:
        """The unique function type with this signature."""
        key = (return_type, tuple(params), bool(is_variadic))
        found = self._functions.get(key)
        if found is None:
            found = IRType(
                TypeKind.FUNCTION,
                return_type=return_type,
                params=key[1],
                is_variadic=key[2],
            )
            self._functions[key] = found
        return found

    # --- constants ------------------------------------------------------

    def undef(self, type: IRType) -> Constant:
        """The unique ``undef`` constant of ``type``."""
        found = self._undefs.get(type)
        if found is None:
            found = Constant(type, ConstantKind.UNDEF)
            self._undefs[type] = found
        return found

    def const_bool(self, value: bool) -> Constant:
        """The i1 constant ``true`` or ``false``."""
        return self.const_true if value else self.const_false

    def const_int(self, type: IRType, value: int) -> Constant:
        """The unique integer constant of ``type``, wrapped to its width."""
        if not type.is_integer():
            raise ValueError(f"integer constant needs an integer type, got {type}")
        if type.kind is TypeKind.I1:
            return self.const_bool(value != 0)
        wrapped = _wrap_signed(int(value), _INT_BITS[type.kind])
        key = (type.kind, wrapped)
        found = self._ints.get(key)
        if found is None:
            found = Constant(self._primitives[type.kind], ConstantKind.INT, wrapped)
            self._ints[key] = found
        return found

    def const_float(self, type: IRType, value: float) -> Constant:
        """The unique float constant of ``type``; f32 values are rounded."""
        if not type.is_float():
            raise ValueError(f"float constant needs a float type, got {type}")
        value = float(value)
        if math.isnan(value):
            raise ValueError("NaN cannot be used as a float constant")
        if type.kind is TypeKind.F32:
            value = _to_f32(value)
        key = (type.kind, value)
        found = self._floats.get(key)
        if found is None:
            found = Constant(self._primitives[type.kind], ConstantKind.FLOAT, value)
            self._floats[key] = found
        return found