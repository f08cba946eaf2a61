import math

import pytest

from calir.context import Context
from calir.types import TypeKind
from calir.values import ConstantKind, ValueKind


@pytest.fixture
def ctx():
    return Context()


def test_primitive_types(ctx):
    assert ctx.i32.kind is TypeKind.I32
    assert str(ctx.i64) == "i64"
    assert ctx.void.kind is TypeKind.VOID


def test_pointer_is_unique(ctx):
    p = ctx.pointer(ctx.i32)
    assert ctx.pointer(ctx.i32) is p
    assert p.pointee is ctx.i32
    assert str(p) == "<i32>"
    assert ctx.pointer(ctx.i64) is not p


def test_array_is_unique(ctx):
    a = ctx.array(ctx.i32, 4)
    assert ctx.array(ctx.i32, 4) is a
    assert ctx.array(ctx.i32, 5) is not a
    assert a.element_count == 4 and a.element_type is ctx.i32


def test_array_negative_count(ctx):
    with pytest.raises(ValueError):
        ctx.array(ctx.i32, -1)


def test_named_struct(ctx):
    point = ctx.named_struct("point", [ctx.i32, ctx.i32])
    assert ctx.lookup_struct("point") is point
    assert ctx.named_struct("point", [ctx.i32, ctx.i32]) is point
    assert point.members == (ctx.i32, ctx.i32)
    assert str(point) == "%point"
    assert ctx.named_structs["point"] is point


def test_lookup_missing_struct(ctx):
    assert ctx.lookup_struct("nope") is None


def test_anonymous_struct_is_unique(ctx):
    s = ctx.anonymous_struct([ctx.i32, ctx.f64])
    assert ctx.anonymous_struct((ctx.i32, ctx.f64)) is s
    assert ctx.anonymous_struct([ctx.f64, ctx.i32]) is not s
    assert s.name is None


def test_function_type_is_unique(ctx):
    f = ctx.function_type(ctx.i32, [ctx.i32], False)
    assert ctx.function_type(ctx.i32, (ctx.i32,), False) is f
    v = ctx.function_type(ctx.i32, [ctx.i32], True)
    assert v is not f
    assert v.is_variadic and not f.is_variadic
    assert f.return_type is ctx.i32


def test_undef_cached_per_type(ctx):
    u = ctx.undef(ctx.i32)
    assert ctx.undef(ctx.i32) is u
    assert ctx.undef(ctx.i64) is not u
    assert u.const_kind is ConstantKind.UNDEF
    assert u.kind is ValueKind.CONSTANT


def test_const_bool(ctx):
    assert ctx.const_bool(True) is ctx.const_true
    assert ctx.const_bool(False) is ctx.const_false
    assert ctx.const_true.type is ctx.i1


def test_const_int_i1_maps_to_bool(ctx):
    assert ctx.const_int(ctx.i1, 2) is ctx.const_true
    assert ctx.const_int(ctx.i1, 0) is ctx.const_false


def test_const_int_cached(ctx):
    c = ctx.const_int(ctx.i32, 10)
    assert ctx.const_int(ctx.i32, 10) is c
    assert ctx.const_int(ctx.i64, 10) is not c
    assert c.value == 10 and c.type is ctx.i32


def test_const_int_wraps_to_width(ctx):
    assert ctx.const_int(ctx.i8, 256 + 5) is ctx.const_int(ctx.i8, 5)
    assert ctx.const_int(ctx.i16, -1) is ctx.const_int(ctx.i16, (1 << 16) - 1)


def test_const_int_rejects_non_integer(ctx):
    with pytest.raises(ValueError):
        ctx.const_int(ctx.f32, 1)


def test_const_float(ctx):
    c = ctx.const_float(ctx.f64, 1.5)
    assert ctx.const_float(ctx.f64, 1.5) is c
    assert c.value == 1.5
    half = ctx.const_float(ctx.f32, 0.5)
    assert half.type is ctx.f32 and half.value == 0.5
    assert ctx.const_float(ctx.f32, 0.1) is not ctx.const_float(ctx.f64, 0.1)


def test_const_float_f32_overflow_is_infinite(ctx):
    big = ctx.const_float(ctx.f32, 1e300)
    assert big.value == math.inf
    assert big.type is ctx.f32
    small = ctx.const_float(ctx.f32, -1e300)
    assert small.value == -math.inf


def test_const_float_rejects_nan_and_non_float(ctx):
    with pytest.raises(ValueError):
        ctx.const_float(ctx.f64, float("nan"))
    with pytest.raises(ValueError):
        ctx.const_float(ctx.i32, 1.0)