import pytest

from calir.types import IRType, TypeKind


def test_primitive_names():
    for kind in (TypeKind.VOID, TypeKind.I1, TypeKind.I8, TypeKind.I16, TypeKind.I32,
                 TypeKind.I64, TypeKind.F32, TypeKind.F64, TypeKind.LABEL):
        assert str(IRType(kind)) == kind.value


def test_pointer_wraps_pointee_in_angle_brackets():
    inner = IRType(TypeKind.I32)
    ptr = IRType(TypeKind.PTR, pointee=inner)
    text = str(ptr)
    assert text.startswith("<") and text.endswith(">")
    assert text[1:-1] == str(inner)


def test_nested_pointer():
    inner = IRType(TypeKind.PTR, pointee=IRType(TypeKind.I8))
    outer = IRType(TypeKind.PTR, pointee=inner)
    assert str(outer)[1:-1] == str(inner)


def test_array_format():
    arr = IRType(TypeKind.ARRAY, element_type=IRType(TypeKind.I32), element_count=10)
    assert str(arr) == "[10 x i32]"


def test_anonymous_struct_format():
    s = IRType(TypeKind.STRUCT, members=[IRType(TypeKind.I32), IRType(TypeKind.I64)])
    assert str(s) == "{ i32, i64 }"
    assert isinstance(s.members, tuple)


def test_named_struct_prints_only_name():
    s = IRType(TypeKind.STRUCT, members=[IRType(TypeKind.I32)], name="point")
    assert str(s) == "%" + "point"


def test_function_type_format():
    i32 = IRType(TypeKind.I32)
    fn = IRType(TypeKind.FUNCTION, return_type=i32, params=[i32], is_variadic=True)
    assert str(fn) == "i32 (i32, ...)"


def test_function_type_without_params():
    fn = IRType(TypeKind.FUNCTION, return_type=IRType(TypeKind.VOID))
    assert str(fn).endswith("()")
    assert str(fn).startswith("void")


def test_integer_and_float_predicates():
    ints = {TypeKind.I1, TypeKind.I8, TypeKind.I16, TypeKind.I32, TypeKind.I64}
    floats = {TypeKind.F32, TypeKind.F64}
    for kind in (TypeKind.VOID, TypeKind.LABEL, *ints, *floats):
        t = IRType(kind)
        assert t.is_integer() == (kind in ints)
        assert t.is_float() == (kind in floats)
    ptr = IRType(TypeKind.PTR, pointee=IRType(TypeKind.I32))
    assert not ptr.is_integer() and not ptr.is_float()


def test_identity_equality():
    a = IRType(TypeKind.I32)
    b = IRType(TypeKind.I32)
    assert a == a
    assert a != b
    assert len({a, b}) == 2


def test_pointer_requires_pointee():
    with pytest.raises(ValueError):
        IRType(TypeKind.PTR)


def test_array_requires_element_type():
    with pytest.raises(ValueError):
        IRType(TypeKind.ARRAY, element_count=3)


def test_array_rejects_negative_count():
    with pytest.raises(ValueError):
        IRType(TypeKind.ARRAY, element_type=IRType(TypeKind.I8), element_count=-1)


def test_function_requires_return_type():
    with pytest.raises(ValueError):
        IRType(TypeKind.FUNCTION)