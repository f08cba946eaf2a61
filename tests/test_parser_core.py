import pytest

from calir.context import Context
from calir.ir import Function, GlobalVariable, Module
from calir.parser_core import ParseError, ParserBase
from calir.values import ValueKind


def make(source, ctx=None, in_function=True):
    ctx = ctx or Context()
    p = ParserBase(ctx, source)
    if in_function:
        module = Module(ctx, "m")
        p.module = module
        p.current_function = Function(module, "f", ctx.i32)
        p.local_values = {}
    return p


# --- types -----------------------------------------------------------------


@pytest.mark.parametrize("name", ["void", "i1", "i8", "i16", "i32", "i64", "f32", "f64"])
def test_primitive_types(name):
    ctx = Context()
    assert make(name, ctx).parse_type() is getattr(ctx, name)


def test_pointer_type():
    ctx = Context()
    assert make("<<i32>>", ctx).parse_type() is ctx.pointer(ctx.pointer(ctx.i32))


def test_array_type():
    ctx = Context()
    assert make("[4 x i8]", ctx).parse_type() is ctx.array(ctx.i8, 4)


def test_anonymous_struct_type():
    ctx = Context()
    t = make("{ i32, <i8> }", ctx).parse_type()
    assert t is ctx.anonymous_struct([ctx.i32, ctx.pointer(ctx.i8)])


def test_empty_struct_type():
    ctx = Context()
    assert make("{}", ctx).parse_type() is ctx.anonymous_struct(())


def test_function_type_variadic():
    ctx = Context()
    t = make("i32 (<i8>, ...)", ctx).parse_type()
    assert t is ctx.function_type(ctx.i32, [ctx.pointer(ctx.i8)], True)


def test_function_type_no_params():
    ctx = Context()
    assert make("void ()", ctx).parse_type() is ctx.function_type(ctx.void, [], False)


def test_named_struct_type():
    ctx = Context()
    point = ctx.named_struct("point", [ctx.i32, ctx.i32])
    assert make("%point", ctx).parse_type() is point


def test_undefined_named_struct():
    with pytest.raises(ParseError, match="undefined named type '%nope'"):
        make("%nope").parse_type()


def test_unknown_type_identifier():
    with pytest.raises(ParseError, match="Unknown type identifier 'i7'"):
        make("i7").parse_type()


def test_negative_array_size():
    with pytest.raises(ParseError, match="cannot be negative"):
        make("[-1 x i32]").parse_type()


def test_array_missing_x():
    with pytest.raises(ParseError, match="Expected identifier 'x'"):
        make("[2 y i32]").parse_type()


def test_not_a_type():
    with pytest.raises(ParseError, match="Expected a type signature"):
        make(",").parse_type()


def test_error_line_number():
    with pytest.raises(ParseError) as info:
        make("\n\n,").parse_type()
    assert info.value.line == 3


# --- operands ----------------------------------------------------------------


def test_integer_constant():
    ctx = Context()
    assert make("10: i32", ctx).parse_operand() is ctx.const_int(ctx.i32, 10)


def test_integer_constant_wraps_to_width():
    ctx = Context()
    assert make("300: i8", ctx).parse_operand() is ctx.const_int(ctx.i8, 300)


def test_integer_for_i1():
    ctx = Context()
    assert make("5: i1", ctx).parse_operand() is ctx.const_true


def test_float_constant():
    ctx = Context()
    assert make("1.5: f64", ctx).parse_operand() is ctx.const_float(ctx.f64, 1.5)


def test_true_false():
    ctx = Context()
    assert make("true: i1", ctx).parse_operand() is ctx.const_true
    assert make("false: i1", ctx).parse_operand() is ctx.const_false


def test_true_with_wrong_type():
    with pytest.raises(ParseError, match="must have type 'i1'"):
        make("true: i32").parse_operand()


def test_undef_and_null():
    ctx = Context()
    ptr = ctx.pointer(ctx.i32)
    assert make("undef: <i32>", ctx).parse_operand() is ctx.undef(ptr)
    assert make("null: <i32>", ctx).parse_operand() is ctx.undef(ptr)


def test_null_needs_pointer():
    with pytest.raises(ParseError, match="'null' must have 'ptr' type"):
        make("null: i32").parse_operand()


def test_float_literal_for_integer_type():
    with pytest.raises(ParseError, match="Float literal"):
        make("1.5: i32").parse_operand()


def test_integer_literal_for_float_type():
    with pytest.raises(ParseError, match="Integer literal"):
        make("1: f32").parse_operand()


def test_local_value_lookup():
    ctx = Context()
    p = make("%a: i32", ctx)
    arg = p.current_function.add_argument(ctx.i32, "a")
    p.local_values["a"] = arg
    assert p.parse_operand() is arg


def test_local_value_type_mismatch():
    ctx = Context()
    p = make("%a: i64", ctx)
    p.local_values["a"] = p.current_function.add_argument(ctx.i32, "a")
    with pytest.raises(ParseError, match="does not match its definition type"):
        p.parse_operand()


def test_undefined_local():
    with pytest.raises(ParseError, match="undefined value '%missing'"):
        make("%missing: i32").parse_operand()


def test_global_value_lookup():
    ctx = Context()
    p = make("@g: <i32>", ctx)
    g = GlobalVariable(p.module, "g", ctx.i32)
    p.global_values["g"] = g
    assert p.parse_operand() is g


def test_forward_label_is_shared():
    p = make("$next $next")
    first = p.parse_operand()
    second = p.parse_operand()
    assert first is second
    assert first.kind is ValueKind.BASIC_BLOCK
    assert p.local_values["next"] is first
    assert first.name == "next"


def test_label_name_taken_by_other_value():
    ctx = Context()
    p = make("$a", ctx)
    p.local_values["a"] = p.current_function.add_argument(ctx.i32, "a")
    with pytest.raises(ParseError, match="basic block label"):
        p.parse_operand()


def test_label_outside_function():
    with pytest.raises(ParseError):
        make("$entry", in_function=False).parse_operand()


def test_missing_colon():
    with pytest.raises(ParseError, match="Expected ':'"):
        make("%a i32").parse_operand()


def test_unknown_identifier_constant():
    with pytest.raises(ParseError, match="Unexpected identifier"):
        make("bogus: i32").parse_operand()


def test_operand_advances_lexer():
    ctx = Context()
    p = make("7: i32, 8: i32", ctx)
    first = p.parse_operand()
    p._expect(p.lexer.current.type)
    second = p.parse_operand()
    assert first is ctx.const_int(ctx.i32, 7)
    assert second is ctx.const_int(ctx.i32, 8)


def test_record_value_redefinition():
    ctx = Context()
    p = make("%a", ctx)
    tok = p.lexer.current
    arg = p.current_function.add_argument(ctx.i32)
    p._record_value(tok, arg)
    assert arg.name == "a"
    with pytest.raises(ParseError, match="Redefinition of value '%a'"):
        p._record_value(tok, p.current_function.add_argument(ctx.i32))


def test_record_local_outside_function():
    ctx = Context()
    p = make("%a", ctx, in_function=False)
    module = Module(ctx, "m")
    fn = Function(module, "f", ctx.i32)
    with pytest.raises(ParseError, match="outside a function"):
        p._record_value(p.lexer.current, fn.add_argument(ctx.i32))


def test_parse_error_message_format():
    err = ParseError("boom", 4)
    assert str(err) == "Parse Error (Line 4): boom"
    assert err.message == "boom"