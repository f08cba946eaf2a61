# calir

`calir` is a compact SSA-style intermediate representation in pure Python.
It has no dependencies outside the standard library. It offers:

- IR types that are uniqued per `Context` (`calir.types`, `calir.context`)
- constants that are uniqued per `Context`
- values joined by def-use edges (`calir.values`)
- modules, functions, basic blocks, globals and instructions, plus a
  `Builder` that creates instructions (`calir.ir`)
- a tokenizer (`calir.lexer`) and a parser (`calir.parser`) for a small
  textual IR format

## Installation

```
pip install .
```

## Reading IR text

```python
from calir.context import Context
from calir.parser import parse_module

source = '''
module = "demo"

define i32 @add_one(%x: i32) {
$entry:
  %r: i32 = add %x: i32, 1: i32
  ret %r: i32
}
'''

ctx = Context()
module = parse_module(ctx, source)
fn = module.get_function("add_one")
print([block.name for block in fn.blocks])        # ['entry']
print(fn.blocks[0].instructions[0].typed_ref())   # %r: i32
```

If the source has no `module = "..."` header, the module is named
`parsed_module`. The parser stops at the first problem. It raises
`calir.parser_core.ParseError`, whose `message` and `line` attributes say what
went wrong and on which line.

### The text format

- Types are `void`, `i1`, `i8`, `i16`, `i32`, `i64`, `f32` and `f64`. There
  are also pointers `<T>`, arrays `[N x T]`, anonymous structs `{ T, U }`,
  named structs `%name`, and function types `R (T, U, ...)`.
- A named struct is defined as `%point = type { i32, i32 }`.
- A global is written `@g: <i32> = global 10: i32`. The global is annotated
  with its pointer type. The initializer may be a constant or `zeroinitializer`.
- A function is written `define <ret> @name(%a: T, ...) { ... }`. A
  declaration is written `declare <ret> @name(T, ...)`. The parameters of a
  declaration may also be named, as in `%a: T`.
- A block begins with a label such as `$entry:`. It ends with a terminator
  (`ret` or `br`). Labels may be used before the block that defines them.
- An instruction that produces a result is written `%name: T = ...`. Every
  operand carries its type, as in `%a: i32`, `5: i32`, `true: i1`,
  `undef: T`, `null: <T>` or `1.5: f64`. A label operand such as `$bb` has no type.
- The instructions are:
  - `ret %v: T` and `ret void`
  - `br $dest` and `br %c: i1, $then, $else`
  - `add` and `sub`
  - `icmp <pred>`, where `<pred>` is `eq`, `ne`, `slt`, `sle`, `sgt`, `sge`,
    `ult`, `ule`, `ugt` or `uge`
  - `alloc T`
  - `load`
  - `store %v: T, %p: <T>`
  - `gep [inbounds] %base: <T>, %i: i32, ...`
  - `phi [ %v: T, $bb ], ...`
  - `call <R (T)> @f(%a: T)`
- A comment begins with `;` and runs to the end of the line.

`calir.lexer.tokenize(source)` returns the token list by itself, ending with
the EOF token.

## Building IR programmatically

```python
from calir.context import Context
from calir.ir import BasicBlock, Builder, Function, ICmpPredicate, Module

ctx = Context()
mod = Module(ctx, "example")

fn = Function(mod, "inc", ctx.i32)
x = fn.add_argument(ctx.i32, "x")
fn.finalize_signature()

entry = BasicBlock(fn, "entry")
fn.append_block(entry)

b = Builder(ctx)
b.set_insertion_point(entry)
r = b.add(x, ctx.const_int(ctx.i32, 1), "r")
b.ret(r)

print(r.typed_ref())            # %r: i32
print(fn.type)                  # <i32 (i32)>
print(entry.terminator.opcode)  # Opcode.RET
```

`Builder` provides `ret`, `br`, `cond_br`, `add`, `sub`, `icmp`, `alloca`,
`load`, `store`, `gep`, `phi` and `call`. Each method appends the new
instruction to the current insertion block. When an operand is invalid, the
method raises `ValueError`. If there is no insertion block, it raises
`RuntimeError`. A result without a name hint gets a numbered name (`0`, `1`,
...). Phi nodes take their incoming pairs through `Instruction.add_incoming`.

`Context` returns one object per distinct type:

- `pointer`
- `array`
- `named_struct`
- `anonymous_struct`
- `function_type`
- the attributes `void`, `i1` ... `f64` and `label`

It also returns one object per distinct constant:

- `const_int`, which wraps the value to the type's width
- `const_float`, which rounds f32 values and rejects NaN
- `const_bool`
- `undef`

Types and constants can therefore be compared with `is`.

Each `Instruction` keeps its operand edges (`Use`) in `operands`. Each value
keeps the edges that use it in `uses`. `Value.replace_all_uses_with` points
every use at another value. `Instruction.erase_from_parent` removes an
instruction and its operand edges. `Module.struct_definitions()` returns the
`%name = type { ... }` lines of the named structs in the context.

## What the package does not do

`calir` builds and parses IR only. Beyond the individual strings that
`Value.ref`, `Value.typed_ref`, `str(IRType)` and
`Module.struct_definitions` return, it does not write a module back out as
text. The parser checks types as it reads, but there is no separate verifier
over a finished module. There are no analysis or optimisation passes, no
interpreter and no command-line tool.

## Running the tests

```
pip install .[test]
pytest
```