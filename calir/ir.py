"""Modules, functions, basic blocks, instructions and the builder that makes them."""

from __future__ import annotations

import enum
from typing import Iterable, List, Optional, Sequence, Tuple

from calir.context import Context
from calir.types import IRType, TypeKind
from calir.values import Constant, ConstantKind, Use, Value, ValueKind


class Module:
    """A translation unit: the root container of functions and globals."""

    def __init__(self, context: Context, name: str) -> None:
        self.context = context
        self.name = name
        self.functions: List[Function] = []
        self.globals: List[GlobalVariable] = []

    def struct_definitions(self) -> List[str]:
        """One ``%name = type { ... }`` line per named struct in the context."""
        lines = []
        for struct_type in self.context.named_structs.values():
            if struct_type.kind is TypeKind.STRUCT and struct_type.name:
                members = ", ".join(str(m) for m in struct_type.members)
                lines.append(f"%{struct_type.name} = type {{ {members} }}")
        return lines

    def get_function(self, name: str) -> Optional["Function"]:
        """The function called ``name``, or None."""
        return next((f for f in self.functions if f.name == name), None)

    def get_global(self, name: str) -> Optional["GlobalVariable"]:
        """The global variable called ``name``, or None."""
        return next((g for g in self.globals if g.name == name), None)

    def __repr__(self) -> str:
        return f"Module({self.name!r})"


class Function(Value):
    """A function. As a value it is the function's address."""

    def __init__(self, module: Module, name: str, return_type: IRType) -> None:
        ctx = module.context
        provisional = ctx.function_type(return_type, (), False)
        super().__init__(ValueKind.FUNCTION, ctx.pointer(provisional), name)
        self.parent = module
        self.return_type = return_type
        self.function_type = provisional
        self.arguments: List[Argument] = []
        self.blocks: List[BasicBlock] = []
        self._finalized = False
        module.functions.append(self)

    @property
    def context(self) -> Context:
        return self.parent.context

    @property
    def is_declaration(self) -> bool:
        """True while the function has no body."""
        return not self.blocks

    def add_argument(self, type: IRType, name: Optional[str] = None) -> "Argument":
        """Add a parameter to a function whose signature is not yet final."""
        if self._finalized:
            raise RuntimeError(f"signature of @{self.name} is already finalized")
        arg = Argument(self, type, name)
        self.arguments.append(arg)
        return arg

    def finalize_signature(self, is_variadic: bool = False) -> None:
        """Fix the function type from the return type and the arguments."""
        ctx = self.context
        self.function_type = ctx.function_type(
            self.return_type, [a.type for a in self.arguments], is_variadic
        )
        self.type = ctx.pointer(self.function_type)
        self._finalized = True

    def append_block(self, block: "BasicBlock") -> None:
        """Attach ``block`` at the end of this function's body."""
        if block.parent is not self:
            raise ValueError(f"block ${block.name} belongs to another function")
        if block.is_attached:
            raise ValueError(f"block ${block.name} is already in the function")
        self.blocks.append(block)
        block.is_attached = True


class Argument(Value):
    """A function parameter."""

    def __init__(self, function: Function, type: IRType, name: Optional[str] = None) -> None:
        super().__init__(ValueKind.ARGUMENT, type, name)
        self.parent = function


class BasicBlock(Value):
    """A basic block. As a value it is the block's label."""

    def __init__(self, function: Function, name: str) -> None:
        super().__init__(ValueKind.BASIC_BLOCK, function.context.label, name)
        self.parent = function
        self.instructions: List[Instruction] = []
        self.is_attached = False

    @property
    def terminator(self) -> Optional["Instruction"]:
        """The last instruction if it ends the block, otherwise None."""
        if self.instructions and self.instructions[-1].is_terminator:
            return self.instructions[-1]
        return None


class GlobalVariable(Value):
    """A module-level variable. As a value it is the variable's address."""

    def __init__(
        self,
        module: Module,
        name: str,
        allocated_type: IRType,
        initializer: Optional[Value] = None,
    ) -> None:
        if initializer is not None and initializer.kind is not ValueKind.CONSTANT:
            raise ValueError("a global initializer must be a constant")
        super().__init__(ValueKind.GLOBAL, module.context.pointer(allocated_type), name)
        self.parent = module
        self.allocated_type = allocated_type
        self.initializer = initializer
        module.globals.append(self)


class Opcode(enum.Enum):
    """Instruction opcodes."""

    RET = "ret"
    BR = "br"
    COND_BR = "cond_br"
    ADD = "add"
    SUB = "sub"
    ICMP = "icmp"
    ALLOCA = "alloca"
    LOAD = "load"
    STORE = "store"
    PHI = "phi"
    GEP = "gep"
    CALL = "call"


_TERMINATORS = frozenset({Opcode.RET, Opcode.BR, Opcode.COND_BR})


class ICmpPredicate(enum.Enum):
    """Integer comparison predicates."""

    EQ = "eq"
    NE = "ne"
    UGT = "ugt"
    UGE = "uge"
    ULT = "ult"
    ULE = "ule"
    SGT = "sgt"
    SGE = "sge"
    SLT = "slt"
    SLE = "sle"


class Instruction(Value):
    """An instruction. As a value it is the instruction's result."""

    def __init__(
        self,
        opcode: Opcode,
        type: IRType,
        name: Optional[str] = None,
        *,
        predicate: Optional[ICmpPredicate] = None,
        source_type: Optional[IRType] = None,
        inbounds: bool = False,
    ) -> None:
        super().__init__(ValueKind.INSTRUCTION, type, name)
        self.opcode = opcode
        self.operands: List[Use] = []
        self.parent: Optional[BasicBlock] = None
        self.predicate = predicate
        self.source_type = source_type
        self.inbounds = inbounds

    @property
    def operand_values(self) -> List[Value]:
        """The values this instruction uses, in order."""
        return [use.value for use in self.operands]

    @property
    def is_terminator(self) -> bool:
        return self.opcode in _TERMINATORS

    @property
    def incoming(self) -> List[Tuple[Value, "BasicBlock"]]:
        """The (value, block) pairs of a phi node."""
        values = self.operand_values
        return list(zip(values[0::2], values[1::2]))

    def add_incoming(self, value: Value, block: BasicBlock) -> None:
        """Add a ``[value, block]`` pair to this phi node."""
        if self.opcode is not Opcode.PHI:
            raise ValueError("incoming values can only be added to a phi node")
        if block.kind is not ValueKind.BASIC_BLOCK:
            raise ValueError("incoming block must be a basic block")
        if value.type is not self.type:
            raise ValueError("phi incoming value's type does not match the phi type")
        Use(self, value)
        Use(self, block)

    def erase_from_parent(self) -> None:
        """Drop this instruction's operand edges and remove it from its block."""
        for use in list(self.operands):
            use.unlink()
        if self.parent is not None:
            self.parent.instructions.remove(self)
            self.parent = None


class Builder:
    """Creates instructions at the end of a chosen basic block."""

    def __init__(self, context: Context) -> None:
        self.context = context
        self.insertion_point: Optional[BasicBlock] = None
        self.next_temp_reg_id = 0

    def set_insertion_point(self, block: Optional[BasicBlock]) -> None:
        self.insertion_point = block

    # --- helpers ----------------------------------------------------------

    def _name(self, hint: Optional[str]) -> str:
        if hint:
            return hint
        name = str(self.next_temp_reg_id)
        self.next_temp_reg_id += 1
        return name

    def _insert(self, inst: Instruction, operands: Iterable[Value]) -> Instruction:
        block = self.insertion_point
        for operand in operands:
            Use(inst, operand)
        inst.parent = block
        block.instructions.append(inst)
        return inst

    def _require_block(self) -> None:
        if self.insertion_point is None:
            raise RuntimeError("builder has no insertion point")

    @staticmethod
    def _require_label(value: Value, what: str) -> None:
        if value.kind is not ValueKind.BASIC_BLOCK:
            raise ValueError(f"{what} must be a basic block label")

    # --- terminators ------------------------------------------------------

    def ret(self, value: Optional[Value] = None) -> Instruction:
        """``ret <value>`` or ``ret void``."""
        self._require_block()
        inst = Instruction(Opcode.RET, self.context.void)
        return self._insert(inst, [value] if value is not None else [])

    def br(self, target: Value) -> Instruction:
        """``br $target``."""
        self._require_block()
        self._require_label(target, "branch target")
        return self._insert(Instruction(Opcode.BR, self.context.void), [target])

    def cond_br(self, cond: Value, true_block: Value, false_block: Value) -> Instruction:
        """``br %cond, $true, $false``."""
        self._require_block()
        if cond.type.kind is not TypeKind.I1:
            raise ValueError("branch condition must be of type i1")
        self._require_label(true_block, "true target")
        self._require_label(false_block, "false target")
        inst = Instruction(Opcode.COND_BR, self.context.void)
        return self._insert(inst, [cond, true_block, false_block])

    # --- arithmetic -------------------------------------------------------

    def _binary(self, opcode: Opcode, lhs: Value, rhs: Value, name: Optional[str]) -> Instruction:
        self._require_block()
        if lhs.type is not rhs.type:
            raise ValueError(f"'{opcode.value}' operands must have the same type")
        inst = Instruction(opcode, lhs.type, self._name(name))
        return self._insert(inst, [lhs, rhs])

    def add(self, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        return self._binary(Opcode.ADD, lhs, rhs, name)

    def sub(self, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        return self._binary(Opcode.SUB, lhs, rhs, name)

    def icmp(
        self, predicate: ICmpPredicate, lhs: Value, rhs: Value, name: Optional[str] = None
    ) -> Instruction:
        self._require_block()
        if lhs.type is not rhs.type:
            raise ValueError("'icmp' operands must have the same type")
        inst = Instruction(Opcode.ICMP, self.context.i1, self._name(name), predicate=predicate)
        return self._insert(inst, [lhs, rhs])

    # --- memory -----------------------------------------------------------

    def alloca(self, allocated_type: IRType, name: Optional[str] = None) -> Instruction:
        self._require_block()
        inst = Instruction(
            Opcode.ALLOCA,
            self.context.pointer(allocated_type),
            self._name(name),
            source_type=allocated_type,
        )
        return self._insert(inst, [])

    def load(self, ptr: Value, name: Optional[str] = None) -> Instruction:
        self._require_block()
        if ptr.type.kind is not TypeKind.PTR:
            raise ValueError("load needs a pointer operand")
        inst = Instruction(Opcode.LOAD, ptr.type.pointee, self._name(name))
        return self._insert(inst, [ptr])

    def store(self, value: Value, ptr: Value) -> Instruction:
        self._require_block()
        if ptr.type.kind is not TypeKind.PTR or ptr.type.pointee is not value.type:
            raise ValueError("store value type does not match the pointer's pointee type")
        return self._insert(Instruction(Opcode.STORE, self.context.void), [value, ptr])

    def _gep_result_type(self, source_type: IRType, indices: Sequence[Value]) -> IRType:
        current = source_type
        for index in indices[1:]:
            if current.kind is TypeKind.ARRAY:
                current = current.element_type
            elif current.kind is TypeKind.STRUCT:
                if not (isinstance(index, Constant) and index.const_kind is ConstantKind.INT):
                    raise ValueError("struct indices in gep must be integer constants")
                if not 0 <= index.value < len(current.members):
                    raise ValueError(f"struct index {index.value} out of range for {current}")
                current = current.members[index.value]
            else:
                raise ValueError(f"cannot index into type {current}")
        return self.context.pointer(current)

    def gep(
        self,
        source_type: IRType,
        base: Value,
        indices: Sequence[Value],
        inbounds: bool = False,
        name: Optional[str] = None,
    ) -> Instruction:
        self._require_block()
        indices = list(indices)
        if base.type.kind is not TypeKind.PTR:
            raise ValueError("gep base must be a pointer")
        if not indices:
            raise ValueError("gep needs at least one index")
        if not all(i.type.is_integer() for i in indices):
            raise ValueError("gep indices must be integers")
        result_type = self._gep_result_type(source_type, indices)
        inst = Instruction(
            Opcode.GEP,
            result_type,
            self._name(name),
            source_type=source_type,
            inbounds=inbounds,
        )
        return self._insert(inst, [base, *indices])

    # --- phi and call -----------------------------------------------------

    def phi(self, type: IRType, name: Optional[str] = None) -> Instruction:
        self._require_block()
        return self._insert(Instruction(Opcode.PHI, type, self._name(name)), [])

    def call(self, callee: Value, args: Sequence[Value], name: Optional[str] = None) -> Instruction:
        self._require_block()
        if callee.type.kind is not TypeKind.PTR or callee.type.pointee.kind is not TypeKind.FUNCTION:
            raise ValueError("callee must be a pointer to a function type")
        fn_type = callee.type.pointee
        args = list(args)
        params = fn_type.params
        if len(args) < len(params):
            raise ValueError("too few arguments in call")
        if len(args) > len(params) and not fn_type.is_variadic:
            raise ValueError("too many arguments in call")
        for arg, param in zip(args, params):
            if arg.type is not param:
                raise ValueError("argument type mismatch in call")
        ret = fn_type.return_type
        result_name = None if ret.kind is TypeKind.VOID else self._name(name)
        inst = Instruction(Opcode.CALL, ret, result_name)
        return self._insert(inst, [callee, *args])