"""Parsing of single instructions inside a basic block."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from calir.ir import BasicBlock, ICmpPredicate, Instruction, Opcode
from calir.lexer import Token, TokenType
from calir.parser_core import ParseError, ParserBase
from calir.types import IRType, TypeKind
from calir.values import Value, ValueKind

_PREDICATES: Dict[str, ICmpPredicate] = {p.value: p for p in ICmpPredicate}


class InstructionParser(ParserBase):
    """Adds instruction parsing to the shared parser machinery."""

    def parse_instruction(self) -> Instruction:
        """Parse ``[%res: type =] <opcode> ...`` and insert it at the builder's block."""
        result_tok: Optional[Token] = None
        result_type: Optional[IRType] = None

        tok, peek = self._current, self._peek
        if tok.type is TokenType.LOCAL_IDENT and peek.type is TokenType.COLON:
            result_tok = tok
            self._advance()
            self._advance()
            result_type = self.parse_type()
            self._expect(TokenType.EQ)
        elif tok.type is TokenType.LOCAL_IDENT and peek.type is TokenType.EQ:
            raise self._error("Missing type annotation on result (expected '%name: type =')")

        inst = self._parse_operation(result_tok, result_type)

        if result_tok is not None:
            if inst.type is not result_type:
                raise self._error("Instruction result type does not match type annotation")
            if inst.type.kind is TypeKind.VOID:
                raise self._error("Cannot assign result of 'void' instruction to a variable")
            if inst.opcode is not Opcode.PHI:
                self._record_value(result_tok, inst)
        elif inst.type.kind is not TypeKind.VOID:
            raise self._error(
                "Instruction produces a value but has no assignment (expected '%res: type = ...')"
            )
        return inst

    # --- helpers ------------------------------------------------------------

    def _build(self, method: Callable[..., Instruction], *args) -> Instruction:
        try:
            return method(*args)
        except (ValueError, RuntimeError) as exc:
            raise self._error(str(exc)) from exc

    def _parse_operation(
        self, result_tok: Optional[Token], result_type: Optional[IRType]
    ) -> Instruction:
        opcode_tok = self._expect(TokenType.IDENT)
        name = result_tok.value if result_tok is not None else None
        word = opcode_tok.value

        if word == "ret":
            return self._parse_ret()
        if word == "br":
            return self._parse_br()
        if word == "add":
            return self._parse_binary("add", self.builder.add, name, result_type)
        if word == "sub":
            return self._parse_binary("sub", self.builder.sub, name, result_type)
        if word == "icmp":
            return self._parse_icmp(name, result_type)
        if word == "alloc":
            return self._parse_alloca(name, result_type)
        if word == "load":
            return self._parse_load(name, result_type)
        if word == "store":
            return self._parse_store()
        if word == "gep":
            return self._parse_gep(name, result_type)
        if word == "phi":
            return self._parse_phi(result_tok, result_type)
        if word == "call":
            return self._parse_call(name, result_type)
        raise self._error("Unknown instruction opcode")

    # --- terminators ----------------------------------------------------------

    def _parse_ret(self) -> Instruction:
        function = self.current_function
        if function is None:
            raise self._error("'ret' outside of a function")
        if self._is_ident("void"):
            self._advance()
            if function.return_type.kind is not TypeKind.VOID:
                raise self._error("Return type mismatch: expected 'void'")
            return self._build(self.builder.ret, None)

        value = self.parse_operand()
        if value.type is not function.return_type:
            raise self._error("Return value's type does not match function's return type")
        return self._build(self.builder.ret, value)

    def _expect_label(self, what: str) -> Value:
        value = self.parse_operand()
        if value.kind is not ValueKind.BASIC_BLOCK:
            raise self._error(f"Expected $label for '{what}' branch")
        return value

    def _parse_br(self) -> Instruction:
        if self._current.type is TokenType.LABEL_IDENT:
            dest = self.parse_operand()
            return self._build(self.builder.br, dest)

        cond = self.parse_operand()
        if cond.type.kind is not TypeKind.I1:
            raise self._error("Branch condition must be 'i1' type")
        self._expect(TokenType.COMMA)
        true_dest = self._expect_label("true")
        self._expect(TokenType.COMMA)
        false_dest = self._expect_label("false")
        return self._build(self.builder.cond_br, cond, true_dest, false_dest)

    # --- arithmetic -------------------------------------------------------------

    def _parse_binary(
        self,
        word: str,
        method: Callable[..., Instruction],
        name: Optional[str],
        result_type: Optional[IRType],
    ) -> Instruction:
        if result_type is None:
            raise self._error(f"'{word}' instruction must produce a result")
        lhs = self.parse_operand()
        self._expect(TokenType.COMMA)
        rhs = self.parse_operand()
        if lhs.type is not result_type or rhs.type is not result_type:
            raise self._error(f"Operands types must match result type for '{word}'")
        return self._build(method, lhs, rhs, name)

    def _parse_predicate(self) -> ICmpPredicate:
        tok = self._expect(TokenType.IDENT)
        predicate = _PREDICATES.get(tok.value)
        if predicate is None:
            raise self._error("Unknown ICMP predicate")
        return predicate

    def _parse_icmp(self, name: Optional[str], result_type: Optional[IRType]) -> Instruction:
        if result_type is None or result_type.kind is not TypeKind.I1:
            raise self._error("'icmp' must produce an 'i1' result")
        predicate = self._parse_predicate()
        lhs = self.parse_operand()
        self._expect(TokenType.COMMA)
        rhs = self.parse_operand()
        if lhs.type is not rhs.type:
            raise self._error("Operands types must match for 'icmp'")
        return self._build(self.builder.icmp, predicate, lhs, rhs, name)

    # --- memory -----------------------------------------------------------------

    def _parse_alloca(self, name: Optional[str], result_type: Optional[IRType]) -> Instruction:
        allocated = self.parse_type()
        if (
            result_type is None
            or result_type.kind is not TypeKind.PTR
            or result_type.pointee is not allocated
        ):
            raise self._error("alloca result must be a pointer to the allocated type")
        return self._build(self.builder.alloca, allocated, name)

    def _parse_load(self, name: Optional[str], result_type: Optional[IRType]) -> Instruction:
        if result_type is None:
            raise self._error("load must produce a result")
        ptr = self.parse_operand()
        if ptr.type.kind is not TypeKind.PTR or ptr.type.pointee is not result_type:
            raise self._error("load result type does not match pointer's pointee type")
        return self._build(self.builder.load, ptr, name)

    def _parse_store(self) -> Instruction:
        value = self.parse_operand()
        self._expect(TokenType.COMMA)
        ptr = self.parse_operand()
        if ptr.type.kind is not TypeKind.PTR or ptr.type.pointee is not value.type:
            raise self._error("store value type does not match pointer's pointee type")
        return self._build(self.builder.store, value, ptr)

    def _parse_gep(self, name: Optional[str], result_type: Optional[IRType]) -> Instruction:
        if result_type is None or result_type.kind is not TypeKind.PTR:
            raise self._error("gep instruction must produce a pointer result")

        inbounds = False
        if self._is_ident("inbounds"):
            inbounds = True
            self._advance()

        base = self.parse_operand()
        if base.type.kind is not TypeKind.PTR:
            raise self._error("gep base operand must be a pointer (%ptr: <type>)")
        source_type = base.type.pointee

        indices: List[Value] = []
        while self._match(TokenType.COMMA):
            index = self.parse_operand()
            if not index.type.is_integer():
                raise self._error("GEP indices must be integer types")
            indices.append(index)

        if not indices:
            raise self._error("gep must have at least one index operand")
        return self._build(self.builder.gep, source_type, base, indices, inbounds, name)

    # --- phi and call -------------------------------------------------------------

    def _parse_phi(self, result_tok: Optional[Token], result_type: Optional[IRType]) -> Instruction:
        if result_type is None:
            raise self._error("phi instruction must produce a result")
        name = result_tok.value if result_tok is not None else None
        phi = self._build(self.builder.phi, result_type, name)

        # Registered before the incoming values: they may refer to the phi itself.
        if result_tok is not None:
            self._record_value(result_tok, phi)

        if self._current.type is not TokenType.LBRACKET:
            raise self._error("phi instruction must have at least one incoming value")

        while True:
            self._expect(TokenType.LBRACKET)
            value = self.parse_operand()
            if value.type is not result_type:
                raise self._error("PHI incoming value's type does not match PHI result type")
            self._expect(TokenType.COMMA)
            block = self.parse_operand()
            if not isinstance(block, BasicBlock):
                raise self._error("Expected incoming basic block label ($name) in PHI node")
            try:
                phi.add_incoming(value, block)
            except ValueError as exc:
                raise self._error(str(exc)) from exc
            self._expect(TokenType.RBRACKET)
            if not self._match(TokenType.COMMA):
                break
        return phi

    def _parse_call(self, name: Optional[str], result_type: Optional[IRType]) -> Instruction:
        fn_ptr_type = self.parse_type()
        if fn_ptr_type.kind is not TypeKind.PTR or fn_ptr_type.pointee.kind is not TypeKind.FUNCTION:
            raise self._error(
                "Expected pointer-to-function type (e.g., '<i32(i32)>') before callee"
            )
        fn_type = fn_ptr_type.pointee

        expected_return = result_type if result_type is not None else self.context.void
        if fn_type.return_type is not expected_return:
            raise self._error("Call result type annotation does not match function's return type")

        callee_tok = self._current
        if callee_tok.type not in (TokenType.LOCAL_IDENT, TokenType.GLOBAL_IDENT):
            raise self._error("Expected callee name (%func_ptr or @func) after type")
        self._advance()
        callee = self._find_value(callee_tok)
        if callee.type is not fn_ptr_type:
            raise self._error("Callee's type does not match explicit function pointer type")

        self._expect(TokenType.LPAREN)
        params = fn_type.params
        args: List[Value] = []
        if not self._match(TokenType.RPAREN):
            while True:
                arg = self.parse_operand()
                if not fn_type.is_variadic and len(args) >= len(params):
                    raise self._error("Too many arguments")
                if len(args) < len(params) and arg.type is not params[len(args)]:
                    raise self._error("Argument type mismatch in call")
                args.append(arg)
                if self._match(TokenType.RPAREN):
                    break
                self._expect(TokenType.COMMA)

        return self._build(self.builder.call, callee, args, name)


__all__ = ["InstructionParser", "ParseError"]