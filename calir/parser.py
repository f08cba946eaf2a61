"""Top-level parsing of IR text into a module."""

from __future__ import annotations

from typing import List, Optional

from calir.context import Context
from calir.ir import BasicBlock, Function, GlobalVariable, Module
from calir.lexer import TokenType
from calir.parser_core import ParseError
from calir.parser_instructions import InstructionParser
from calir.types import IRType, TypeKind
from calir.values import Value, ValueKind

DEFAULT_MODULE_NAME = "parsed_module"


class Parser(InstructionParser):
    """Parses a whole module: header, type definitions, globals and functions."""

    def parse_module(self) -> Module:
        """Parse the complete source and return the module it describes."""
        if self.module is not None:
            raise RuntimeError("this parser has already produced a module")
        name = self._parse_header()
        self.module = Module(self.context, name)
        while self._current.type is not TokenType.EOF:
            self._parse_top_level_element()
        return self.module

    # --- header -------------------------------------------------------------

    def _parse_header(self) -> str:
        if not self._is_ident("module"):
            return DEFAULT_MODULE_NAME
        self._advance()
        if self._current.type is not TokenType.EQ:
            raise self._error("Expected '=' after 'module'")
        self._advance()
        tok = self._current
        if tok.type is not TokenType.STRING_LITERAL:
            raise self._error(
                "Expected string literal (e.g., \"foo.c\") after 'module ='"
            )
        self._advance()
        return tok.value

    # --- top level ------------------------------------------------------------

    def _parse_top_level_element(self) -> None:
        tok = self._current
        if tok.type is TokenType.IDENT:
            if tok.value == "define":
                self._parse_function_definition()
            elif tok.value == "declare":
                self._parse_function_declaration()
            else:
                raise self._error("Expected 'define' or 'declare' at top level")
        elif tok.type is TokenType.GLOBAL_IDENT:
            self._parse_global_variable()
        elif tok.type is TokenType.LOCAL_IDENT:
            self._parse_type_definition()
        else:
            raise self._error("Unexpected token at top level")

    def _parse_function_header(self) -> Function:
        self._advance()  # 'define' or 'declare'
        return_type = self.parse_type()
        name_tok = self._expect(TokenType.GLOBAL_IDENT)
        function = Function(self.module, name_tok.value, return_type)
        self._record_value(name_tok, function)
        return function

    def _parse_function_definition(self) -> None:
        function = self._parse_function_header()
        self.current_function = function
        self.local_values = {}

        self._expect(TokenType.LPAREN)
        is_variadic = False
        if not self._match(TokenType.RPAREN):
            while True:
                if self._match(TokenType.ELLIPSIS):
                    is_variadic = True
                    self._expect(TokenType.RPAREN)
                    break
                if self._current.type is not TokenType.LOCAL_IDENT:
                    raise self._error(
                        "Expected argument name (e.g., %a) in parameter list"
                    )
                arg_tok = self._advance()
                self._expect(TokenType.COLON)
                arg_type = self.parse_type()
                argument = function.add_argument(arg_type, arg_tok.value)
                self._record_value(arg_tok, argument)
                if self._match(TokenType.RPAREN):
                    break
                self._expect(TokenType.COMMA)
        function.finalize_signature(is_variadic)

        self._expect(TokenType.LBRACE)
        while self._current.type not in (TokenType.RBRACE, TokenType.EOF):
            if self._current.type is TokenType.LABEL_IDENT and self._peek.type is TokenType.COLON:
                self._parse_basic_block()
            else:
                raise self._error("Expected basic block label (e.g., $entry:)")
        self._expect(TokenType.RBRACE)

        self._check_labels_defined()
        self.current_function = None
        self.local_values = None
        self.builder.set_insertion_point(None)

    def _check_labels_defined(self) -> None:
        for value in self.local_values.values():
            if isinstance(value, BasicBlock) and not value.is_attached:
                raise self._error(f"Use of undefined basic block label '${value.name}'")

    def _parse_function_declaration(self) -> None:
        function = self._parse_function_header()
        self._expect(TokenType.LPAREN)
        is_variadic = False
        if not self._match(TokenType.RPAREN):
            while True:
                if self._match(TokenType.ELLIPSIS):
                    is_variadic = True
                    self._expect(TokenType.RPAREN)
                    break
                arg_name: Optional[str] = None
                if self._current.type is TokenType.LOCAL_IDENT:
                    arg_name = self._advance().value
                    self._expect(TokenType.COLON)
                arg_type = self.parse_type()
                function.add_argument(arg_type, arg_name)
                if self._match(TokenType.RPAREN):
                    break
                self._expect(TokenType.COMMA)
        function.finalize_signature(is_variadic)

    def _parse_type_definition(self) -> None:
        name_tok = self._expect(TokenType.LOCAL_IDENT)
        self._expect(TokenType.EQ)
        self._expect_ident("type")
        if not self._match(TokenType.LBRACE):
            raise self._error("Expected struct body '{...}' after 'type'")
        members: List[IRType] = []
        if not self._match(TokenType.RBRACE):
            while True:
                members.append(self.parse_type())
                if self._match(TokenType.RBRACE):
                    break
                self._expect(TokenType.COMMA)
        self.context.named_struct(name_tok.value, members)

    def _parse_global_variable(self) -> None:
        name_tok = self._expect(TokenType.GLOBAL_IDENT)
        self._expect(TokenType.COLON)
        ptr_type = self.parse_type()
        if ptr_type.kind is not TypeKind.PTR:
            raise self._error(
                "Global variable must have a pointer type annotation (e.g., '@g: <i32> = ...')"
            )
        allocated_type = ptr_type.pointee
        self._expect(TokenType.EQ)
        self._expect_ident("global")

        initializer: Optional[Value] = None
        if self._is_ident("zeroinitializer"):
            self._advance()
        else:
            initializer = self.parse_operand()
            if initializer.kind is not ValueKind.CONSTANT:
                raise self._error("Global initializer must be a constant operand")
            if initializer.type is not allocated_type:
                raise self._error("Global initializer's type does not match allocated type")

        variable = GlobalVariable(self.module, name_tok.value, allocated_type, initializer)
        if variable.type is not ptr_type:
            raise self._error("Internal: GVar creation type mismatch")
        self._record_value(name_tok, variable)

    # --- function bodies ----------------------------------------------------------

    def _parse_basic_block(self) -> None:
        function = self.current_function
        if function is None:
            raise self._error("Basic block definition found outside of a function")
        name_tok = self._expect(TokenType.LABEL_IDENT)
        self._expect(TokenType.COLON)
        name = name_tok.value

        existing = self.local_values.get(name)
        if existing is not None:
            if not isinstance(existing, BasicBlock):
                raise self._error("Label name conflicts with an existing value")
            if existing.is_attached:
                raise self._error(f"Redefinition of basic block label '${name}'")
            block = existing
        else:
            block = BasicBlock(function, name)
            self.local_values[name] = block

        function.append_block(block)
        self.builder.set_insertion_point(block)

        while True:
            tok = self._current
            if tok.type is TokenType.RBRACE:
                return
            if tok.type is TokenType.LABEL_IDENT and self._peek.type is TokenType.COLON:
                return
            inst = self.parse_instruction()
            if inst.is_terminator:
                if self._current.type not in (TokenType.RBRACE, TokenType.LABEL_IDENT):
                    raise self._error("Instructions are not allowed after a terminator")
                return


def parse_module(context: Context, source: str) -> Module:
    """Parse IR text into a new module of ``context``; raises ParseError on bad input."""
    return Parser(context, source).parse_module()


__all__ = ["Parser", "ParseError", "parse_module", "DEFAULT_MODULE_NAME"]