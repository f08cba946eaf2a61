"""Shared machinery of the IR text parser: tokens, symbols, types and operands."""

from __future__ import annotations

from typing import Dict, List, Optional

from calir.context import Context
from calir.ir import BasicBlock, Builder, Function, Module
from calir.lexer import Lexer, Token, TokenType
from calir.types import IRType, TypeKind
from calir.values import Value, ValueKind

_TOKEN_NAMES = {
    TokenType.EOF: "EOF",
    TokenType.ILLEGAL: "Illegal",
    TokenType.IDENT: "Identifier",
    TokenType.GLOBAL_IDENT: "GlobalIdentifier (@...)",
    TokenType.LOCAL_IDENT: "LocalIdentifier (%...)",
    TokenType.INTEGER_LITERAL: "Integer",
    TokenType.EQ: "'='",
    TokenType.COMMA: "','",
    TokenType.COLON: "':'",
    TokenType.LBRACE: "'{'",
    TokenType.RBRACE: "'}'",
    TokenType.LPAREN: "'('",
    TokenType.RPAREN: "')'",
}

_PRIMITIVE_NAMES = ("void", "i1", "i8", "i16", "i32", "i64", "f32", "f64")


def _token_name(kind: TokenType) -> str:
    return _TOKEN_NAMES.get(kind, "Unknown Token")


class ParseError(Exception):
    """A syntax or consistency error in IR text."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(f"Parse Error (Line {line}): {message}")
        self.message = message
        self.line = line


class ParserBase:
    """Token handling, symbol tables, type parsing and operand parsing."""

    def __init__(self, context: Context, source: str) -> None:
        self.context = context
        self.lexer = Lexer(source)
        self.module: Optional[Module] = None
        self.builder = Builder(context)
        self.current_function: Optional[Function] = None
        self.global_values: Dict[str, Value] = {}
        self.local_values: Optional[Dict[str, Value]] = None

    # --- token helpers ----------------------------------------------------

    @property
    def _current(self) -> Token:
        return self.lexer.current

    @property
    def _peek(self) -> Token:
        return self.lexer.peek

    def _error(self, message: str) -> ParseError:
        return ParseError(message, self.lexer.current.line)

    def _advance(self) -> Token:
        tok = self.lexer.current
        self.lexer.advance()
        return tok

    def _match(self, kind: TokenType) -> bool:
        return self.lexer.eat(kind)

    def _expect(self, kind: TokenType) -> Token:
        tok = self.lexer.current
        if not self._match(kind):
            raise self._error(
                f"Expected {_token_name(kind)}, but got {_token_name(tok.type)}"
            )
        return tok

    def _is_ident(self, word: str) -> bool:
        tok = self.lexer.current
        return tok.type is TokenType.IDENT and tok.value == word

    def _expect_ident(self, word: str) -> None:
        tok = self.lexer.current
        if self._is_ident(word):
            self._advance()
            return
        got = tok.value if tok.type is TokenType.IDENT else _token_name(tok.type)
        raise self._error(f"Expected identifier '{word}', but got '{got}'")

    # --- symbol tables ----------------------------------------------------

    @staticmethod
    def _sigil(tok: Token) -> str:
        return "@" if tok.type is TokenType.GLOBAL_IDENT else "%"

    def _find_value(self, tok: Token) -> Value:
        name = tok.value
        if tok.type is TokenType.GLOBAL_IDENT:
            found = self.global_values.get(name)
        else:
            found = self.local_values.get(name) if self.local_values is not None else None
        if found is None:
            raise self._error(f"Use of undefined value '{self._sigil(tok)}{name}'")
        return found

    def _record_value(self, tok: Token, value: Value) -> None:
        table = self.global_values if tok.type is TokenType.GLOBAL_IDENT else self.local_values
        if table is None:
            raise self._error("Attempted to define a local value outside a function")
        name = tok.value
        if name in table:
            raise self._error(f"Redefinition of value '{self._sigil(tok)}{name}'")
        value.name = name
        table[name] = value

    # --- types --------------------------------------------------------------

    def parse_type(self) -> IRType:
        """Parse a type, including a trailing parameter list for function types."""
        tok = self._current
        kind = tok.type
        if kind is TokenType.LT:
            self._advance()
            pointee = self.parse_type()
            self._expect(TokenType.GT)
            base = self.context.pointer(pointee)
        elif kind is TokenType.IDENT:
            if tok.value not in _PRIMITIVE_NAMES:
                raise self._error(f"Unknown type identifier '{tok.value}'")
            base = getattr(self.context, tok.value)
            self._advance()
        elif kind is TokenType.LBRACKET:
            self._advance()
            base = self._parse_array_type()
        elif kind is TokenType.LBRACE:
            self._advance()
            base = self._parse_struct_type()
        elif kind is TokenType.LOCAL_IDENT:
            self._advance()
            found = self.context.lookup_struct(tok.value)
            if found is None:
                raise self._error(f"Use of undefined named type '%{tok.value}'")
            base = found
        else:
            raise self._error("Expected a type signature")

        if self._current.type is TokenType.LPAREN:
            return self._parse_function_type(base)
        return base

    def _parse_array_type(self) -> IRType:
        count_tok = self._expect(TokenType.INTEGER_LITERAL)
        if count_tok.value < 0:
            raise self._error("Array size cannot be negative")
        self._expect_ident("x")
        element = self.parse_type()
        self._expect(TokenType.RBRACKET)
        return self.context.array(element, count_tok.value)

    def _parse_struct_type(self) -> IRType:
        if self._match(TokenType.RBRACE):
            return self.context.anonymous_struct(())
        members: List[IRType] = []
        while True:
            members.append(self.parse_type())
            if self._match(TokenType.RBRACE):
                break
            self._expect(TokenType.COMMA)
        return self.context.anonymous_struct(members)

    def _parse_function_type(self, return_type: IRType) -> IRType:
        self._expect(TokenType.LPAREN)
        params: List[IRType] = []
        is_variadic = False
        if self._match(TokenType.RPAREN):
            return self.context.function_type(return_type, params, False)
        while True:
            if self._match(TokenType.ELLIPSIS):
                is_variadic = True
                self._expect(TokenType.RPAREN)
                break
            params.append(self.parse_type())
            if self._match(TokenType.RPAREN):
                break
            self._expect(TokenType.COMMA)
        return self.context.function_type(return_type, params, is_variadic)

    # --- operands -----------------------------------------------------------

    def _label_operand(self, name: str) -> Value:
        if self.local_values is None or self.current_function is None:
            raise self._error("Label reference outside a function")
        found = self.local_values.get(name)
        if found is None:
            found = BasicBlock(self.current_function, name)
            self.local_values[name] = found
        if found.kind is not ValueKind.BASIC_BLOCK:
            raise self._error("Expected a basic block label ($name)")
        return found

    def _constant_from_token(self, tok: Token, type: IRType) -> Value:
        ctx = self.context
        if tok.type is TokenType.INTEGER_LITERAL:
            if not type.is_integer():
                raise self._error("Integer literal provided for non-integer type")
            return ctx.const_int(type, tok.value)
        if tok.type is TokenType.FLOAT_LITERAL:
            if not type.is_float():
                raise self._error("Float literal provided for non-float type")
            return ctx.const_float(type, tok.value)
        word = tok.value
        if word in ("true", "false"):
            if type.kind is not TypeKind.I1:
                raise self._error(f"'{word}' must have type 'i1'")
            return ctx.const_bool(word == "true")
        if word == "undef":
            return ctx.undef(type)
        if word == "null":
            if type.kind is not TypeKind.PTR:
                raise self._error("'null' must have 'ptr' type")
            return ctx.undef(type)
        raise self._error("Unexpected identifier as constant value")

    def parse_operand(self) -> Value:
        """Parse ``%v: type``, ``@g: type``, ``const: type`` or ``$label``."""
        tok = self._advance()
        if tok.type is TokenType.LABEL_IDENT:
            return self._label_operand(tok.value)

        self._expect(TokenType.COLON)
        type = self.parse_type()

        if tok.type in (TokenType.LOCAL_IDENT, TokenType.GLOBAL_IDENT):
            found = self._find_value(tok)
            if found.type is not type:
                raise self._error(
                    "Variable's type annotation does not match its definition type"
                )
            return found
        if tok.type in (TokenType.INTEGER_LITERAL, TokenType.FLOAT_LITERAL, TokenType.IDENT):
            return self._constant_from_token(tok, type)
        raise self._error("Unexpected token as operand value")