"""Tokenizer for the textual IR format."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional, Union


class TokenType(enum.Enum):
    """Kinds of lexical tokens."""

    ILLEGAL = enum.auto()
    EOF = enum.auto()
    IDENT = enum.auto()
    GLOBAL_IDENT = enum.auto()
    LOCAL_IDENT = enum.auto()
    LABEL_IDENT = enum.auto()
    INTEGER_LITERAL = enum.auto()
    FLOAT_LITERAL = enum.auto()
    STRING_LITERAL = enum.auto()
    EQ = enum.auto()
    COMMA = enum.auto()
    COLON = enum.auto()
    LBRACE = enum.auto()
    RBRACE = enum.auto()
    LBRACKET = enum.auto()
    RBRACKET = enum.auto()
    LPAREN = enum.auto()
    RPAREN = enum.auto()
    LT = enum.auto()
    GT = enum.auto()
    ELLIPSIS = enum.auto()
    SEMICOLON = enum.auto()


@dataclass(frozen=True)
class Token:
    """A token with its source line and, where it has one, its value."""

    type: TokenType
    line: int
    value: Union[str, int, float, None] = None


_PUNCTUATION = {
    "=": TokenType.EQ,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "<": TokenType.LT,
    ">": TokenType.GT,
}

_SIGILS = {
    "@": TokenType.GLOBAL_IDENT,
    "%": TokenType.LOCAL_IDENT,
    "$": TokenType.LABEL_IDENT,
}

_END = "\0"


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_ident_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == "_")


def _is_ident_continue(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c in "_.")


def _wrap_i64(value: int) -> int:
    value &= (1 << 64) - 1
    return value - (1 << 64) if value >= (1 << 63) else value


class Lexer:
    """A tokenizer with one token of lookahead beyond the current one."""

    def __init__(self, source: str) -> None:
        # A NUL character ends the input.
        self._src = source.split(_END, 1)[0]
        self._pos = 0
        self.line = 1
        self.current: Token = self._scan()
        self.peek: Token = self._scan()

    # --- character helpers -------------------------------------------

    def _char(self, offset: int = 0) -> str:
        i = self._pos + offset
        return self._src[i] if i < len(self._src) else _END

    def _bump(self) -> str:
        c = self._char()
        if c != _END:
            self._pos += 1
        return c

    def _skip_whitespace(self) -> None:
        while True:
            c = self._char()
            if c in " \t\r":
                self._bump()
            elif c == "\n":
                self._bump()
                self.line += 1
            elif c == ";":
                while self._char() not in ("\n", _END):
                    self._bump()
            else:
                return

    # --- scanners -----------------------------------------------------

    def _scan_word(self) -> str:
        start = self._pos
        while _is_ident_continue(self._char()):
            self._bump()
        return self._src[start:self._pos]

    def _scan_number(self, line: int) -> Token:
        negative = False
        if self._char() == "-":
            negative = True
            self._bump()
        int_part = 0
        while _is_digit(self._char()):
            int_part = _wrap_i64(int_part * 10 + int(self._bump()))

        value: Union[int, float]
        if self._char() == "." and _is_digit(self._char(1)):
            self._bump()
            frac = 0.0
            div = 10.0
            while _is_digit(self._char()):
                frac += int(self._bump()) / div
                div *= 10.0
            result = float(int_part) + frac
            value = -result if negative else result
            kind = TokenType.FLOAT_LITERAL
        else:
            value = _wrap_i64(-int_part) if negative else int_part
            kind = TokenType.INTEGER_LITERAL

        if _is_ident_start(self._char()):
            return Token(TokenType.ILLEGAL, line)
        return Token(kind, line, value)

    def _scan_string(self, line: int) -> Token:
        start = self._pos
        while self._char() not in ('"', _END):
            self._bump()
        if self._char() == _END:
            return Token(TokenType.ILLEGAL, line)
        text = self._src[start:self._pos]
        self._bump()
        return Token(TokenType.STRING_LITERAL, line, text)

    def _scan(self) -> Token:
        self._skip_whitespace()
        line = self.line
        c = self._bump()

        if c == _END:
            return Token(TokenType.EOF, line)
        if c in _PUNCTUATION:
            return Token(_PUNCTUATION[c], line)
        if c == ".":
            if self._char() == "." and self._char(1) == ".":
                self._bump()
                self._bump()
                return Token(TokenType.ELLIPSIS, line)
            return Token(TokenType.ILLEGAL, line)
        if c in _SIGILS:
            if not _is_ident_continue(self._char()):
                return Token(TokenType.ILLEGAL, line)
            return Token(_SIGILS[c], line, self._scan_word())
        if c == '"':
            return self._scan_string(line)
        if _is_ident_start(c):
            self._pos -= 1
            return Token(TokenType.IDENT, line, self._scan_word())
        if _is_digit(c) or (c == "-" and _is_digit(self._char())):
            self._pos -= 1
            return self._scan_number(line)
        return Token(TokenType.ILLEGAL, line)

    # --- public API ---------------------------------------------------

    def advance(self) -> None:
        """Move the lookahead token into the current slot and scan a new one."""
        self.current = self.peek
        if self.current.type is not TokenType.EOF:
            self.peek = self._scan()

    def eat(self, expected: TokenType) -> bool:
        """Consume the current token if it has the expected type."""
        if self.current.type is not expected:
            return False
        self.advance()
        return True


def tokenize(source: str) -> List[Token]:
    """Return every token of ``source``, ending with the EOF token."""
    lexer = Lexer(source)
    tokens: List[Token] = [lexer.current]
    while lexer.current.type is not TokenType.EOF:
        lexer.advance()
        tokens.append(lexer.current)
    return tokens


def token_value(token: Token) -> Optional[Union[str, int, float]]:
    """The value carried by a token, if any."""
    return token.value