"""A small SSA intermediate representation: uniqued types and constants, a builder and a text parser."""

__version__ = "0.1.0"

__all__ = [
    "types",
    "lexer",
    "values",
    "context",
    "ir",
    "parser_core",
    "parser_instructions",
    "parser",
]