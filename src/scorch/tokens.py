"""
Token types for the scorch lexer.

Tokens fall into five families (value, identifier, operator, punctuation,
keyword). Error code ranges used across the package:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Type errors
- E3xx: Name and binding errors
- E4xx: Runtime errors
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional


class TokenFamily(Enum):
    """Coarse token classification used for statement dispatch."""
    VALUE = auto()
    IDENTIFIER = auto()
    OPERATOR = auto()
    PUNCTUATION = auto()
    KEYWORD = auto()


class TokenType(Enum):
    """All token types recognized by the lexer."""

    # --- Values ---
    NUMBER = auto()             # 42, 3.14 (converted by the parser)
    STRING = auto()             # "hello", 'hello'
    BOOLEAN = auto()            # true, false

    # --- Identifiers ---
    IDENTIFIER = auto()         # user-defined names and type names

    # --- Keywords ---
    CONST = auto()              # const
    VAR = auto()                # var
    REPEAT = auto()             # repeat
    BREAK = auto()              # break
    RETURN = auto()             # return
    IF = auto()                 # if
    ELSE = auto()               # else
    STRUCT = auto()             # struct

    # --- Declaration and assignment ---
    COLON = auto()              # :
    DOUBLE_COLON = auto()       # ::  (reserved, no grammar rule)
    COLON_ASSIGN = auto()       # :=
    ASSIGN = auto()             # =

    # --- Comparison operators ---
    EQ = auto()                 # ==
    NE = auto()                 # !=
    LT = auto()                 # <
    GT = auto()                 # >
    LE = auto()                 # <=
    GE = auto()                 # >=

    # --- Logical operators ---
    AND = auto()                # &&
    OR = auto()                 # ||
    NOT = auto()                # !

    # --- Arithmetic operators ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /
    PERCENT = auto()            # %

    # --- Member access and function types ---
    DOT = auto()                # .
    ARROW = auto()              # ->
    DOUBLE_ARROW = auto()       # =>  (reserved, no grammar rule)

    # --- Delimiters ---
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    LBRACE = auto()             # {
    RBRACE = auto()             # }
    LBRACKET = auto()           # [
    RBRACKET = auto()           # ]
    COMMA = auto()              # ,
    SEMICOLON = auto()          # ;
    NEWLINE = auto()            # statement delimiter

    # --- Special ---
    EOF = auto()                # end of input


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    value: Any              # str for NUMBER/STRING/IDENTIFIER, bool for BOOLEAN
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    @property
    def family(self) -> TokenFamily:
        return TOKEN_FAMILIES.get(self.type, TokenFamily.PUNCTUATION)

    def __str__(self) -> str:
        if self.type in (TokenType.NUMBER, TokenType.STRING,
                         TokenType.BOOLEAN, TokenType.IDENTIFIER):
            return f"{self.type.name}({self.value!r})"
        if self.type in (TokenType.NEWLINE, TokenType.EOF):
            return self.type.name
        return f"'{self.lexeme}'"


KEYWORDS: dict[str, TokenType] = {
    "const": TokenType.CONST,
    "var": TokenType.VAR,
    "repeat": TokenType.REPEAT,
    "break": TokenType.BREAK,
    "return": TokenType.RETURN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "struct": TokenType.STRUCT,
    # Boolean literals
    "true": TokenType.BOOLEAN,
    "false": TokenType.BOOLEAN,
}


# Registered operator and punctuation lexemes. The lexer picks the longest
# entry that prefixes the remaining input. "::" and "=>" are reserved: they
# lex as single tokens but no grammar rule accepts them.
OPERATORS: dict[str, TokenType] = {
    "::": TokenType.DOUBLE_COLON,
    ":=": TokenType.COLON_ASSIGN,
    ":": TokenType.COLON,
    "==": TokenType.EQ,
    "=>": TokenType.DOUBLE_ARROW,
    "=": TokenType.ASSIGN,
    "!=": TokenType.NE,
    "!": TokenType.NOT,
    "<=": TokenType.LE,
    "<": TokenType.LT,
    ">=": TokenType.GE,
    ">": TokenType.GT,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "->": TokenType.ARROW,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    ".": TokenType.DOT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ";": TokenType.SEMICOLON,
}

MAX_OPERATOR_LENGTH = max(len(op) for op in OPERATORS)

PUNCTUATION_TYPES = frozenset({
    TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACE, TokenType.RBRACE,
    TokenType.LBRACKET, TokenType.RBRACKET, TokenType.COMMA,
    TokenType.SEMICOLON, TokenType.NEWLINE, TokenType.EOF,
})

TOKEN_FAMILIES: dict[TokenType, TokenFamily] = {
    TokenType.NUMBER: TokenFamily.VALUE,
    TokenType.STRING: TokenFamily.VALUE,
    TokenType.BOOLEAN: TokenFamily.VALUE,
    TokenType.IDENTIFIER: TokenFamily.IDENTIFIER,
}
TOKEN_FAMILIES.update({t: TokenFamily.KEYWORD for t in KEYWORDS.values()
                       if t is not TokenType.BOOLEAN})
TOKEN_FAMILIES.update({t: TokenFamily.OPERATOR for t in OPERATORS.values()
                       if t not in PUNCTUATION_TYPES})


OPERATOR_SYMBOLS: dict[TokenType, str] = {t: s for s, t in OPERATORS.items()}


def operator_symbol(token_type: TokenType) -> str:
    """Source spelling of an operator token type, for messages."""
    return OPERATOR_SYMBOLS.get(token_type, token_type.name)
