"""Tokenizer for Thrift (.thrift) files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


class ThriftTokenType(Enum):
    # Keywords
    INCLUDE = auto()
    CPP_INCLUDE = auto()
    NAMESPACE = auto()
    CONST = auto()
    TYPEDEF = auto()
    ENUM = auto()
    SENUM = auto()
    STRUCT = auto()
    UNION = auto()
    EXCEPTION = auto()
    SERVICE = auto()
    EXTENDS = auto()
    THROWS = auto()
    ONEWAY = auto()
    VOID = auto()
    REQUIRED = auto()
    OPTIONAL = auto()

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LANGLE = auto()
    RANGLE = auto()
    SEMICOLON = auto()
    COLON = auto()
    COMMA = auto()
    EQUALS = auto()

    # Literals
    IDENT = auto()
    NUMBER = auto()
    STRING_LIT = auto()

    # Special
    EOF = auto()


_KEYWORDS = {
    "include": ThriftTokenType.INCLUDE,
    "cpp_include": ThriftTokenType.CPP_INCLUDE,
    "namespace": ThriftTokenType.NAMESPACE,
    "const": ThriftTokenType.CONST,
    "typedef": ThriftTokenType.TYPEDEF,
    "enum": ThriftTokenType.ENUM,
    "senum": ThriftTokenType.SENUM,
    "struct": ThriftTokenType.STRUCT,
    "union": ThriftTokenType.UNION,
    "exception": ThriftTokenType.EXCEPTION,
    "service": ThriftTokenType.SERVICE,
    "extends": ThriftTokenType.EXTENDS,
    "throws": ThriftTokenType.THROWS,
    "oneway": ThriftTokenType.ONEWAY,
    "void": ThriftTokenType.VOID,
    "required": ThriftTokenType.REQUIRED,
    "optional": ThriftTokenType.OPTIONAL,
}

KEYWORD_TYPES = frozenset(_KEYWORDS.values())

_SINGLE_CHARS = {
    "{": ThriftTokenType.LBRACE,
    "}": ThriftTokenType.RBRACE,
    "(": ThriftTokenType.LPAREN,
    ")": ThriftTokenType.RPAREN,
    "[": ThriftTokenType.LBRACKET,
    "]": ThriftTokenType.RBRACKET,
    "<": ThriftTokenType.LANGLE,
    ">": ThriftTokenType.RANGLE,
    ";": ThriftTokenType.SEMICOLON,
    ":": ThriftTokenType.COLON,
    ",": ThriftTokenType.COMMA,
    "=": ThriftTokenType.EQUALS,
}


@dataclass
class ThriftToken:
    type: ThriftTokenType
    value: str
    line: int
    col: int
    # raw comment text directly above the token, and after it on the same line
    comment: str = ""
    trailing: str = ""


def tokenize_thrift(text: str) -> List[ThriftToken]:
    """Tokenize a Thrift source string into a list of tokens.

    Handles ``#``, ``//`` and ``/* */`` comments and single- or double-quoted
    literals. String contents are kept verbatim apart from escaped quotes, so
    JSON payloads inside annotations survive unchanged.
    """
    tokens: List[ThriftToken] = []
    pending: List[str] = []
    i = 0
    line = 1
    col = 1
    n = len(text)

    def emit(tok_type: ThriftTokenType, value: str, tok_line: int, tok_col: int) -> None:
        tokens.append(ThriftToken(tok_type, value, tok_line, tok_col, comment="\n".join(pending)))
        pending.clear()

    while i < n:
        ch = text[i]

        if ch in (" ", "\t", "\r"):
            i += 1
            col += 1
            continue

        if ch == "\n":
            i += 1
            line += 1
            col = 1
            continue

        # Comments
        if ch == "#" or (ch == "/" and i + 1 < n and text[i + 1] in "/*"):
            start = i
            start_line = line
            if ch == "#" or text[i + 1] == "/":
                while i < n and text[i] != "\n":
                    i += 1
                    col += 1
            else:
                i += 2
                while i < n and not (text[i] == "*" and i + 1 < n and text[i + 1] == "/"):
                    if text[i] == "\n":
                        line += 1
                        col = 1
                    else:
                        col += 1
                    i += 1
                i = min(i + 2, n)
                col += 2
            comment = text[start:i]
            if tokens and tokens[-1].line == start_line and not pending:
                tokens[-1].trailing = comment
            else:
                pending.append(comment)
            continue

        if ch in _SINGLE_CHARS:
            emit(_SINGLE_CHARS[ch], ch, line, col)
            i += 1
            col += 1
            continue

        # String literal
        if ch in ('"', "'"):
            quote = ch
            start_line = line
            start_col = col
            i += 1
            col += 1
            chars: List[str] = []
            while i < n and text[i] != quote:
                if text[i] == "\\" and i + 1 < n and text[i + 1] == quote:
                    chars.append(quote)
                    i += 2
                    col += 2
                    continue
                if text[i] == "\n":
                    line += 1
                    col = 0
                chars.append(text[i])
                i += 1
                col += 1
            if i < n:
                i += 1  # consume closing quote
                col += 1
            emit(ThriftTokenType.STRING_LIT, "".join(chars), start_line, start_col)
            continue

        # Number
        if ch.isdigit() or (ch in "-+" and i + 1 < n and text[i + 1].isdigit()):
            start = i
            start_col = col
            i += 1
            while i < n and (text[i].isalnum() or text[i] == "." or
                             (text[i] in "-+" and text[i - 1] in "eE")):
                i += 1
            col += i - start
            emit(ThriftTokenType.NUMBER, text[start:i], line, start_col)
            continue

        # Identifier / keyword; dotted names stay one token
        if ch.isalpha() or ch == "_":
            start = i
            start_col = col
            while i < n and (text[i].isalnum() or text[i] in "_."):
                i += 1
                col += 1
            word = text[start:i]
            emit(_KEYWORDS.get(word, ThriftTokenType.IDENT), word, line, start_col)
            continue

        # Skip any other character
        i += 1
        col += 1

    tokens.append(ThriftToken(ThriftTokenType.EOF, "", line, col))
    return tokens
