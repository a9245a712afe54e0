"""Tokenizer for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


class ProtoTokenType(Enum):
    # Keywords
    MESSAGE = auto()
    REPEATED = auto()
    OPTIONAL = auto()
    REQUIRED = auto()
    SYNTAX = auto()
    PACKAGE = auto()
    OPTION = auto()
    RESERVED = auto()
    EXTENSIONS = auto()
    IMPORT = auto()
    ENUM = auto()
    ONEOF = auto()
    MAP = auto()
    SERVICE = auto()
    RPC = auto()
    RETURNS = auto()
    STREAM = auto()
    EXTEND = auto()

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
    "message": ProtoTokenType.MESSAGE,
    "repeated": ProtoTokenType.REPEATED,
    "optional": ProtoTokenType.OPTIONAL,
    "required": ProtoTokenType.REQUIRED,
    "syntax": ProtoTokenType.SYNTAX,
    "package": ProtoTokenType.PACKAGE,
    "option": ProtoTokenType.OPTION,
    "reserved": ProtoTokenType.RESERVED,
    "extensions": ProtoTokenType.EXTENSIONS,
    "import": ProtoTokenType.IMPORT,
    "enum": ProtoTokenType.ENUM,
    "oneof": ProtoTokenType.ONEOF,
    "map": ProtoTokenType.MAP,
    "service": ProtoTokenType.SERVICE,
    "rpc": ProtoTokenType.RPC,
    "returns": ProtoTokenType.RETURNS,
    "stream": ProtoTokenType.STREAM,
    "extend": ProtoTokenType.EXTEND,
}

KEYWORD_TYPES = frozenset(_KEYWORDS.values())

_SINGLE_CHARS = {
    "{": ProtoTokenType.LBRACE,
    "}": ProtoTokenType.RBRACE,
    "(": ProtoTokenType.LPAREN,
    ")": ProtoTokenType.RPAREN,
    "[": ProtoTokenType.LBRACKET,
    "]": ProtoTokenType.RBRACKET,
    "<": ProtoTokenType.LANGLE,
    ">": ProtoTokenType.RANGLE,
    ";": ProtoTokenType.SEMICOLON,
    ":": ProtoTokenType.COLON,
    ",": ProtoTokenType.COMMA,
    "=": ProtoTokenType.EQUALS,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}


@dataclass
class ProtoToken:
    type: ProtoTokenType
    value: str
    line: int
    col: int
    # raw comment text directly above the token, and after it on the same line
    comment: str = ""
    trailing: str = ""


def tokenize_proto(text: str) -> List[ProtoToken]:
    """Tokenize a protobuf source string into a list of tokens."""
    tokens: List[ProtoToken] = []
    pending: List[str] = []
    i = 0
    line = 1
    col = 1
    n = len(text)

    def emit(tok_type: ProtoTokenType, value: str, tok_line: int, tok_col: int) -> None:
        tokens.append(ProtoToken(tok_type, value, tok_line, tok_col, comment="\n".join(pending)))
        pending.clear()

    while i < n:
        ch = text[i]

        # Whitespace
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
        if ch == "/" and i + 1 < n and text[i + 1] in "/*":
            start = i
            start_line = line
            if text[i + 1] == "/":
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
            start_col = col
            i += 1
            col += 1
            chars: List[str] = []
            while i < n and text[i] != quote:
                if text[i] == "\\" and i + 1 < n:
                    chars.append(_ESCAPES.get(text[i + 1], text[i + 1]))
                    i += 2
                    col += 2
                    continue
                chars.append(text[i])
                i += 1
                col += 1
            if i < n:
                i += 1  # consume closing quote
                col += 1
            emit(ProtoTokenType.STRING_LIT, "".join(chars), line, start_col)
            continue

        # Number, optionally signed, with fraction and exponent
        if ch.isdigit() or (ch in "-+" and i + 1 < n and (text[i + 1].isdigit() or text[i + 1] == ".")):
            start = i
            start_col = col
            i += 1
            while i < n and (text[i].isalnum() or text[i] == "." or
                             (text[i] in "-+" and text[i - 1] in "eE")):
                i += 1
            col += i - start
            emit(ProtoTokenType.NUMBER, text[start:i], line, start_col)
            continue

        # Identifier / keyword; dotted names stay one token
        if ch.isalpha() or ch == "_" or (ch == "." and i + 1 < n and text[i + 1].isalpha()):
            start = i
            start_col = col
            while i < n and (text[i].isalnum() or text[i] in "_."):
                i += 1
                col += 1
            word = text[start:i]
            emit(_KEYWORDS.get(word, ProtoTokenType.IDENT), word, line, start_col)
            continue

        # Skip any other character
        i += 1
        col += 1

    tokens.append(ProtoToken(ProtoTokenType.EOF, "", line, col))
    return tokens
