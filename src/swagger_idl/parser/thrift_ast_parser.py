"""Recursive descent parser for Thrift (.thrift) files.

Consumes a token stream from thrift_tokenizer and produces Thrift AST nodes.
Constants and default values are parsed only to be skipped.
"""

from __future__ import annotations

from typing import List, Optional

from .thrift_ast import (
    AnnotationPairs,
    ThriftDocument,
    ThriftEnum,
    ThriftEnumValue,
    ThriftField,
    ThriftFunction,
    ThriftService,
    ThriftStruct,
    ThriftType,
    ThriftTypedef,
)
from .thrift_tokenizer import KEYWORD_TYPES, ThriftToken, ThriftTokenType, tokenize_thrift

CONTAINER_TYPES = ("list", "set", "map")

_STRUCT_KINDS = {
    ThriftTokenType.STRUCT: "struct",
    ThriftTokenType.UNION: "union",
    ThriftTokenType.EXCEPTION: "exception",
}


class ThriftParseError(Exception):
    """Raised when the parser encounters unexpected input."""

    def __init__(self, message: str, token: ThriftToken | None = None):
        if token:
            super().__init__(f"Line {token.line}:{token.col}: {message}")
        else:
            super().__init__(message)


class ThriftParser:
    """Recursive descent parser for .thrift files."""

    def __init__(self, tokens: List[ThriftToken]):
        self._tokens = tokens
        self._pos = 0

    # -- public API --

    def parse(self) -> ThriftDocument:
        """Parse the full token stream into a ThriftDocument AST."""
        doc = ThriftDocument()

        while not self._at_end():
            tt = self._peek().type

            if tt == ThriftTokenType.INCLUDE:
                self._advance()
                doc.includes.append(self._expect(ThriftTokenType.STRING_LIT).value)
            elif tt == ThriftTokenType.CPP_INCLUDE:
                self._advance()
                self._expect(ThriftTokenType.STRING_LIT)
            elif tt == ThriftTokenType.NAMESPACE:
                self._advance()
                scope = self._expect_name().value
                if self._peek().type == ThriftTokenType.STRING_LIT:
                    doc.namespaces[scope] = self._advance().value
                else:
                    doc.namespaces[scope] = self._expect_name().value
                self._parse_annotations()
            elif tt == ThriftTokenType.TYPEDEF:
                doc.typedefs.append(self._parse_typedef())
            elif tt == ThriftTokenType.CONST:
                doc.constants.append(self._parse_const())
            elif tt == ThriftTokenType.ENUM:
                doc.enums.append(self._parse_enum())
            elif tt == ThriftTokenType.SENUM:
                self._skip_block()
            elif tt in _STRUCT_KINDS:
                doc.structs.append(self._parse_struct())
            elif tt == ThriftTokenType.SERVICE:
                doc.services.append(self._parse_service())
            elif tt in (ThriftTokenType.SEMICOLON, ThriftTokenType.COMMA):
                self._advance()
            else:
                tok = self._peek()
                raise ThriftParseError(f"Unexpected {tok.type.name} ({tok.value!r}) at top level", tok)

        return doc

    # -- definitions --

    def _parse_typedef(self) -> ThriftTypedef:
        """Parse: TYPEDEF type IDENT [annotations] [sep]"""
        self._expect(ThriftTokenType.TYPEDEF)
        type_ = self._parse_type()
        alias = self._expect_name().value
        annotations = self._parse_annotations()
        self._skip_separator()
        return ThriftTypedef(alias=alias, type=type_, annotations=annotations)

    def _parse_const(self) -> str:
        """Parse: CONST type IDENT = value [sep]; only the name is kept."""
        self._expect(ThriftTokenType.CONST)
        self._parse_type()
        name = self._expect_name().value
        self._expect(ThriftTokenType.EQUALS)
        self._skip_const_value()
        self._skip_separator()
        return name

    def _parse_enum(self) -> ThriftEnum:
        start = self._expect(ThriftTokenType.ENUM)
        enum = ThriftEnum(name=self._expect_name().value, comment=start.comment)
        self._expect(ThriftTokenType.LBRACE)
        next_value = 0
        while not self._at_end() and self._peek().type != ThriftTokenType.RBRACE:
            name = self._expect_name().value
            if self._peek().type == ThriftTokenType.EQUALS:
                self._advance()
                next_value = _to_int(self._expect(ThriftTokenType.NUMBER))
            enum.values.append(ThriftEnumValue(name, next_value))
            next_value += 1
            self._parse_annotations()
            self._skip_separator()
        self._expect(ThriftTokenType.RBRACE)
        enum.annotations = self._parse_annotations()
        return enum

    def _parse_struct(self) -> ThriftStruct:
        """Parse: (STRUCT|UNION|EXCEPTION) IDENT { fields } [annotations]"""
        start = self._advance()
        struct = ThriftStruct(
            name=self._expect_name().value,
            kind=_STRUCT_KINDS[start.type],
            comment=start.comment,
        )
        if self._peek().type == ThriftTokenType.IDENT and self._peek().value == "xsd_all":
            self._advance()
        self._expect(ThriftTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ThriftTokenType.RBRACE:
            struct.fields.append(self._parse_field())
        self._expect(ThriftTokenType.RBRACE)
        struct.annotations = self._parse_annotations()
        return struct

    def _parse_field(self) -> ThriftField:
        """Parse: [id:] [required|optional] type IDENT [= value] [annotations] [sep]"""
        first = self._peek()
        field_id: Optional[int] = None
        if first.type == ThriftTokenType.NUMBER:
            field_id = _to_int(self._advance())
            self._expect(ThriftTokenType.COLON)

        requiredness = ""
        if self._peek().type in (ThriftTokenType.REQUIRED, ThriftTokenType.OPTIONAL):
            requiredness = self._advance().value

        type_ = self._parse_type()
        name_tok = self._expect_name()
        if self._peek().type == ThriftTokenType.EQUALS:
            self._advance()
            self._skip_const_value()
        annotations = self._parse_annotations()
        last = self._tokens[self._pos - 1]
        end = self._skip_separator() or last

        return ThriftField(
            name=name_tok.value,
            type=type_,
            id=field_id,
            requiredness=requiredness,
            annotations=annotations,
            comment=first.comment or end.trailing,
        )

    def _parse_service(self) -> ThriftService:
        start = self._expect(ThriftTokenType.SERVICE)
        service = ThriftService(name=self._expect_name().value, comment=start.comment)
        if self._peek().type == ThriftTokenType.EXTENDS:
            self._advance()
            service.extends = self._expect_name().value
        self._expect(ThriftTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ThriftTokenType.RBRACE:
            service.functions.append(self._parse_function())
        self._expect(ThriftTokenType.RBRACE)
        service.annotations = self._parse_annotations()
        return service

    def _parse_function(self) -> ThriftFunction:
        """Parse: [ONEWAY] (VOID|type) IDENT ( fields ) [THROWS ( fields )] [annotations] [sep]"""
        first = self._peek()
        oneway = False
        if first.type == ThriftTokenType.ONEWAY:
            self._advance()
            oneway = True

        return_type: Optional[ThriftType] = None
        if self._peek().type == ThriftTokenType.VOID:
            self._advance()
        else:
            return_type = self._parse_type()

        function = ThriftFunction(
            name=self._expect_name().value,
            return_type=return_type,
            oneway=oneway,
            comment=first.comment,
        )
        function.arguments = self._parse_field_list()
        if self._peek().type == ThriftTokenType.THROWS:
            self._advance()
            function.throws = self._parse_field_list()
        function.annotations = self._parse_annotations()
        end = self._skip_separator()
        if not function.comment and end is not None:
            function.comment = end.trailing
        return function

    def _parse_field_list(self) -> List[ThriftField]:
        self._expect(ThriftTokenType.LPAREN)
        fields: List[ThriftField] = []
        while not self._at_end() and self._peek().type != ThriftTokenType.RPAREN:
            fields.append(self._parse_field())
        self._expect(ThriftTokenType.RPAREN)
        return fields

    # -- types and annotations --

    def _parse_type(self) -> ThriftType:
        name_tok = self._expect_name()
        type_ = ThriftType(name=name_tok.value)
        if name_tok.value in CONTAINER_TYPES and self._peek().type == ThriftTokenType.LANGLE:
            self._advance()
            type_.args.append(self._parse_type())
            if name_tok.value == "map":
                self._expect(ThriftTokenType.COMMA)
                type_.args.append(self._parse_type())
            self._expect(ThriftTokenType.RANGLE)
        if self._peek().type == ThriftTokenType.IDENT and self._peek().value == "cpp_type":
            self._advance()
            self._expect(ThriftTokenType.STRING_LIT)
        type_.annotations = self._parse_annotations()
        return type_

    def _parse_annotations(self) -> AnnotationPairs:
        """Parse an optional ( key = "value", ... ) list."""
        pairs: AnnotationPairs = []
        if self._peek().type != ThriftTokenType.LPAREN:
            return pairs
        self._advance()
        while not self._at_end() and self._peek().type != ThriftTokenType.RPAREN:
            key = self._expect_name().value
            value = "1"
            if self._peek().type == ThriftTokenType.EQUALS:
                self._advance()
                tok = self._peek()
                if tok.type not in (ThriftTokenType.STRING_LIT, ThriftTokenType.NUMBER,
                                    ThriftTokenType.IDENT):
                    raise ThriftParseError(f"Expected annotation value, got {tok.type.name}", tok)
                value = self._advance().value
            pairs.append((key, value))
            self._skip_separator()
        self._expect(ThriftTokenType.RPAREN)
        return pairs

    # -- skip helpers --

    def _skip_const_value(self) -> None:
        tok = self._advance()
        if tok.type == ThriftTokenType.LBRACKET:
            while not self._at_end() and self._peek().type != ThriftTokenType.RBRACKET:
                self._skip_const_value()
                self._skip_separator()
            self._expect(ThriftTokenType.RBRACKET)
        elif tok.type == ThriftTokenType.LBRACE:
            while not self._at_end() and self._peek().type != ThriftTokenType.RBRACE:
                self._skip_const_value()
                self._expect(ThriftTokenType.COLON)
                self._skip_const_value()
                self._skip_separator()
            self._expect(ThriftTokenType.RBRACE)
        elif tok.type not in (ThriftTokenType.STRING_LIT, ThriftTokenType.NUMBER, ThriftTokenType.IDENT):
            raise ThriftParseError(f"Expected constant value, got {tok.type.name} ({tok.value!r})", tok)

    def _skip_separator(self) -> Optional[ThriftToken]:
        if self._peek().type in (ThriftTokenType.COMMA, ThriftTokenType.SEMICOLON):
            return self._advance()
        return None

    def _skip_block(self) -> None:
        """Skip a keyword + IDENT + braced block."""
        self._advance()  # keyword
        while not self._at_end() and self._peek().type != ThriftTokenType.LBRACE:
            self._advance()
        if not self._at_end():
            self._advance()  # consume LBRACE
        depth = 1
        while not self._at_end() and depth > 0:
            tok = self._advance()
            if tok.type == ThriftTokenType.LBRACE:
                depth += 1
            elif tok.type == ThriftTokenType.RBRACE:
                depth -= 1

    # -- token helpers --

    def _peek(self) -> ThriftToken:
        return self._tokens[self._pos]

    def _advance(self) -> ThriftToken:
        tok = self._tokens[self._pos]
        if tok.type != ThriftTokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, expected: ThriftTokenType) -> ThriftToken:
        tok = self._peek()
        if tok.type != expected:
            raise ThriftParseError(
                f"Expected {expected.name}, got {tok.type.name} ({tok.value!r})",
                tok,
            )
        return self._advance()

    def _expect_name(self) -> ThriftToken:
        tok = self._peek()
        if tok.type == ThriftTokenType.IDENT or tok.type in KEYWORD_TYPES:
            return self._advance()
        raise ThriftParseError(f"Expected IDENT, got {tok.type.name} ({tok.value!r})", tok)

    def _at_end(self) -> bool:
        return self._tokens[self._pos].type == ThriftTokenType.EOF


def _to_int(tok: ThriftToken) -> int:
    try:
        return int(tok.value, 0)
    except ValueError:
        raise ThriftParseError(f"Invalid integer {tok.value!r}", tok) from None


def parse_thrift_text(text: str) -> ThriftDocument:
    """Tokenize and parse Thrift source text."""
    return ThriftParser(tokenize_thrift(text)).parse()
