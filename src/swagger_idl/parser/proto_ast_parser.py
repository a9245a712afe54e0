"""Recursive descent parser for protobuf (.proto) files.

Consumes a token stream from proto_tokenizer and produces proto AST nodes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .proto_ast import (
    ProtoEnum,
    ProtoEnumValue,
    ProtoField,
    ProtoFile,
    ProtoMessage,
    ProtoOption,
    ProtoRpc,
    ProtoService,
)
from .proto_tokenizer import KEYWORD_TYPES, ProtoToken, ProtoTokenType, tokenize_proto


class ProtoParseError(Exception):
    """Raised when the parser encounters unexpected input."""

    def __init__(self, message: str, token: ProtoToken | None = None):
        if token:
            super().__init__(f"Line {token.line}:{token.col}: {message}")
        else:
            super().__init__(message)


def _comment_of(token: ProtoToken) -> str:
    return token.comment or token.trailing


class ProtoParser:
    """Recursive descent parser for .proto files."""

    def __init__(self, tokens: List[ProtoToken]):
        self._tokens = tokens
        self._pos = 0

    # -- public API --

    def parse(self) -> ProtoFile:
        """Parse the full token stream into a ProtoFile AST."""
        result = ProtoFile()

        while not self._at_end():
            tt = self._peek().type

            if tt == ProtoTokenType.SYNTAX:
                self._advance()
                self._expect(ProtoTokenType.EQUALS)
                result.syntax = self._expect(ProtoTokenType.STRING_LIT).value
                self._expect(ProtoTokenType.SEMICOLON)
            elif tt == ProtoTokenType.PACKAGE:
                self._advance()
                result.package = self._expect_name().value
                self._expect(ProtoTokenType.SEMICOLON)
            elif tt == ProtoTokenType.IMPORT:
                self._advance()
                if self._peek().type == ProtoTokenType.IDENT and self._peek().value in ("public", "weak"):
                    self._advance()
                result.imports.append(self._expect(ProtoTokenType.STRING_LIT).value)
                self._expect(ProtoTokenType.SEMICOLON)
            elif tt == ProtoTokenType.OPTION:
                result.options.append(self._parse_option_statement())
            elif tt == ProtoTokenType.MESSAGE:
                result.messages.append(self._parse_message())
            elif tt == ProtoTokenType.ENUM:
                result.enums.append(self._parse_enum())
            elif tt == ProtoTokenType.SERVICE:
                result.services.append(self._parse_service())
            elif tt == ProtoTokenType.EXTEND:
                self._skip_block()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                tok = self._peek()
                raise ProtoParseError(f"Unexpected {tok.type.name} ({tok.value!r}) at top level", tok)

        return result

    # -- message parsing --

    def _parse_message(self) -> ProtoMessage:
        """Parse: MESSAGE IDENT LBRACE body RBRACE"""
        start = self._expect(ProtoTokenType.MESSAGE)
        name_tok = self._expect_name()
        self._expect(ProtoTokenType.LBRACE)
        message = ProtoMessage(name=name_tok.value, comment=start.comment)
        self._parse_message_body(message)
        self._expect(ProtoTokenType.RBRACE)
        return message

    def _parse_message_body(self, message: ProtoMessage, oneof: Optional[str] = None) -> None:
        """Parse the contents between { and } of a message or oneof."""
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type

            if tt == ProtoTokenType.MESSAGE:
                message.nested_messages.append(self._parse_message())
            elif tt == ProtoTokenType.ENUM:
                message.enums.append(self._parse_enum())
            elif tt == ProtoTokenType.OPTION:
                message.options.append(self._parse_option_statement())
            elif tt == ProtoTokenType.ONEOF:
                self._advance()
                oneof_name = self._expect_name().value
                self._expect(ProtoTokenType.LBRACE)
                self._parse_message_body(message, oneof=oneof_name)
                self._expect(ProtoTokenType.RBRACE)
            elif tt == ProtoTokenType.MAP:
                message.fields.append(self._parse_map_field())
            elif tt in (ProtoTokenType.RESERVED, ProtoTokenType.EXTENSIONS):
                self._skip_statement()
            elif tt == ProtoTokenType.EXTEND:
                self._skip_block()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                message.fields.append(self._parse_field(oneof))

    def _parse_field(self, oneof: Optional[str] = None) -> ProtoField:
        """Parse: [REPEATED|OPTIONAL|REQUIRED] type name EQUALS NUMBER [options] SEMICOLON"""
        first = self._peek()
        is_repeated = False
        if first.type in (ProtoTokenType.REPEATED, ProtoTokenType.OPTIONAL, ProtoTokenType.REQUIRED):
            is_repeated = first.type == ProtoTokenType.REPEATED
            self._advance()

        type_tok = self._expect_name()
        name_tok = self._expect_name()
        self._expect(ProtoTokenType.EQUALS)
        num_tok = self._expect(ProtoTokenType.NUMBER)
        options = self._parse_field_options()
        end = self._expect(ProtoTokenType.SEMICOLON)

        return ProtoField(
            type_name=type_tok.value,
            field_name=name_tok.value,
            field_number=_to_int(num_tok),
            is_repeated=is_repeated,
            oneof=oneof,
            options=options,
            comment=first.comment or end.trailing,
        )

    def _parse_map_field(self) -> ProtoField:
        """Parse: MAP LANGLE key COMMA value RANGLE name EQUALS NUMBER [options] SEMICOLON"""
        first = self._expect(ProtoTokenType.MAP)
        self._expect(ProtoTokenType.LANGLE)
        key_tok = self._expect_name()
        self._expect(ProtoTokenType.COMMA)
        value_tok = self._expect_name()
        self._expect(ProtoTokenType.RANGLE)
        name_tok = self._expect_name()
        self._expect(ProtoTokenType.EQUALS)
        num_tok = self._expect(ProtoTokenType.NUMBER)
        options = self._parse_field_options()
        end = self._expect(ProtoTokenType.SEMICOLON)

        return ProtoField(
            type_name=value_tok.value,
            field_name=name_tok.value,
            field_number=_to_int(num_tok),
            map_key_type=key_tok.value,
            options=options,
            comment=first.comment or end.trailing,
        )

    # -- enum parsing --

    def _parse_enum(self) -> ProtoEnum:
        start = self._expect(ProtoTokenType.ENUM)
        enum = ProtoEnum(name=self._expect_name().value, comment=start.comment)
        self._expect(ProtoTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type
            if tt == ProtoTokenType.OPTION:
                enum.options.append(self._parse_option_statement())
            elif tt == ProtoTokenType.RESERVED:
                self._skip_statement()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                name_tok = self._expect_name()
                self._expect(ProtoTokenType.EQUALS)
                number = _to_int(self._expect(ProtoTokenType.NUMBER))
                options = self._parse_field_options()
                self._expect(ProtoTokenType.SEMICOLON)
                enum.values.append(ProtoEnumValue(name_tok.value, number, options))
        self._expect(ProtoTokenType.RBRACE)
        return enum

    # -- service parsing --

    def _parse_service(self) -> ProtoService:
        start = self._expect(ProtoTokenType.SERVICE)
        service = ProtoService(name=self._expect_name().value, comment=start.comment)
        self._expect(ProtoTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type
            if tt == ProtoTokenType.OPTION:
                service.options.append(self._parse_option_statement())
            elif tt == ProtoTokenType.RPC:
                service.rpcs.append(self._parse_rpc())
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                tok = self._peek()
                raise ProtoParseError(f"Unexpected {tok.type.name} ({tok.value!r}) in service", tok)
        self._expect(ProtoTokenType.RBRACE)
        return service

    def _parse_rpc(self) -> ProtoRpc:
        """Parse: RPC name ( [stream] Type ) RETURNS ( [stream] Type ) ( ; | { options } )"""
        start = self._expect(ProtoTokenType.RPC)
        name = self._expect_name().value
        client_streaming, input_type = self._parse_rpc_type()
        self._expect(ProtoTokenType.RETURNS)
        server_streaming, output_type = self._parse_rpc_type()
        rpc = ProtoRpc(
            name=name,
            input_type=input_type,
            output_type=output_type,
            client_streaming=client_streaming,
            server_streaming=server_streaming,
            comment=_comment_of(start),
        )

        if self._peek().type == ProtoTokenType.LBRACE:
            self._advance()
            while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
                if self._peek().type == ProtoTokenType.OPTION:
                    rpc.options.append(self._parse_option_statement())
                elif self._peek().type == ProtoTokenType.SEMICOLON:
                    self._advance()
                else:
                    tok = self._peek()
                    raise ProtoParseError(f"Unexpected {tok.type.name} ({tok.value!r}) in rpc body", tok)
            self._expect(ProtoTokenType.RBRACE)
        else:
            self._expect(ProtoTokenType.SEMICOLON)
        return rpc

    def _parse_rpc_type(self):
        self._expect(ProtoTokenType.LPAREN)
        streaming = False
        if self._peek().type == ProtoTokenType.STREAM:
            self._advance()
            streaming = True
        type_name = self._expect_name().value
        self._expect(ProtoTokenType.RPAREN)
        return streaming, type_name

    # -- options --

    def _parse_option_statement(self) -> ProtoOption:
        """Parse: OPTION name EQUALS constant SEMICOLON"""
        self._expect(ProtoTokenType.OPTION)
        name = self._parse_option_name()
        self._expect(ProtoTokenType.EQUALS)
        value = self._parse_constant()
        self._expect(ProtoTokenType.SEMICOLON)
        return ProtoOption(name, value)

    def _parse_field_options(self) -> List[ProtoOption]:
        """Parse an optional [name = value, ...] list."""
        options: List[ProtoOption] = []
        if self._peek().type != ProtoTokenType.LBRACKET:
            return options
        self._advance()
        while True:
            name = self._parse_option_name()
            self._expect(ProtoTokenType.EQUALS)
            options.append(ProtoOption(name, self._parse_constant()))
            if self._peek().type == ProtoTokenType.COMMA:
                self._advance()
                continue
            break
        self._expect(ProtoTokenType.RBRACKET)
        return options

    def _parse_option_name(self) -> str:
        """``(api.get)`` -> ``api.get``; ``(foo).bar`` -> ``foo.bar``."""
        if self._peek().type == ProtoTokenType.LPAREN:
            self._advance()
            name = self._expect_name().value.lstrip(".")
            self._expect(ProtoTokenType.RPAREN)
            if self._peek().type == ProtoTokenType.IDENT and self._peek().value.startswith("."):
                name += self._advance().value
            return name
        return self._expect_name().value

    def _parse_constant(self) -> Any:
        tok = self._peek()
        if tok.type == ProtoTokenType.STRING_LIT:
            parts = []
            while self._peek().type == ProtoTokenType.STRING_LIT:
                parts.append(self._advance().value)
            return "".join(parts)
        if tok.type == ProtoTokenType.NUMBER:
            self._advance()
            return _to_number(tok)
        if tok.type == ProtoTokenType.LBRACE:
            return self._parse_aggregate()
        if tok.type == ProtoTokenType.LBRACKET:
            return self._parse_list()
        if tok.type == ProtoTokenType.IDENT or tok.type in KEYWORD_TYPES:
            self._advance()
            if tok.value == "true":
                return True
            if tok.value == "false":
                return False
            return tok.value
        raise ProtoParseError(f"Expected constant, got {tok.type.name} ({tok.value!r})", tok)

    def _parse_aggregate(self) -> Dict[str, Any]:
        """Parse a text-format message literal into a dict.

        A key that appears more than once collects its values into a list.
        """
        self._expect(ProtoTokenType.LBRACE)
        result: Dict[str, Any] = {}
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            key = self._expect_name().value
            if self._peek().type == ProtoTokenType.COLON:
                self._advance()
            value = self._parse_constant()
            if key in result:
                existing = result[key]
                if not isinstance(existing, list):
                    existing = [existing]
                existing.extend(value if isinstance(value, list) else [value])
                result[key] = existing
            else:
                result[key] = value
            if self._peek().type in (ProtoTokenType.COMMA, ProtoTokenType.SEMICOLON):
                self._advance()
        self._expect(ProtoTokenType.RBRACE)
        return result

    def _parse_list(self) -> List[Any]:
        self._expect(ProtoTokenType.LBRACKET)
        items: List[Any] = []
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACKET:
            items.append(self._parse_constant())
            if self._peek().type == ProtoTokenType.COMMA:
                self._advance()
        self._expect(ProtoTokenType.RBRACKET)
        return items

    # -- skip helpers --

    def _skip_statement(self) -> None:
        """Skip tokens until (and including) the next semicolon."""
        while not self._at_end():
            tok = self._advance()
            if tok.type == ProtoTokenType.SEMICOLON:
                return

    def _skip_block(self) -> None:
        """Skip a keyword + IDENT + braced block (e.g. extend)."""
        self._advance()  # keyword
        # Skip until opening brace
        while not self._at_end() and self._peek().type != ProtoTokenType.LBRACE:
            self._advance()
        if not self._at_end():
            self._advance()  # consume LBRACE
        depth = 1
        while not self._at_end() and depth > 0:
            tok = self._advance()
            if tok.type == ProtoTokenType.LBRACE:
                depth += 1
            elif tok.type == ProtoTokenType.RBRACE:
                depth -= 1

    # -- token helpers --

    def _peek(self) -> ProtoToken:
        return self._tokens[self._pos]

    def _advance(self) -> ProtoToken:
        tok = self._tokens[self._pos]
        if tok.type != ProtoTokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, expected: ProtoTokenType) -> ProtoToken:
        tok = self._peek()
        if tok.type != expected:
            raise ProtoParseError(
                f"Expected {expected.name}, got {tok.type.name} ({tok.value!r})",
                tok,
            )
        return self._advance()

    def _expect_name(self) -> ProtoToken:
        """An identifier; keywords are valid names in proto."""
        tok = self._peek()
        if tok.type == ProtoTokenType.IDENT or tok.type in KEYWORD_TYPES:
            return self._advance()
        raise ProtoParseError(f"Expected IDENT, got {tok.type.name} ({tok.value!r})", tok)

    def _at_end(self) -> bool:
        return self._tokens[self._pos].type == ProtoTokenType.EOF


def _to_int(tok: ProtoToken) -> int:
    try:
        return int(tok.value, 0)
    except ValueError:
        raise ProtoParseError(f"Invalid integer {tok.value!r}", tok) from None


def _to_number(tok: ProtoToken):
    try:
        return int(tok.value, 0)
    except ValueError:
        pass
    try:
        return float(tok.value)
    except ValueError:
        raise ProtoParseError(f"Invalid number {tok.value!r}", tok) from None


def parse_proto_text(text: str) -> ProtoFile:
    """Tokenize and parse protobuf source text."""
    return ProtoParser(tokenize_proto(text)).parse()
