"""AST node definitions for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class ProtoOption:
    """``option name = value;`` or a ``[name = value]`` field option.

    Custom option names are stored without parentheses (``api.get``).
    Aggregate values (``{ key: value }``) are parsed into dicts.
    """

    name: str
    value: Any


@dataclass
class ProtoField:
    """A field declaration: [repeated] Type name = number [options];

    For ``map<K, V>`` fields ``type_name`` is the value type and
    ``map_key_type`` holds the key type.
    """

    type_name: str
    field_name: str
    field_number: int
    is_repeated: bool = False
    map_key_type: Optional[str] = None
    oneof: Optional[str] = None
    options: List[ProtoOption] = field(default_factory=list)
    comment: str = ""

    @property
    def is_map(self) -> bool:
        return self.map_key_type is not None


@dataclass
class ProtoEnumValue:
    name: str
    number: int
    options: List[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoEnum:
    name: str
    values: List[ProtoEnumValue] = field(default_factory=list)
    options: List[ProtoOption] = field(default_factory=list)
    comment: str = ""


@dataclass
class ProtoMessage:
    """A message definition, possibly containing nested messages."""

    name: str
    fields: List[ProtoField] = field(default_factory=list)
    nested_messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
    options: List[ProtoOption] = field(default_factory=list)
    comment: str = ""


@dataclass
class ProtoRpc:
    """rpc Name (Input) returns (Output) [{ options }]"""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    options: List[ProtoOption] = field(default_factory=list)
    comment: str = ""


@dataclass
class ProtoService:
    name: str
    rpcs: List[ProtoRpc] = field(default_factory=list)
    options: List[ProtoOption] = field(default_factory=list)
    comment: str = ""


@dataclass
class ProtoFile:
    """Top-level parsed representation of a .proto file."""

    syntax: str = "proto3"
    package: str = ""
    imports: List[str] = field(default_factory=list)
    options: List[ProtoOption] = field(default_factory=list)
    messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
    services: List[ProtoService] = field(default_factory=list)
