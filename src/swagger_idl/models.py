"""Intermediate proto tree built by the OpenAPI -> proto converter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

T = TypeVar("T")

EMPTY_TYPE = "google.protobuf.Empty"
EMPTY_IMPORT = "google/protobuf/empty.proto"


def merge_by_key(existing: List[T], incoming: List[T], key: Callable[[T], Any]) -> List[T]:
    """Append the items of ``incoming`` whose key is not yet in ``existing``.

    The first item seen for a key wins; ``existing`` is mutated and returned.
    """
    seen = {key(item) for item in existing}
    for item in incoming:
        k = key(item)
        if k not in seen:
            existing.append(item)
            seen.add(k)
    return existing


def _by_name(item: Any) -> str:
    return item.name


# -- option values --


@dataclass
class StringValue:
    value: str


@dataclass
class NumberValue:
    value: Union[int, float]


@dataclass
class BoolValue:
    value: bool


@dataclass
class ListValue:
    items: List["OptionValue"] = field(default_factory=list)


@dataclass
class MapValue:
    """A nested message literal; entries keep insertion order."""

    entries: Dict[str, "OptionValue"] = field(default_factory=dict)


OptionValue = Union[StringValue, NumberValue, BoolValue, ListValue, MapValue]


def option_value(obj: Any) -> OptionValue:
    """Convert plain Python data into the closed option value union."""
    if isinstance(obj, (StringValue, NumberValue, BoolValue, ListValue, MapValue)):
        return obj
    # bool before int: bool is an int subclass
    if isinstance(obj, bool):
        return BoolValue(obj)
    if isinstance(obj, (int, float)):
        return NumberValue(obj)
    if isinstance(obj, str):
        return StringValue(obj)
    if isinstance(obj, (list, tuple)):
        return ListValue([option_value(item) for item in obj])
    if isinstance(obj, dict):
        return MapValue({str(k): option_value(v) for k, v in obj.items()})
    raise TypeError(f"unsupported option value type: {type(obj).__name__}")


# -- proto tree --


@dataclass
class Option:
    name: str
    value: OptionValue


@dataclass
class ProtoEnumValue:
    name: str
    number: int


@dataclass
class ProtoEnum:
    name: str
    values: List[ProtoEnumValue] = field(default_factory=list)


@dataclass
class ProtoField:
    """A message field; ``type`` is a scalar keyword, message name or ``map<K, V>``."""

    name: str
    type: str
    repeated: bool = False
    options: List[Option] = field(default_factory=list)


@dataclass
class ProtoMessage:
    name: str
    fields: List[ProtoField] = field(default_factory=list)
    messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)

    def add_field(self, proto_field: ProtoField) -> None:
        merge_by_key(self.fields, [proto_field], _by_name)

    def add_message(self, message: ProtoMessage) -> None:
        merge_by_key(self.messages, [message], _by_name)

    def add_enum(self, enum: ProtoEnum) -> None:
        merge_by_key(self.enums, [enum], _by_name)

    def merge(self, other: ProtoMessage) -> None:
        """Union another message with the same name into this one."""
        merge_by_key(self.fields, other.fields, _by_name)
        merge_by_key(self.messages, other.messages, _by_name)
        merge_by_key(self.enums, other.enums, _by_name)
        merge_by_key(self.options, other.options, _by_name)

    def is_empty(self) -> bool:
        return not self.fields and not self.messages


@dataclass
class ProtoMethod:
    name: str
    input_type: str
    output_type: str
    options: List[Option] = field(default_factory=list)


@dataclass
class ProtoService:
    name: str
    methods: List[ProtoMethod] = field(default_factory=list)

    def has_method(self, name: str) -> bool:
        return any(m.name == name for m in self.methods)


@dataclass
class ProtoFile:
    package: str
    imports: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
    services: List[ProtoService] = field(default_factory=list)

    def add_import(self, path: str) -> None:
        merge_by_key(self.imports, [path], lambda p: p)

    def add_message(self, message: ProtoMessage) -> None:
        """Add a top-level message, merging into an existing one of the same name."""
        existing = self.find_message(message.name)
        if existing is None:
            self.messages.append(message)
        elif existing is not message:
            existing.merge(message)

    def add_enum(self, enum: ProtoEnum) -> None:
        merge_by_key(self.enums, [enum], _by_name)

    def find_message(self, name: str) -> Optional[ProtoMessage]:
        for message in self.messages:
            if message.name == name:
                return message
        return None

    def find_or_create_service(self, name: str) -> ProtoService:
        for service in self.services:
            if service.name == name:
                return service
        service = ProtoService(name=name)
        self.services.append(service)
        return service
