"""Transform protobuf AST nodes into the resolved descriptor graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from swagger_idl.annotations import Annotations
from swagger_idl.descriptors import (
    EnumDescriptor,
    FieldDescriptor,
    FileDescriptor,
    MethodDescriptor,
    ReflectionError,
    ServiceDescriptor,
    StructDescriptor,
    TypeDescriptor,
)
from swagger_idl.type_mapping import PROTO_SCALARS, PROTO_WELL_KNOWN_SCHEMAS

from .proto_ast import ProtoEnum, ProtoField, ProtoFile, ProtoMessage, ProtoOption, ProtoRpc

logger = logging.getLogger(__name__)

EMPTY_TYPE = "google.protobuf.Empty"

_MESSAGE = "message"
_ENUM = "enum"


@dataclass
class ProtoSource:
    """A parsed file together with the parsed files it imports."""

    path: str
    file: ProtoFile
    imports: List[ProtoSource] = field(default_factory=list)


def transform_proto(source: ProtoSource) -> FileDescriptor:
    """Resolve ``source`` and its imports into a FileDescriptor.

    Nested declarations are named ``Outer.Inner`` without the package prefix.
    When two files declare the same schema name the main file wins, then
    imports in declaration order.
    """
    return _ProtoResolver(source).resolve()


def _options_to_annotations(options: List[ProtoOption]) -> Annotations:
    return Annotations.from_pairs([(opt.name, opt.value) for opt in options])


def _qualify(package: str, name: str) -> str:
    return f"{package}.{name}" if package else name


class _ProtoResolver:
    def __init__(self, root: ProtoSource):
        self._root = root
        self._file = FileDescriptor(path=root.path, package=root.file.package)
        # fully qualified name -> (kind, schema name)
        self._symbols: Dict[str, Tuple[str, str]] = {}

    def resolve(self) -> FileDescriptor:
        sources = self._all_sources()
        for source in sources:
            self._index(source.file)
        for source in sources:
            self._register(source.file)

        self._file.local_structs = [name for name, _ in _walk_messages(self._root.file.messages, "")]
        for service in self._root.file.services:
            self._file.services.append(self._service(service))
        return self._file

    def _all_sources(self) -> List[ProtoSource]:
        ordered: List[ProtoSource] = []
        seen: Set[int] = set()
        queue = [self._root]
        while queue:
            source = queue.pop(0)
            if id(source) in seen:
                continue
            seen.add(id(source))
            ordered.append(source)
            queue.extend(source.imports)
        return ordered

    # -- symbol table --

    def _index(self, proto: ProtoFile) -> None:
        for enum in proto.enums:
            self._symbols.setdefault(_qualify(proto.package, enum.name), (_ENUM, enum.name))
        for name, message in _walk_messages(proto.messages, ""):
            self._symbols.setdefault(_qualify(proto.package, name), (_MESSAGE, name))
            for enum in message.enums:
                enum_name = f"{name}.{enum.name}"
                self._symbols.setdefault(_qualify(proto.package, enum_name), (_ENUM, enum_name))

    def _register(self, proto: ProtoFile) -> None:
        for enum in proto.enums:
            self._add_enum(enum.name, enum)
        for name, message in _walk_messages(proto.messages, ""):
            for enum in message.enums:
                self._add_enum(f"{name}.{enum.name}", enum)
            if name in self._file.structs:
                continue
            scope = _qualify(proto.package, name)
            self._file.structs[name] = StructDescriptor(
                name=name,
                fields=[self._field(f, scope) for f in message.fields],
                annotations=_options_to_annotations(message.options),
                comment=message.comment,
            )

    def _add_enum(self, name: str, enum: ProtoEnum) -> None:
        self._file.enums.setdefault(
            name, EnumDescriptor(name, {v.name: v.number for v in enum.values}, enum.comment)
        )

    def _field(self, node: ProtoField, scope: str) -> FieldDescriptor:
        value_type = self.resolve_type(node.type_name, scope)
        if node.is_map:
            field_type = TypeDescriptor.map_of(self.resolve_type(node.map_key_type, scope), value_type)
        elif node.is_repeated:
            field_type = TypeDescriptor.list_of(value_type)
        else:
            field_type = value_type
        return FieldDescriptor(
            name=node.field_name,
            type=field_type,
            annotations=_options_to_annotations(node.options),
            comment=node.comment,
        )

    def resolve_type(self, name: str, scope: str) -> TypeDescriptor:
        """Resolve a type reference the way protoc does: innermost scope first."""
        if name in PROTO_SCALARS:
            return TypeDescriptor.scalar(name)
        bare = name.lstrip(".")
        if bare in PROTO_WELL_KNOWN_SCHEMAS:
            return TypeDescriptor.scalar(bare)

        found = self._lookup(name, scope)
        if found is None:
            logger.debug("unresolved type '%s' in scope '%s'", name, scope)
            return TypeDescriptor.scalar(bare)
        kind, schema_name = found
        if kind == _ENUM:
            return TypeDescriptor.enum(schema_name)
        return TypeDescriptor.struct(schema_name)

    def _lookup(self, name: str, scope: str) -> Optional[Tuple[str, str]]:
        if name.startswith("."):
            return self._symbols.get(name[1:])
        parts = scope.split(".") if scope else []
        while True:
            candidate = ".".join(parts + [name])
            if candidate in self._symbols:
                return self._symbols[candidate]
            if not parts:
                return None
            parts.pop()

    # -- services --

    def _service(self, node) -> ServiceDescriptor:
        service = ServiceDescriptor(
            name=node.name,
            annotations=_options_to_annotations(node.options),
            comment=node.comment,
        )
        scope = self._root.file.package
        for rpc in node.rpcs:
            service.methods.append(self._method(node.name, rpc, scope))
        return service

    def _method(self, service_name: str, rpc: ProtoRpc, scope: str) -> MethodDescriptor:
        if rpc.client_streaming or rpc.server_streaming:
            logger.debug("rpc '%s.%s' is streaming, treated as unary", service_name, rpc.name)
        return MethodDescriptor(
            name=rpc.name,
            request=self._message_for(rpc.input_type, scope, f"input of {service_name}.{rpc.name}"),
            response=self._message_for(rpc.output_type, scope, f"output of {service_name}.{rpc.name}"),
            annotations=_options_to_annotations(rpc.options),
            comment=rpc.comment,
        )

    def _message_for(self, type_name: str, scope: str, what: str) -> Optional[StructDescriptor]:
        if type_name.lstrip(".") == EMPTY_TYPE:
            return None
        resolved = self.resolve_type(type_name, scope)
        struct = self._file.find_struct(resolved.name) if resolved.is_struct() else None
        if struct is None:
            raise ReflectionError(f"{what}: type {type_name!r} is not a known message")
        return struct


def _walk_messages(messages: List[ProtoMessage], prefix: str):
    """Yield ``(dotted name, message)`` for every message, outer before inner."""
    for message in messages:
        name = f"{prefix}.{message.name}" if prefix else message.name
        yield name, message
        yield from _walk_messages(message.nested_messages, name)
