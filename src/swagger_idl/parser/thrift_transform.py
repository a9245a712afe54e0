"""Transform Thrift AST nodes into the resolved descriptor graph."""

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
from swagger_idl.type_mapping import THRIFT_SCALARS

from .thrift_ast import ThriftDocument, ThriftField, ThriftFunction, ThriftStruct, ThriftType

logger = logging.getLogger(__name__)


@dataclass
class ThriftSource:
    """A parsed file together with its parsed includes, keyed by include alias."""

    path: str
    document: ThriftDocument
    includes: Dict[str, ThriftSource] = field(default_factory=dict)


def transform_thrift(source: ThriftSource) -> FileDescriptor:
    """Resolve ``source`` and its includes into a FileDescriptor.

    Structs and enums of included files are registered under their bare name;
    on a name clash the declaration seen first (the main file) wins.
    """
    return _ThriftResolver(source).resolve()


class _ThriftResolver:
    def __init__(self, root: ThriftSource):
        self._root = root
        self._file = FileDescriptor(path=root.path, package=_namespace_of(root.document))

    def resolve(self) -> FileDescriptor:
        visited: Set[int] = set()
        self._register(self._root, visited)
        self._file.local_structs = [s.name for s in self._root.document.structs]
        for service in self._root.document.services:
            self._file.services.append(self._service(service))
        return self._file

    # -- declarations --

    def _register(self, source: ThriftSource, visited: Set[int]) -> None:
        if id(source) in visited:
            return
        visited.add(id(source))

        for enum in source.document.enums:
            self._file.enums.setdefault(
                enum.name,
                EnumDescriptor(enum.name, {v.name: v.value for v in enum.values}, enum.comment),
            )
        for struct in source.document.structs:
            if struct.name not in self._file.structs:
                self._file.structs[struct.name] = self._struct(struct, source)
        for included in source.includes.values():
            self._register(included, visited)

    def _struct(self, node: ThriftStruct, source: ThriftSource) -> StructDescriptor:
        return StructDescriptor(
            name=node.name,
            fields=[self._field(f, source) for f in node.fields],
            annotations=Annotations.from_pairs(node.annotations),
            comment=node.comment,
        )

    def _field(self, node: ThriftField, source: ThriftSource) -> FieldDescriptor:
        return FieldDescriptor(
            name=node.name,
            type=self.resolve_type(node.type, source),
            annotations=Annotations.from_pairs(node.annotations),
            comment=node.comment,
            required=node.requiredness == "required",
        )

    def _service(self, node) -> ServiceDescriptor:
        service = ServiceDescriptor(
            name=node.name,
            annotations=Annotations.from_pairs(node.annotations),
            comment=node.comment,
        )
        for function in node.functions:
            service.methods.append(self._method(node.name, function))
        return service

    def _method(self, service_name: str, node: ThriftFunction) -> MethodDescriptor:
        request: Optional[StructDescriptor] = None
        if node.arguments:
            if len(node.arguments) > 1:
                logger.warning(
                    "function '%s.%s' has more than one argument, only the first is used",
                    service_name, node.name,
                )
            request = self._struct_for(node.arguments[0].type, f"argument of {service_name}.{node.name}")

        response: Optional[StructDescriptor] = None
        if node.return_type is not None:
            response = self._struct_for(node.return_type, f"result of {service_name}.{node.name}")

        return MethodDescriptor(
            name=node.name,
            request=request,
            response=response,
            annotations=Annotations.from_pairs(node.annotations),
            comment=node.comment,
        )

    def _struct_for(self, type_: ThriftType, what: str) -> StructDescriptor:
        resolved = self.resolve_type(type_, self._root)
        struct = self._file.find_struct(resolved.name) if resolved.is_struct() else None
        if struct is None:
            raise ReflectionError(f"{what}: type {type_.name!r} is not a known struct")
        return struct

    # -- types --

    def resolve_type(self, type_: ThriftType, source: ThriftSource) -> TypeDescriptor:
        return self._resolve(type_, source, set())

    def _resolve(self, type_: ThriftType, source: ThriftSource, seen: Set[Tuple[int, str]]) -> TypeDescriptor:
        name = type_.name
        if name == "list" and type_.args:
            return TypeDescriptor.list_of(self._resolve(type_.args[0], source, seen))
        if name == "set" and type_.args:
            return TypeDescriptor.set_of(self._resolve(type_.args[0], source, seen))
        if name == "map" and len(type_.args) == 2:
            return TypeDescriptor.map_of(
                self._resolve(type_.args[0], source, seen),
                self._resolve(type_.args[1], source, seen),
            )
        if name in THRIFT_SCALARS:
            return TypeDescriptor.scalar(name)

        owner, local = self._locate(name, source)
        if owner is None:
            return TypeDescriptor.scalar(name)

        key = (id(owner), local)
        doc = owner.document
        for typedef in doc.typedefs:
            if typedef.alias == local:
                if key in seen:
                    raise ReflectionError(f"typedef cycle through {name!r} in {owner.path}")
                return self._resolve(typedef.type, owner, seen | {key})
        if any(s.name == local for s in doc.structs):
            return TypeDescriptor.struct(local)
        if any(e.name == local for e in doc.enums):
            return TypeDescriptor.enum(local)
        return TypeDescriptor.scalar(name)

    @staticmethod
    def _locate(name: str, source: ThriftSource) -> Tuple[Optional[ThriftSource], str]:
        """Split ``alias.Name`` into the include it points at and the local name."""
        if "." in name:
            alias, local = name.split(".", 1)
            included = source.includes.get(alias)
            if included is None:
                return None, name
            return included, local
        return source, name


def _namespace_of(doc: ThriftDocument) -> str:
    for scope in ("*", "go", "py", "java"):
        if scope in doc.namespaces:
            return doc.namespaces[scope]
    return next(iter(doc.namespaces.values()), "")


def collect_aliases(includes: List[str]) -> List[str]:
    """Include alias for each include path: the file name without extension."""
    aliases = []
    for path in includes:
        base = path.replace("\\", "/").rsplit("/", 1)[-1]
        aliases.append(base[: -len(".thrift")] if base.endswith(".thrift") else base)
    return aliases
