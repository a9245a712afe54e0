"""Resolved descriptor graph shared by the Thrift and Protobuf front ends.

Type references are resolved to their declaration name: a field of struct
type records the struct's schema name, and the struct itself is looked up
through ``FileDescriptor.find_struct`` when the generator expands it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

from swagger_idl.annotations import Annotations


class ReflectionError(Exception):
    """Raised when a method argument or result does not name a known struct."""


class TypeKind(Enum):
    SCALAR = auto()
    STRUCT = auto()
    ENUM = auto()
    LIST = auto()
    SET = auto()
    MAP = auto()


@dataclass
class TypeDescriptor:
    kind: TypeKind
    name: str
    # element type of list/set, value type of map
    element: Optional[TypeDescriptor] = None
    key: Optional[TypeDescriptor] = None

    @classmethod
    def scalar(cls, name: str) -> TypeDescriptor:
        return cls(TypeKind.SCALAR, name)

    @classmethod
    def struct(cls, name: str) -> TypeDescriptor:
        return cls(TypeKind.STRUCT, name)

    @classmethod
    def enum(cls, name: str) -> TypeDescriptor:
        return cls(TypeKind.ENUM, name)

    @classmethod
    def list_of(cls, element: TypeDescriptor) -> TypeDescriptor:
        return cls(TypeKind.LIST, "list", element=element)

    @classmethod
    def set_of(cls, element: TypeDescriptor) -> TypeDescriptor:
        return cls(TypeKind.SET, "set", element=element)

    @classmethod
    def map_of(cls, key: TypeDescriptor, value: TypeDescriptor) -> TypeDescriptor:
        return cls(TypeKind.MAP, "map", element=value, key=key)

    def is_struct(self) -> bool:
        return self.kind == TypeKind.STRUCT


@dataclass
class FieldDescriptor:
    name: str
    type: TypeDescriptor
    annotations: Annotations = field(default_factory=Annotations)
    comment: str = ""
    required: bool = False


@dataclass
class StructDescriptor:
    name: str
    fields: List[FieldDescriptor] = field(default_factory=list)
    annotations: Annotations = field(default_factory=Annotations)
    comment: str = ""


@dataclass
class EnumDescriptor:
    name: str
    values: Dict[str, int] = field(default_factory=dict)
    comment: str = ""


@dataclass
class MethodDescriptor:
    """One service method; request/response are None when the IDL has none."""

    name: str
    request: Optional[StructDescriptor] = None
    response: Optional[StructDescriptor] = None
    annotations: Annotations = field(default_factory=Annotations)
    comment: str = ""


@dataclass
class ServiceDescriptor:
    name: str
    methods: List[MethodDescriptor] = field(default_factory=list)
    annotations: Annotations = field(default_factory=Annotations)
    comment: str = ""


@dataclass
class FileDescriptor:
    """A reflected IDL file.

    ``structs`` and ``enums`` include declarations reachable through
    includes/imports, keyed by the name used for generated schemas.
    ``local_structs`` lists the structs declared in the file itself, in order.
    """

    path: str
    package: str = ""
    services: List[ServiceDescriptor] = field(default_factory=list)
    structs: Dict[str, StructDescriptor] = field(default_factory=dict)
    enums: Dict[str, EnumDescriptor] = field(default_factory=dict)
    local_structs: List[str] = field(default_factory=list)

    def find_struct(self, name: str) -> Optional[StructDescriptor]:
        return self.structs.get(name)

    def find_service(self, name: str) -> Optional[ServiceDescriptor]:
        for service in self.services:
            if service.name == name:
                return service
        return None
