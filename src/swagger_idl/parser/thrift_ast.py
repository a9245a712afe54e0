"""AST node definitions for Thrift (.thrift) files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# (key, value) pairs in source order; keys may repeat
AnnotationPairs = List[Tuple[str, str]]


@dataclass
class ThriftType:
    """A type reference: base type, (possibly include-qualified) name or container.

    Containers use ``name`` ``list``/``set``/``map`` with their element types in
    ``args`` (``[key, value]`` for maps).
    """

    name: str
    args: List[ThriftType] = field(default_factory=list)
    annotations: AnnotationPairs = field(default_factory=list)


@dataclass
class ThriftField:
    """[id:] [required|optional] Type name [= default] [(annotations)]"""

    name: str
    type: ThriftType
    id: Optional[int] = None
    requiredness: str = ""
    annotations: AnnotationPairs = field(default_factory=list)
    comment: str = ""


@dataclass
class ThriftStruct:
    """A struct, union or exception; all three share one shape."""

    name: str
    kind: str = "struct"
    fields: List[ThriftField] = field(default_factory=list)
    annotations: AnnotationPairs = field(default_factory=list)
    comment: str = ""


@dataclass
class ThriftEnumValue:
    name: str
    value: int


@dataclass
class ThriftEnum:
    name: str
    values: List[ThriftEnumValue] = field(default_factory=list)
    annotations: AnnotationPairs = field(default_factory=list)
    comment: str = ""


@dataclass
class ThriftTypedef:
    alias: str
    type: ThriftType
    annotations: AnnotationPairs = field(default_factory=list)


@dataclass
class ThriftFunction:
    name: str
    return_type: Optional[ThriftType]  # None for void
    arguments: List[ThriftField] = field(default_factory=list)
    throws: List[ThriftField] = field(default_factory=list)
    oneway: bool = False
    annotations: AnnotationPairs = field(default_factory=list)
    comment: str = ""


@dataclass
class ThriftService:
    name: str
    extends: Optional[str] = None
    functions: List[ThriftFunction] = field(default_factory=list)
    annotations: AnnotationPairs = field(default_factory=list)
    comment: str = ""


@dataclass
class ThriftDocument:
    """Top-level parsed representation of a .thrift file."""

    includes: List[str] = field(default_factory=list)
    namespaces: Dict[str, str] = field(default_factory=dict)
    typedefs: List[ThriftTypedef] = field(default_factory=list)
    constants: List[str] = field(default_factory=list)
    enums: List[ThriftEnum] = field(default_factory=list)
    structs: List[ThriftStruct] = field(default_factory=list)
    services: List[ThriftService] = field(default_factory=list)
