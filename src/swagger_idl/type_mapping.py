"""Primitive type tables shared by both conversion directions."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

TIMESTAMP_TYPE = "google.protobuf.Timestamp"
TIMESTAMP_IMPORT = "google/protobuf/timestamp.proto"

# OpenAPI type -> {format -> proto scalar}; the None key is the fallback.
OPENAPI_TO_PROTO: Dict[str, Dict[Optional[str], str]] = {
    "string": {None: "string", "date": TIMESTAMP_TYPE, "date-time": TIMESTAMP_TYPE},
    "integer": {None: "int64", "int32": "int32"},
    "number": {None: "double", "float": "float"},
    "boolean": {None: "bool"},
}

# IDL scalar -> (OpenAPI type, format)
THRIFT_SCALAR_SCHEMAS: Dict[str, Tuple[str, Optional[str]]] = {
    "string": ("string", None),
    "binary": ("string", "binary"),
    "bool": ("boolean", None),
    "byte": ("string", "byte"),
    "double": ("number", "double"),
    "i8": ("integer", "int8"),
    "i16": ("integer", "int16"),
    "i32": ("integer", "int32"),
    "i64": ("integer", "int64"),
}

PROTO_SCALAR_SCHEMAS: Dict[str, Tuple[str, Optional[str]]] = {
    "string": ("string", None),
    "bytes": ("string", "byte"),
    "bool": ("boolean", None),
    "float": ("number", "float"),
    "double": ("number", "double"),
    "int32": ("integer", "int32"),
    "sint32": ("integer", "int32"),
    "sfixed32": ("integer", "int32"),
    "uint32": ("integer", "uint32"),
    "fixed32": ("integer", "uint32"),
    "int64": ("integer", "int64"),
    "sint64": ("integer", "int64"),
    "sfixed64": ("integer", "int64"),
    "uint64": ("integer", "uint64"),
    "fixed64": ("integer", "uint64"),
}

# Well-known protobuf message types that have a natural JSON representation.
PROTO_WELL_KNOWN_SCHEMAS: Dict[str, Tuple[str, Optional[str]]] = {
    "google.protobuf.Timestamp": ("string", "date-time"),
    "google.protobuf.Duration": ("string", None),
    "google.protobuf.Empty": ("object", None),
    "google.protobuf.Any": ("object", None),
    "google.protobuf.Struct": ("object", None),
    "google.protobuf.Value": ("object", None),
    "google.protobuf.StringValue": ("string", None),
    "google.protobuf.BytesValue": ("string", "byte"),
    "google.protobuf.BoolValue": ("boolean", None),
    "google.protobuf.FloatValue": ("number", "float"),
    "google.protobuf.DoubleValue": ("number", "double"),
    "google.protobuf.Int32Value": ("integer", "int32"),
    "google.protobuf.UInt32Value": ("integer", "uint32"),
    "google.protobuf.Int64Value": ("integer", "int64"),
    "google.protobuf.UInt64Value": ("integer", "uint64"),
}

# Enums serialize as their integer value.
ENUM_SCHEMA: Tuple[str, Optional[str]] = ("integer", "int32")

PROTO_SCALARS = frozenset(PROTO_SCALAR_SCHEMAS)
THRIFT_SCALARS = frozenset(THRIFT_SCALAR_SCHEMAS)


def proto_type_for_openapi(schema_type: str, schema_format: Optional[str] = None) -> Optional[str]:
    """Map an OpenAPI scalar type/format pair to a proto scalar.

    Returns None when ``schema_type`` is not a scalar OpenAPI type.
    """
    formats = OPENAPI_TO_PROTO.get(schema_type)
    if formats is None:
        return None
    return formats.get(schema_format, formats[None])


def schema_for_scalar(kind: str) -> Tuple[Optional[str], Optional[str]]:
    """Map an IDL scalar kind to an OpenAPI (type, format) pair.

    Unknown kinds map to ``(None, None)``, which callers render as an
    untyped schema.
    """
    for table in (THRIFT_SCALAR_SCHEMAS, PROTO_SCALAR_SCHEMAS, PROTO_WELL_KNOWN_SCHEMAS):
        if kind in table:
            return table[kind]
    return None, None
